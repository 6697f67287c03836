"""
Prsheet CLI - List merged GitHub PRs as pipe-delimited rows.

The table (ID|Description|Hyperlink) goes to stdout so it can be piped or
pasted straight into a spreadsheet; progress and status go to stderr.

Examples:
    prsheet --since "2024-10-15T10:30Z"
    prsheet --last 10
    prsheet --repo owner/name --last 5
"""

from __future__ import annotations

import logging
import sys

import click
from dotenv import load_dotenv

# Load .env file from current directory or repo root
load_dotenv()  # Loads from current directory
from .config import get_repo_root
try:
    load_dotenv(get_repo_root() / ".env")
except OSError:
    pass

from . import __version__
from .config import PrsheetConfig
from .errors import PrsheetError
from .github import GitHubClient, resolve_token
from .listing import ListingMode, format_table, format_timestamp, list_merged_prs
from .repo import detect_repo


RULE = "=" * 46


def status(message: str = "") -> None:
    """Status line on stderr, keeping stdout for the table."""
    click.echo(message, err=True)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--since", default=None, metavar="DATETIME",
              help='List all PRs merged after this ISO 8601 time (e.g. "2024-10-15T10:30Z")')
@click.option("--last", default=None, metavar="N", help="List the last N merged PRs")
@click.option("--repo", default=None, metavar="OWNER/NAME",
              help="GitHub repository or URL (default: GITHUB_REPOSITORY or git origin)")
@click.option("--max-pages", default=None, type=click.IntRange(min=1),
              help="Maximum listing pages to fetch (default: 20)")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging to stderr")
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    since: str | None,
    last: str | None,
    repo: str | None,
    max_pages: int | None,
    verbose: bool,
):
    """List merged PRs from a GitHub repository.

    Pick one mode: --since DATETIME or --last N. Requires GITHUB_TOKEN
    (or GH_TOKEN), or an authenticated GitHub CLI ('gh auth login').
    """
    if all(value is None for value in (since, last, repo, max_pages)) and not verbose:
        click.echo(ctx.get_help())
        ctx.exit(0)

    configure_logging(verbose)

    try:
        run(since=since, last=last, repo=repo, max_pages=max_pages)
    except PrsheetError as e:
        click.echo(f"❌ ERROR: {e}", err=True)
        sys.exit(1)


def run(
    since: str | None,
    last: str | None,
    repo: str | None,
    max_pages: int | None,
) -> None:
    """Validate input, fetch, and print the table. Raises PrsheetError on failure."""
    mode = ListingMode.from_options(since, last)

    config = PrsheetConfig.load(get_repo_root())
    if max_pages:
        config.listing.max_pages = max_pages

    token = resolve_token()
    repo_path = detect_repo(repo, config.repo)
    status(f"📦 Repository: {repo_path}")

    status(RULE)
    status("GitHub PR Listing Tool")
    status(RULE)
    status(f"Mode: {mode.kind}")
    if mode.kind == "since":
        status(f"Since: {format_timestamp(mode.since)}")
    else:
        status(f"Count: {mode.count}")
    status(RULE)
    status()
    status("🔍 Fetching merged PRs...")

    def progress(page: int, count: int, message: str):
        status(f"   📄 {message}")

    client = GitHubClient(
        token=token,
        api_url=config.github.api_url,
        timeout=config.github.timeout,
    )
    result = list_merged_prs(
        client,
        repo_path,
        mode,
        max_pages=config.listing.max_pages,
        per_page=config.listing.per_page,
        progress=progress,
    )

    if result.hit_page_cap:
        status(f"⚠️  Warning: Stopped at page {config.listing.max_pages} to prevent excessive API calls.")
    status(f"📊 Total PRs fetched: {result.total_fetched} ({result.pages_fetched} pages)")
    status()

    if result.prs:
        status("📋 Excel-ready format (copy the lines below, paste into Excel):")
        for line in format_table(result.prs, repo_path, config.github.web_url):
            click.echo(line)
        status()
        status(f"📊 Total PRs found: {len(result.prs)}")
    elif mode.kind == "since":
        status(f"✅ No PRs found merged since {format_timestamp(mode.since)}")
    else:
        status("✅ No merged PRs found")

    status(RULE)
    status("✅ Analysis completed!")
    status(RULE)
