"""
Merged PR listing.

Implements the two retrieval modes:
- since: every PR merged strictly after a cutoff timestamp
- last:  the N most recently merged PRs

Pages are pulled newest-updated first and the loop stops as soon as the
mode has what it needs, or at the page cap.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from .config import DEFAULT_MAX_PAGES, DEFAULT_PER_PAGE
from .errors import ValidationError
from .github import GitHubClient, MergedPR


logger = logging.getLogger(__name__)

SINCE_RE = re.compile(
    r"^([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2})(?::([0-9]{2}))?Z?$"
)
HEADER = "ID|Description|Hyperlink"

# (page, count_on_page, message)
ProgressCallback = Callable[[int, int, str], None]


def parse_since(value: str) -> datetime:
    """
    Validate and parse a --since value.

    Accepts "YYYY-MM-DDTHH:MM", with optional ":SS" and optional trailing "Z".
    The value is always taken as UTC.

    Raises:
        ValidationError: on anything else, including impossible dates
    """
    match = SINCE_RE.match(value.strip())
    if not match:
        raise ValidationError(
            f"Invalid date format: '{value}'. Expected ISO 8601 format "
            "(e.g., '2024-10-15T10:30Z' or '2024-10-15T10:30:00Z')"
        )

    year, month, day, hour, minute, second = match.groups()
    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second or 0),
            tzinfo=timezone.utc,
        )
    except ValueError:
        raise ValidationError(
            f"Invalid date format: '{value}'. Not a real calendar date/time."
        ) from None


def parse_count(value: str | int) -> int:
    """Validate a --last value: a positive integer."""
    try:
        count = int(value)
    except (TypeError, ValueError):
        count = 0
    if count <= 0:
        raise ValidationError(
            f"Invalid value for --last: '{value}'. Must be a positive integer."
        )
    return count


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class ListingMode:
    """Which PRs the user asked for."""
    kind: str  # "since" or "last"
    since: datetime | None = None
    count: int | None = None

    @classmethod
    def from_options(cls, since: str | None, last: str | int | None) -> "ListingMode":
        """Build and validate a mode from raw CLI values."""
        if since is not None and last is not None:
            raise ValidationError("--since and --last are mutually exclusive. Pick one.")
        if since is not None:
            return cls(kind="since", since=parse_since(since))
        if last is not None:
            return cls(kind="last", count=parse_count(last))
        raise ValidationError("No mode specified. Use --since or --last. See --help for details.")

    def describe(self) -> str:
        if self.kind == "since":
            return f"since {format_timestamp(self.since)}"
        return f"last {self.count}"


@dataclass
class ListingResult:
    """Selected PRs plus counters for the status summary."""
    prs: list[MergedPR] = field(default_factory=list)
    total_fetched: int = 0
    pages_fetched: int = 0
    hit_page_cap: bool = False


def should_stop(mode: ListingMode, page_items: list[MergedPR], accumulated: list[MergedPR]) -> bool:
    """Decide whether another page could still contribute to the result."""
    if mode.kind == "since":
        oldest = page_items[-1].updated_at
        # A PR merged after the cutoff was also updated after it
        return oldest is not None and oldest < mode.since

    merged_count = sum(1 for pr in accumulated if pr.is_merged)
    return merged_count >= mode.count


def fetch_closed_pulls(
    client: GitHubClient,
    repo: str,
    mode: ListingMode,
    max_pages: int = DEFAULT_MAX_PAGES,
    per_page: int = DEFAULT_PER_PAGE,
    progress: ProgressCallback | None = None,
) -> tuple[list[MergedPR], int, bool]:
    """
    Accumulate closed PRs page by page.

    Returns:
        Tuple of (all_prs, pages_fetched, hit_page_cap)
    """
    def report(page: int, count: int, message: str) -> None:
        logger.debug(message)
        if progress:
            progress(page, count, message)

    accumulated: list[MergedPR] = []
    page = 1
    while page <= max_pages:
        report(page, 0, f"Fetching page {page}...")
        items = client.list_closed_pulls(repo, page=page, per_page=per_page)

        if not items:
            report(page, 0, "No more PRs found")
            return accumulated, page - 1, False

        accumulated.extend(items)
        report(page, len(items), f"Found {len(items)} PRs on page {page}")

        if should_stop(mode, items, accumulated):
            if mode.kind == "since":
                report(page, len(items), "Found PRs older than baseline, stopping pagination")
            else:
                merged = sum(1 for pr in accumulated if pr.is_merged)
                report(
                    page, len(items),
                    f"Collected enough merged PRs ({merged} >= {mode.count}), stopping pagination",
                )
            return accumulated, page, False

        # A short page is the last one
        if len(items) < per_page:
            return accumulated, page, False

        page += 1

    return accumulated, max_pages, True


def select_since(prs: list[MergedPR], cutoff: datetime) -> list[MergedPR]:
    """Merged strictly after cutoff, oldest merge first."""
    selected = [pr for pr in prs if pr.merged_at is not None and pr.merged_at > cutoff]
    return sorted(selected, key=lambda pr: pr.merged_at)


def select_last(prs: list[MergedPR], count: int) -> list[MergedPR]:
    """The count most recently merged, newest merge first."""
    merged = [pr for pr in prs if pr.merged_at is not None]
    return sorted(merged, key=lambda pr: pr.merged_at, reverse=True)[:count]


def select(prs: list[MergedPR], mode: ListingMode) -> list[MergedPR]:
    if mode.kind == "since":
        return select_since(prs, mode.since)
    return select_last(prs, mode.count)


def format_row(pr: MergedPR, repo: str, web_url: str = "https://github.com") -> str:
    """Render one PR as ``#<number>|<title> [<labels>]|<url>``."""
    description = pr.title
    if pr.labels:
        description += f" [{', '.join(pr.labels)}]"
    url = f"{web_url.rstrip('/')}/{repo}/pull/{pr.number}"
    return f"#{pr.number}|{description}|{url}"


def format_table(prs: list[MergedPR], repo: str, web_url: str = "https://github.com") -> list[str]:
    """Header line followed by one row per PR."""
    return [HEADER] + [format_row(pr, repo, web_url) for pr in prs]


def list_merged_prs(
    client: GitHubClient,
    repo: str,
    mode: ListingMode,
    max_pages: int = DEFAULT_MAX_PAGES,
    per_page: int = DEFAULT_PER_PAGE,
    progress: ProgressCallback | None = None,
) -> ListingResult:
    """
    Run the full fetch-filter-sort pipeline for one repository.

    Args:
        client: GitHub API client
        repo: Full repository name (owner/name)
        mode: Validated listing mode
        max_pages: Page cap
        per_page: Listing page size
        progress: Optional callback for per-page status

    Returns:
        ListingResult with the selected PRs in output order
    """
    logger.debug("Listing %s for %s (max %d pages)", mode.describe(), repo, max_pages)
    all_prs, pages, hit_cap = fetch_closed_pulls(
        client, repo, mode,
        max_pages=max_pages,
        per_page=per_page,
        progress=progress,
    )
    return ListingResult(
        prs=select(all_prs, mode),
        total_fetched=len(all_prs),
        pages_fetched=pages,
        hit_page_cap=hit_cap,
    )
