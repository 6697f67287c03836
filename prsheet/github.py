"""
GitHub REST API client for Prsheet.

Fetches closed pull requests one page at a time. Authentication comes from
GITHUB_TOKEN / GH_TOKEN, or from an already logged-in GitHub CLI.

Requests are read-only and never retried: any HTTP or transport error ends
the run.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests

from . import __version__
from .config import DEFAULT_API_URL, DEFAULT_PER_PAGE, DEFAULT_TIMEOUT
from .errors import (
    AuthenticationError,
    GitHubAPIError,
    MissingToolError,
    RateLimitError,
    RepoNotFoundError,
)


logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitHub ISO 8601 timestamp into an aware UTC datetime."""
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class MergedPR:
    """A closed PR as returned by the listing; merged_at is None when closed unmerged."""
    number: int
    title: str
    labels: list[str] = field(default_factory=list)
    merged_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None


def resolve_token(environ: Any = None) -> str:
    """
    Find a GitHub token.

    Order: GITHUB_TOKEN, GH_TOKEN, then ``gh auth token``.

    Raises:
        MissingToolError: no token in the environment and gh is not installed
        AuthenticationError: gh is installed but not logged in
    """
    environ = os.environ if environ is None else environ
    for name in TOKEN_ENV_VARS:
        token = (environ.get(name) or "").strip()
        if token:
            logger.debug("Using token from %s", name)
            return token

    if shutil.which("gh") is None:
        raise MissingToolError(
            "gh (GitHub CLI)",
            "Set GITHUB_TOKEN or install it from https://cli.github.com/",
        )

    result = subprocess.run(
        ["gh", "auth", "token"],
        capture_output=True,
        text=True,
    )
    token = result.stdout.strip()
    if result.returncode != 0 or not token:
        raise AuthenticationError(
            "gh is not authenticated. Please run 'gh auth login' or set GITHUB_TOKEN."
        )
    logger.debug("Using token from gh auth token")
    return token


class GitHubClient:
    """GitHub REST API client for the pull request listing."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

        if self.token:
            self.session.headers["Authorization"] = f"token {self.token}"

        self.session.headers["Accept"] = "application/vnd.github.v3+json"
        self.session.headers["User-Agent"] = f"prsheet/{__version__}"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> requests.Response:
        """Make a single API request, raising on any error response."""
        url = f"{self.api_url}{endpoint}"
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = self.session.request(
                method, url, params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise GitHubAPIError(f"Request failed: {e}") from e

        logger.debug("-> HTTP %s", response.status_code)

        if response.status_code == 403:
            remaining = response.headers.get("X-RateLimit-Remaining")
            if remaining == "0":
                try:
                    reset_time = int(response.headers.get("X-RateLimit-Reset"))
                except (TypeError, ValueError):
                    reset_time = None
                raise RateLimitError(reset_time)

        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code} - {_error_message(response)}",
                response.status_code,
            )

        return response

    def list_closed_pulls(
        self,
        repo: str,
        page: int,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> list[MergedPR]:
        """
        Fetch one page of closed PRs, most recently updated first.

        Args:
            repo: Full repository name (owner/name)
            page: 1-based page number
            per_page: Page size (GitHub caps this at 100)

        Returns:
            Parsed PRs on the page, merged or not; empty past the last page
        """
        params = {
            "state": "closed",
            "sort": "updated",
            "direction": "desc",
            "per_page": per_page,
            "page": page,
        }
        try:
            response = self._request("GET", f"/repos/{repo}/pulls", params=params)
        except GitHubAPIError as e:
            if e.status_code == 404:
                raise RepoNotFoundError(repo) from e
            raise

        try:
            items = response.json()
        except ValueError as e:
            raise GitHubAPIError(f"Invalid JSON in response for page {page}") from e

        if not isinstance(items, list):
            raise GitHubAPIError(f"Unexpected response for page {page}: {items!r}")

        return [self._parse_pr(item) for item in items]

    def _parse_pr(self, data: dict[str, Any]) -> MergedPR:
        """Parse raw PR data into MergedPR object."""
        labels = data.get("labels") or []

        return MergedPR(
            number=data.get("number", 0),
            title=data.get("title") or "",
            labels=[label.get("name", "") for label in labels if label.get("name")],
            merged_at=parse_timestamp(data.get("merged_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


def _error_message(response: requests.Response) -> str:
    """Pull GitHub's ``message`` field out of an error body, falling back to raw text."""
    try:
        body = response.json()
    except ValueError:
        return (response.text or "")[:300]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return (response.text or "")[:300]
