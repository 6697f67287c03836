"""Exception types raised by prsheet. Only the CLI turns them into exit codes."""

from __future__ import annotations


class PrsheetError(Exception):
    """Base error carrying a human-readable message."""


class ValidationError(PrsheetError):
    """Invalid command-line input (date format, count, mode)."""


class RepoResolutionError(PrsheetError):
    """Repository could not be determined or is malformed."""


class MissingToolError(PrsheetError):
    """A required external command is not installed."""
    def __init__(self, tool: str, hint: str = ""):
        message = f"{tool} is not installed."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.tool = tool


class AuthenticationError(PrsheetError):
    """No GitHub credentials available."""


class GitHubAPIError(PrsheetError):
    """Error from GitHub API."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RepoNotFoundError(GitHubAPIError):
    """Repository does not exist or is not visible with the current token."""
    def __init__(self, repo: str):
        super().__init__(
            f"Repository not found: {repo}. Check that the repository path is "
            "correct and you have access.",
            404,
        )
        self.repo = repo


class RateLimitError(GitHubAPIError):
    """Rate limit exceeded."""
    def __init__(self, reset_time: int | None = None):
        super().__init__("GitHub API rate limit exceeded", 403)
        self.reset_time = reset_time


class ConfigError(PrsheetError):
    """prsheet.yml is unreadable or holds invalid values."""
