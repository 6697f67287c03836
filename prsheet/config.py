"""
Configuration management for Prsheet.

Settings are resolved in three layers, later layers winning:
- prsheet.yml at the repository root (optional)
- Environment variables (GITHUB_REPOSITORY, PRSHEET_*)
- Command-line flags (applied by the CLI)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError, ValidationError


CONFIG_FILENAME = "prsheet.yml"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_WEB_URL = "https://github.com"
DEFAULT_TIMEOUT = 30
DEFAULT_PER_PAGE = 100
MAX_PER_PAGE = 100  # GitHub silently caps larger page sizes
DEFAULT_MAX_PAGES = 20


@dataclass
class GitHubConfig:
    """Where to talk to GitHub."""
    api_url: str = DEFAULT_API_URL
    web_url: str = DEFAULT_WEB_URL  # used to build PR hyperlinks
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class ListingConfig:
    """Pagination limits for the closed-PR listing."""
    per_page: int = DEFAULT_PER_PAGE
    max_pages: int = DEFAULT_MAX_PAGES


@dataclass
class PrsheetConfig:
    """Complete Prsheet configuration."""
    repo: str | None = None  # default repository (owner/name or URL)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)

    @classmethod
    def load(
        cls,
        repo_root: Path,
        environ: dict[str, str] | None = None,
    ) -> "PrsheetConfig":
        """Load configuration from repo root directory, then apply env overrides."""
        config = cls()

        config_path = repo_root / CONFIG_FILENAME
        if config_path.exists():
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
            config = cls._parse(data, source=config_path)

        config.apply_env(os.environ if environ is None else environ)
        return config

    @classmethod
    def _parse(cls, data: Any, source: Path | str = CONFIG_FILENAME) -> "PrsheetConfig":
        """Parse configuration dictionary."""
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid {source}: expected a mapping at the top level.")

        config = cls()
        config.repo = data.get("repo")
        if config.repo is not None and not isinstance(config.repo, str):
            raise ConfigError(f"Invalid {source}: 'repo' must be a string.")

        github_data = _section(data, "github", source)
        config.github = GitHubConfig(
            api_url=str(github_data.get("api_url", DEFAULT_API_URL)),
            web_url=str(github_data.get("web_url", DEFAULT_WEB_URL)),
            timeout=github_data.get("timeout", DEFAULT_TIMEOUT),
        )
        timeout = config.github.timeout
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"Invalid {source}: github.timeout must be a positive number.")

        listing_data = _section(data, "listing", source)
        config.listing = ListingConfig(
            per_page=_int_in_range(listing_data, "per_page", DEFAULT_PER_PAGE, source, MAX_PER_PAGE),
            max_pages=_int_in_range(listing_data, "max_pages", DEFAULT_MAX_PAGES, source),
        )

        return config

    def apply_env(self, environ: Any) -> None:
        """Override settings from environment variables."""
        if environ.get("GITHUB_REPOSITORY"):
            self.repo = environ["GITHUB_REPOSITORY"]
        if environ.get("PRSHEET_API_URL"):
            self.github.api_url = environ["PRSHEET_API_URL"]
        if environ.get("PRSHEET_WEB_URL"):
            self.github.web_url = environ["PRSHEET_WEB_URL"]
        if environ.get("PRSHEET_MAX_PAGES"):
            raw = environ["PRSHEET_MAX_PAGES"]
            try:
                max_pages = int(raw)
            except ValueError:
                max_pages = 0
            if max_pages < 1:
                raise ValidationError(
                    f"Invalid PRSHEET_MAX_PAGES: '{raw}'. Must be a positive integer."
                )
            self.listing.max_pages = max_pages

        # Trailing slashes would double up when joining paths
        self.github.api_url = self.github.api_url.rstrip("/")
        self.github.web_url = self.github.web_url.rstrip("/")


def _section(data: dict[str, Any], name: str, source: Path | str) -> dict[str, Any]:
    """Return a nested mapping, treating a missing or empty section as {}."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Invalid {source}: '{name}' must be a mapping.")
    return section


def _int_in_range(
    section: dict[str, Any],
    key: str,
    default: int,
    source: Path | str,
    maximum: int | None = None,
) -> int:
    value = section.get(key, default)
    # bool is an int subclass; "max_pages: yes" is a mistake, not 1
    valid = isinstance(value, int) and not isinstance(value, bool) and value >= 1
    if valid and maximum is not None:
        valid = value <= maximum
    if not valid:
        bound = f"between 1 and {maximum}" if maximum is not None else "a positive integer"
        raise ConfigError(f"Invalid {source}: {key} is {value!r}, must be {bound}.")
    return value


def get_repo_root() -> Path:
    """Find the repository root (directory containing .git)."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use current directory
    return Path.cwd()
