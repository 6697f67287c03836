"""
Repository resolution.

Turns whatever the user gave us (owner/name, HTTPS URL, SSH remote) into a
canonical ``owner/name`` string, falling back to the environment default and
then to the ``origin`` remote of the current git checkout.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path

from .errors import MissingToolError, RepoResolutionError


logger = logging.getLogger(__name__)

# owner/name: GitHub allows letters, digits, '-', '_' and '.'
REPO_PATH_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def extract_repo_path(value: str) -> str:
    """
    Extract ``owner/name`` from a repository identifier.

    Supports:
    - owner/name
    - https://github.com/owner/name(.git)
    - git@github.com:owner/name(.git)
    - ssh://git@github.com/owner/name(.git)

    Raises:
        RepoResolutionError: if no owner/name pair can be found
    """
    cleaned = value.strip().rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]

    without_scheme = SCHEME_RE.sub("", cleaned)
    has_host = without_scheme != cleaned or "@" in cleaned or ":" in cleaned

    # scp-like SSH remotes use ':' before the path
    parts = [p for p in re.split(r"[:/]", without_scheme) if p]
    if has_host:
        parts = parts[1:]
    if len(parts) < 2:
        raise RepoResolutionError(
            f"Invalid repository: '{value}'. Expected owner/name or a GitHub URL."
        )

    repo_path = f"{parts[-2]}/{parts[-1]}"
    if not REPO_PATH_RE.match(repo_path):
        raise RepoResolutionError(
            f"Invalid repository: '{value}'. Expected owner/name or a GitHub URL."
        )
    return repo_path


def get_origin_url(cwd: Path | None = None) -> str | None:
    """Return the URL of the ``origin`` remote, or None outside a git checkout."""
    if shutil.which("git") is None:
        raise MissingToolError("git", "Install git or pass --repo explicitly.")

    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError:
        # Not a git repo, or no origin remote
        return None

    url = result.stdout.strip()
    return url or None


def detect_repo(
    explicit: str | None = None,
    default: str | None = None,
    cwd: Path | None = None,
) -> str:
    """
    Resolve the target repository.

    Args:
        explicit: Value of --repo, wins when given
        default: Environment/config default (GITHUB_REPOSITORY)
        cwd: Directory whose git origin is used as the last resort

    Returns:
        Canonical owner/name
    """
    if explicit:
        return extract_repo_path(explicit)
    if default:
        return extract_repo_path(default)

    origin = get_origin_url(cwd)
    if origin:
        logger.debug("Using git origin remote: %s", origin)
        return extract_repo_path(origin)

    raise RepoResolutionError(
        "Could not auto-detect repository. Please specify with --repo flag."
    )
