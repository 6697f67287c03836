"""
Prsheet - List merged GitHub PRs in a spreadsheet-ready format.

A CLI tool that:
1. Resolves the target repository (flag, GITHUB_REPOSITORY, or git remote)
2. Pages through closed pull requests, newest updates first
3. Keeps only merged PRs, either since a timestamp or the last N
4. Prints them as pipe-delimited rows ready to paste into Excel

Usage:
    prsheet --since 2024-10-15T10:30Z     # PRs merged after a timestamp
    prsheet --last 10                     # Last 10 merged PRs
    prsheet --repo owner/name --last 5    # Explicit repository
"""

__version__ = "0.1.0"
__author__ = "Prsheet"
