"""GitHub token and repository resolution for CI and local runs.

Token resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (CI / explicit override)
  2. `gh auth token` (GitHub CLI session — works after `gh auth login`)

Repository resolution order:
  1. explicit --repo
  2. GITHUB_REPOSITORY (set by GitHub Actions)
  3. the `origin` git remote
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no valid source is available.

    Never raises — callers should check for None and emit a UsageError.
    """
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    output = _run(["gh", "auth", "token"])
    if output:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return output


def resolve_repo(repo: str | None) -> str | None:
    if repo:
        return repo
    env_repo = os.environ.get("GITHUB_REPOSITORY")
    if env_repo:
        return env_repo
    return _repo_from_remote(_run(["git", "remote", "get-url", "origin"]))


def _repo_from_remote(url: str | None) -> str | None:
    # https://github.com/owner/repo.git  →  owner/repo
    # git@github.com:owner/repo.git      →  owner/repo
    if not url or "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if "/" in slug else None


def _run(args: list[str]) -> str | None:
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None
