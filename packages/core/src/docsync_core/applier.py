"""Change applier: the only code path that writes to the repository.

Writes are restricted to a fixed allow-list of documentation files and each
write is a single commit. On any host failure nothing is reported as
applied; the caller keeps its session unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from docsync_core.errors import ApplyError, ForbiddenFileError

logger = logging.getLogger(__name__)

# Exact, case-sensitive repository paths.
ALLOWED_FILES = frozenset({"README.md", "CLAUDE.md"})


@dataclass(frozen=True)
class CommitRef:
    sha: str
    file_path: str
    branch: str
    prior_content: str


def check_allowed(file_path: str) -> None:
    if file_path not in ALLOWED_FILES:
        allowed = ", ".join(f"`{f}`" for f in sorted(ALLOWED_FILES))
        raise ForbiddenFileError(f"`{file_path}` is not on the documentation allow-list ({allowed}).")


class ChangeApplier:
    def __init__(self, host):
        self.host = host

    def apply(self, pr_number: int, file_path: str, new_content: str, message: str | None = None) -> CommitRef:
        """Commit ``new_content`` to the pull request's head branch."""
        check_allowed(file_path)
        try:
            branch = self.host.get_head_branch(pr_number)
        except Exception as e:
            logger.error("Could not resolve head branch of #%d: %s", pr_number, e)
            raise ApplyError(f"Could not resolve the pull request branch: {e}") from e
        return self.commit_to_branch(branch, file_path, new_content, message or f"docs: update {file_path} via DocSync")

    def commit_to_branch(self, branch: str, file_path: str, new_content: str, message: str) -> CommitRef:
        check_allowed(file_path)
        try:
            prior = self.host.get_file_content(file_path, ref=branch)
            if prior is None:
                raise ApplyError(f"`{file_path}` does not exist on `{branch}`; DocSync does not create files.")
            sha = self.host.commit_file(file_path, new_content, branch=branch, message=message)
        except ApplyError:
            raise
        except Exception as e:
            logger.error("Commit of %s to %s failed: %s", file_path, branch, e)
            raise ApplyError(f"Committing `{file_path}` to `{branch}` failed: {type(e).__name__}: {e}") from e
        logger.info("Committed %s to %s (%s)", file_path, branch, sha[:7])
        return CommitRef(sha=sha, file_path=file_path, branch=branch, prior_content=prior)
