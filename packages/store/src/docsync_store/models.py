"""Session data models.

Decoupled from docsync_core so the store layer can be used independently
and docsync_core has no knowledge of persistence concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApprovalState(str, Enum):
    NONE = "none"
    AWAITING_APPROVAL = "awaiting_approval"
    APPLIED = "applied"
    DISCARDED = "discarded"


@dataclass
class PendingChange:
    """A generated proposal awaiting `approve` or `reject`."""

    file_path: str
    new_content: str
    instruction: str
    requested_by: str
    created_at: str = field(default_factory=_utcnow)


@dataclass(frozen=True)
class HistoryEntry:
    """One committed change. Frozen: history is append-only."""

    file_path: str
    prior_content: str
    new_content: str
    commit_sha: str
    kind: str  # "apply" | "revert"
    author: str = ""
    timestamp: str = field(default_factory=_utcnow)


@dataclass
class Session:
    """Refinement state for one pull request."""

    repo: str
    pr_number: int
    approval_state: ApprovalState = ApprovalState.NONE
    pending_change: PendingChange | None = None
    history: list[HistoryEntry] = field(default_factory=list)
    updated_at: str = field(default_factory=_utcnow)

    @property
    def key(self) -> str:
        return session_key(self.repo, self.pr_number)


def session_key(repo: str, pr_number: int) -> str:
    return f"{repo}#{pr_number}"


def pending_to_dict(pending: PendingChange | None) -> dict | None:
    if pending is None:
        return None
    return {
        "file_path": pending.file_path,
        "new_content": pending.new_content,
        "instruction": pending.instruction,
        "requested_by": pending.requested_by,
        "created_at": pending.created_at,
    }


def pending_from_dict(d: dict | None) -> PendingChange | None:
    if not d:
        return None
    return PendingChange(
        file_path=d.get("file_path", ""),
        new_content=d.get("new_content", ""),
        instruction=d.get("instruction", ""),
        requested_by=d.get("requested_by", ""),
        created_at=d.get("created_at", ""),
    )


def entry_to_dict(entry: HistoryEntry) -> dict:
    return {
        "file_path": entry.file_path,
        "prior_content": entry.prior_content,
        "new_content": entry.new_content,
        "commit_sha": entry.commit_sha,
        "kind": entry.kind,
        "author": entry.author,
        "timestamp": entry.timestamp,
    }


def entry_from_dict(d: dict) -> HistoryEntry:
    return HistoryEntry(
        file_path=d.get("file_path", ""),
        prior_content=d.get("prior_content", ""),
        new_content=d.get("new_content", ""),
        commit_sha=d.get("commit_sha", ""),
        kind=d.get("kind", "apply"),
        author=d.get("author", ""),
        timestamp=d.get("timestamp", ""),
    )


def session_to_dict(session: Session) -> dict:
    return {
        "repo": session.repo,
        "pr_number": session.pr_number,
        "approval_state": session.approval_state.value,
        "pending_change": pending_to_dict(session.pending_change),
        "history": [entry_to_dict(e) for e in session.history],
        "updated_at": session.updated_at,
    }


def session_from_dict(d: dict) -> Session:
    return Session(
        repo=d.get("repo", ""),
        pr_number=d.get("pr_number", 0),
        approval_state=ApprovalState(d.get("approval_state", ApprovalState.NONE.value)),
        pending_change=pending_from_dict(d.get("pending_change")),
        history=[entry_from_dict(e) for e in d.get("history", [])],
        updated_at=d.get("updated_at", ""),
    )
