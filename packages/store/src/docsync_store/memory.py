"""In-memory store — sessions live only as long as the process.

Useful for dry runs and tests. Each CI event is a fresh process, so this
store does not carry state between comments; use SQLiteStore or GistStore
for real deployments.
"""

from __future__ import annotations

from docsync_store.base import BaseStore, check_append_only
from docsync_store.models import Session, session_from_dict, session_key, session_to_dict


class MemoryStore(BaseStore):
    """Keeps serialized sessions in a dict so callers never share mutable state."""

    def __init__(self, lock_timeout: float = 300.0):
        super().__init__(lock_timeout=lock_timeout)
        self._sessions: dict[str, dict] = {}

    def get(self, repo: str, pr_number: int) -> Session:
        data = self._sessions.get(session_key(repo, pr_number))
        if data is None:
            return Session(repo=repo, pr_number=pr_number)
        return session_from_dict(data)

    def save(self, session: Session) -> None:
        stored = self._sessions.get(session.key)
        if stored is not None:
            check_append_only(session_from_dict(stored).history, session.history)
        self._sessions[session.key] = session_to_dict(session)

    def list_sessions(self, repo: str) -> list[Session]:
        return [session_from_dict(d) for d in self._sessions.values() if d["repo"] == repo]
