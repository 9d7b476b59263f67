"""Abstract store interface.

Every backend (SQLite, Gist, in-memory) implements this interface. The
coordinator depends on BaseStore, not on a concrete backend, so backends are
swappable without touching coordinator or CLI code.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from docsync_store.models import session_key

if TYPE_CHECKING:
    from docsync_store.models import HistoryEntry, Session

logger = logging.getLogger(__name__)

_DEFAULT_LOCK_TIMEOUT = 300.0


class StoreError(Exception):
    """Raised when session state cannot be read, written or locked."""


def check_append_only(stored: list[HistoryEntry], incoming: list[HistoryEntry]) -> None:
    """Raise StoreError unless ``incoming`` extends ``stored`` unchanged."""
    if len(incoming) < len(stored) or incoming[: len(stored)] != stored:
        raise StoreError("Session history is append-only; refusing to drop or rewrite entries.")


class BaseStore(ABC):
    """Pluggable persistence layer for per-pull-request sessions.

    Implementations must be safe to call from CI environments where no
    interactive credentials are available. All auth happens via constructor
    arguments resolved at init time.

    Read-modify-write of one session is serialized by ``lock()``; callers
    hold the lock across get → mutate → save.
    """

    def __init__(self, lock_timeout: float = _DEFAULT_LOCK_TIMEOUT):
        self._lock_timeout = lock_timeout
        self._locks: dict[str, threading.Lock] = {}
        # Holders plus waiters per key; an entry is dropped when it reaches zero.
        self._lock_users: dict[str, int] = {}
        self._locks_guard = threading.Lock()

    @abstractmethod
    def get(self, repo: str, pr_number: int) -> Session:
        """Return the session for a pull request, or a fresh empty one.

        Never persists on read: a session is only written by ``save``.
        """

    @abstractmethod
    def save(self, session: Session) -> None:
        """Replace the stored session atomically.

        Raises StoreError if the new history does not extend the stored one.
        """

    @abstractmethod
    def list_sessions(self, repo: str) -> list[Session]:
        """Return all persisted sessions for a repository, oldest first."""

    def append_history(self, repo: str, pr_number: int, entry: HistoryEntry) -> None:
        session = self.get(repo, pr_number)
        session.history.append(entry)
        self.save(session)

    @contextmanager
    def lock(self, repo: str, pr_number: int) -> Iterator[None]:
        """Serialize work on one pull request."""
        with self._hold(session_key(repo, pr_number)):
            yield

    @contextmanager
    def sync_lock(self, repo: str) -> Iterator[None]:
        """Serialize merge-triggered syncs for one repository. Waiters queue."""
        with self._hold(f"{repo}#sync"):
            yield

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op so callers can always call close() safely.
        """

    # ------------------------------------------------------------------ #
    # Locking                                                              #
    # ------------------------------------------------------------------ #

    @contextmanager
    def _hold(self, key: str) -> Iterator[None]:
        with self._locks_guard:
            local = self._locks.setdefault(key, threading.Lock())
            self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            if not local.acquire(timeout=self._lock_timeout):
                raise StoreError(f"Timed out waiting for lock on {key}")
            try:
                self._acquire_lease(key)
                try:
                    yield
                finally:
                    self._release_lease(key)
            finally:
                local.release()
        finally:
            with self._locks_guard:
                self._lock_users[key] -= 1
                if not self._lock_users[key]:
                    del self._lock_users[key]
                    del self._locks[key]

    def _acquire_lease(self, key: str) -> None:
        """Cross-process lock hook. Backends without shared state keep the default."""

    def _release_lease(self, key: str) -> None:
        pass
