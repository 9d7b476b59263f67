"""SQLiteStore — durable file-based session store.

Each comment event in CI is a fresh process, so session state must survive
between invocations. Point ``store_path`` at a file that is cached or
committed between jobs.

Schema:
  sessions — one row per pull request (approval state + pending proposal).
  history  — append-only applied changes; rows are never updated or deleted.
  locks    — lease rows so separate processes serialize on the same key.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
import uuid

from docsync_store.base import BaseStore, StoreError, check_append_only
from docsync_store.models import (
    ApprovalState,
    HistoryEntry,
    Session,
    pending_from_dict,
    pending_to_dict,
)

logger = logging.getLogger(__name__)

_LEASE_POLL_SECONDS = 0.5

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    repo            TEXT NOT NULL,
    pr_number       INTEGER NOT NULL,
    approval_state  TEXT NOT NULL DEFAULT 'none',
    pending_json    TEXT,
    updated_at      TEXT,
    PRIMARY KEY (repo, pr_number)
);
CREATE TABLE IF NOT EXISTS history (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    repo            TEXT NOT NULL,
    pr_number       INTEGER NOT NULL,
    seq             INTEGER NOT NULL,
    file_path       TEXT NOT NULL,
    prior_content   TEXT NOT NULL,
    new_content     TEXT NOT NULL,
    commit_sha      TEXT,
    kind            TEXT NOT NULL,
    author          TEXT,
    timestamp       TEXT,
    UNIQUE (repo, pr_number, seq)
);
CREATE INDEX IF NOT EXISTS idx_history_pr ON history (repo, pr_number);
CREATE TABLE IF NOT EXISTS locks (
    key             TEXT PRIMARY KEY,
    owner           TEXT NOT NULL,
    acquired_at     REAL NOT NULL
);
"""


class SQLiteStore(BaseStore):
    """Stores sessions in a local SQLite database file.

    The database file path defaults to `.docsync.db` in the current working
    directory. Configure via .docsync.yml: `store_path: /path/to/docsync.db`.
    """

    def __init__(self, db_path: str = ".docsync.db", lock_timeout: float = 300.0):
        super().__init__(lock_timeout=lock_timeout)
        self._conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._db_lock = threading.Lock()
        self._owners: dict[str, str] = {}

    def get(self, repo: str, pr_number: int) -> Session:
        with self._db_lock:
            row = self._conn.execute(
                "SELECT * FROM sessions WHERE repo=? AND pr_number=?",
                (repo, pr_number),
            ).fetchone()
            history = self._read_history(repo, pr_number)

        if row is None:
            return Session(repo=repo, pr_number=pr_number, history=history)
        return Session(
            repo=repo,
            pr_number=pr_number,
            approval_state=ApprovalState(row["approval_state"]),
            pending_change=pending_from_dict(json.loads(row["pending_json"]) if row["pending_json"] else None),
            history=history,
            updated_at=row["updated_at"] or "",
        )

    def save(self, session: Session) -> None:
        pending = pending_to_dict(session.pending_change)
        with self._db_lock:
            try:
                with self._conn:
                    stored = self._read_history(session.repo, session.pr_number)
                    check_append_only(stored, session.history)
                    for seq, entry in enumerate(session.history[len(stored) :], start=len(stored)):
                        self._insert_entry(session.repo, session.pr_number, seq, entry)
                    self._conn.execute(
                        """
                        INSERT OR REPLACE INTO sessions
                          (repo, pr_number, approval_state, pending_json, updated_at)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (
                            session.repo,
                            session.pr_number,
                            session.approval_state.value,
                            json.dumps(pending) if pending is not None else None,
                            session.updated_at,
                        ),
                    )
            except sqlite3.Error as e:
                raise StoreError(f"Could not save session {session.key}: {e}") from e

    def append_history(self, repo: str, pr_number: int, entry: HistoryEntry) -> None:
        with self._db_lock:
            try:
                with self._conn:
                    row = self._conn.execute(
                        "SELECT COALESCE(MAX(seq) + 1, 0) AS next FROM history WHERE repo=? AND pr_number=?",
                        (repo, pr_number),
                    ).fetchone()
                    self._insert_entry(repo, pr_number, row["next"], entry)
            except sqlite3.Error as e:
                raise StoreError(f"Could not append history for {repo}#{pr_number}: {e}") from e

    def list_sessions(self, repo: str) -> list[Session]:
        with self._db_lock:
            rows = self._conn.execute(
                "SELECT pr_number FROM sessions WHERE repo=? ORDER BY updated_at",
                (repo,),
            ).fetchall()
        return [self.get(repo, r["pr_number"]) for r in rows]

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------ #
    # Cross-process leases                                                 #
    # ------------------------------------------------------------------ #

    def _acquire_lease(self, key: str) -> None:
        owner = f"{os.getpid()}:{uuid.uuid4().hex}"
        deadline = time.monotonic() + self._lock_timeout
        while True:
            now = time.time()
            with self._db_lock, self._conn:
                # A lease older than the lock timeout belongs to a dead process.
                self._conn.execute(
                    "DELETE FROM locks WHERE key=? AND acquired_at < ?",
                    (key, now - self._lock_timeout),
                )
                cur = self._conn.execute(
                    "INSERT OR IGNORE INTO locks (key, owner, acquired_at) VALUES (?, ?, ?)",
                    (key, owner, now),
                )
            if cur.rowcount == 1:
                self._owners[key] = owner
                return
            if time.monotonic() >= deadline:
                raise StoreError(f"Timed out waiting for lease on {key}")
            logger.debug("Lease on %s held by another process; waiting.", key)
            time.sleep(_LEASE_POLL_SECONDS)

    def _release_lease(self, key: str) -> None:
        owner = self._owners.pop(key, None)
        if owner is None:
            return
        with self._db_lock, self._conn:
            self._conn.execute("DELETE FROM locks WHERE key=? AND owner=?", (key, owner))

    # ------------------------------------------------------------------ #
    # Row helpers                                                          #
    # ------------------------------------------------------------------ #

    def _read_history(self, repo: str, pr_number: int) -> list[HistoryEntry]:
        rows = self._conn.execute(
            "SELECT * FROM history WHERE repo=? AND pr_number=? ORDER BY seq",
            (repo, pr_number),
        ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def _insert_entry(self, repo: str, pr_number: int, seq: int, entry: HistoryEntry) -> None:
        self._conn.execute(
            """
            INSERT INTO history
              (repo, pr_number, seq, file_path, prior_content, new_content,
               commit_sha, kind, author, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                repo,
                pr_number,
                seq,
                entry.file_path,
                entry.prior_content,
                entry.new_content,
                entry.commit_sha,
                entry.kind,
                entry.author,
                entry.timestamp,
            ),
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> HistoryEntry:
        return HistoryEntry(
            file_path=row["file_path"],
            prior_content=row["prior_content"] or "",
            new_content=row["new_content"],
            commit_sha=row["commit_sha"] or "",
            kind=row["kind"],
            author=row["author"] or "",
            timestamp=row["timestamp"] or "",
        )
