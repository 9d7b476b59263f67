"""GistStore — zero-infrastructure durable session store via GitHub Gist.

Workflow runs are ephemeral, so a local SQLite file only survives between
comment events if the job caches it. A Gist needs no cache wiring: every run
reads and rewrites one JSON file with a token that has `gist` scope.

Data format: a single JSON file named `docsync_sessions.json` inside the Gist,
holding an object keyed by "owner/repo#<pr_number>".

Locking is in-process only. GitHub Actions serializes jobs that share a
concurrency group, which is how the workflow layer keeps two runners from
editing the Gist at once.
"""

from __future__ import annotations

import json
import logging

from docsync_store.base import BaseStore, StoreError, check_append_only
from docsync_store.models import Session, session_from_dict, session_key, session_to_dict

logger = logging.getLogger(__name__)

_GIST_FILENAME = "docsync_sessions.json"


class GistStore(BaseStore):
    """Stores every session of every repository in one Gist file.

    Suitable for the low volume of refinement commands a team produces. The
    Gist ID is stored in .docsync.yml under `gist_id`.
    """

    def __init__(self, gist_id: str, token: str, lock_timeout: float = 300.0):
        super().__init__(lock_timeout=lock_timeout)
        try:
            from github import Auth, Github
        except ImportError:
            raise ImportError("PyGithub is required for GistStore. Install docsync.")
        self._gist_id = gist_id
        self._gh = Github(auth=Auth.Token(token))

    def _get_gist(self):
        return self._gh.get_gist(self._gist_id)

    def get(self, repo: str, pr_number: int) -> Session:
        data = self._read_all(self._load_gist()).get(session_key(repo, pr_number))
        if data is None:
            return Session(repo=repo, pr_number=pr_number)
        return session_from_dict(data)

    def save(self, session: Session) -> None:
        gist = self._load_gist()
        sessions = self._read_all(gist)
        stored = sessions.get(session.key)
        if stored is not None:
            check_append_only(session_from_dict(stored).history, session.history)
        sessions[session.key] = session_to_dict(session)
        try:
            gist.edit(files={_GIST_FILENAME: {"content": json.dumps(sessions, indent=2)}})
        except Exception as e:
            logger.error("GistStore.save() failed (%s): %s", type(e).__name__, e)
            raise StoreError(f"Could not persist session {session.key} to Gist: {e}") from e

    def list_sessions(self, repo: str) -> list[Session]:
        sessions = self._read_all(self._load_gist())
        results = [session_from_dict(d) for d in sessions.values() if d.get("repo") == repo]
        return sorted(results, key=lambda s: s.updated_at)

    def _load_gist(self):
        try:
            return self._get_gist()
        except Exception as e:
            logger.error("GistStore could not load gist %s: %s", self._gist_id, e)
            raise StoreError(f"Could not load Gist {self._gist_id}: {e}") from e

    @staticmethod
    def _read_all(gist) -> dict[str, dict]:
        """Read the current JSON object from the Gist file, or return {}."""
        file_obj = gist.files.get(_GIST_FILENAME)
        if file_obj is None:
            return {}
        try:
            data = json.loads(file_obj.content) or {}
        except (json.JSONDecodeError, AttributeError):
            # A corrupt file must not be silently overwritten with fewer sessions.
            raise StoreError(f"{_GIST_FILENAME} in Gist is not valid JSON")
        if not isinstance(data, dict):
            raise StoreError(f"{_GIST_FILENAME} in Gist must hold a JSON object")
        return data
