"""Refinement coordinator: comment commands and merge-triggered syncs.

Per pull request the session moves through

    Idle ──refine──▶ AwaitingApproval ──approve──▶ Applying ──▶ Idle (applied)
                          │  ▲
                          │  └──refine (replaces proposal)
                          └──reject──▶ Idle (discarded)
    any ──revert──▶ Applying ──▶ Idle

Everything that reaches the coordinator gets exactly one reply on the pull
request thread, except comments that do not address the bot.
"""

from __future__ import annotations

import difflib
import logging
import re
from datetime import datetime, timezone
from typing import Callable

from docsync_core.applier import ALLOWED_FILES, ChangeApplier, check_allowed
from docsync_core.commands import ActionKind, Command, build_instruction, parse
from docsync_core.config import DEFAULT_CONFIG
from docsync_core.errors import (
    ApplyError,
    ContextError,
    DocSyncError,
    ForbiddenFileError,
    GenerationError,
    NoHistoryError,
    NothingPendingError,
    ParseRejection,
    SanitizationRejection,
)
from docsync_core.gh.pull_request import NewPullRequestRef, is_docsync_pull_request
from docsync_core.providers.anthropic import AnthropicGenerator
from docsync_core.providers.openai import OpenAIGenerator
from docsync_core.sanitizer import addresses_bot, sanitize
from docsync_store.base import StoreError
from docsync_store.models import ApprovalState, HistoryEntry, PendingChange, Session

logger = logging.getLogger(__name__)

_DEFAULT_TARGET_FILE = "README.md"

# File-like tokens in a command target, e.g. `CONTRIBUTING.md` or `docs/setup.rst`.
_PATH_TOKEN_RE = re.compile(r"[\w./-]*\w\.(?:md|mdx|markdown|rst|txt|adoc)\b", re.IGNORECASE)

_SYNC_INSTRUCTION = (
    "Update this documentation file so it accurately reflects the merged changes. "
    "If nothing in the file is affected, return it unchanged."
)


def get_generator(config: dict):
    model = config["model"]
    timeout = config.get("generation_timeout", DEFAULT_CONFIG["generation_timeout"])
    if model == "anthropic":
        return AnthropicGenerator(api_key=config["anthropic_api_key"], timeout=timeout)
    if model == "openai":
        return OpenAIGenerator(api_key=config["openai_api_key"], timeout=timeout)
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


def build_context(file_path: str, current_content: str, diff: str, request: str) -> str:
    """Assemble the generator context: target file, pull request diff, request text."""
    return f"""## Documentation file: {file_path}
{current_content}

## Pull request diff
{diff or "(no diff available)"}

## Reviewer request
{request}"""


def render_preview(file_path: str, old: str, new: str, max_lines: int) -> str:
    """Return a fenced unified diff of a proposal, truncated to ``max_lines``."""
    lines = list(
        difflib.unified_diff(
            old.splitlines(keepends=True),
            new.splitlines(keepends=True),
            fromfile=f"a/{file_path}",
            tofile=f"b/{file_path}",
        )
    )
    shown = [line if line.endswith("\n") else line + "\n" for line in lines[:max_lines]]
    if len(lines) > max_lines:
        shown.append(f"... [{len(lines) - max_lines} more diff line(s) not shown]\n")
    return "```diff\n" + "".join(shown) + "```"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RefinementCoordinator:
    """Owns the comment-command flow and the merge-triggered sync for one repository.

    Collaborators are injected so tests can substitute deterministic fakes:
    ``host`` (GitHubHost), ``store`` (BaseStore), ``generator``
    (BaseGenerator), ``notifier`` (anything with ``notify(message)``).
    """

    def __init__(self, host, store, generator, applier=None, notifier=None, config: dict | None = None):
        self.host = host
        self.store = store
        self.generator = generator
        self.applier = applier or ChangeApplier(host)
        self.notifier = notifier
        self.config = {**DEFAULT_CONFIG, **(config or {})}
        self.repo = host.full_name
        self._handlers: dict[ActionKind, Callable[[int, Command, str], str]] = {
            ActionKind.UPDATE: self._refine,
            ActionKind.CLARIFY: self._refine,
            ActionKind.ADD_EXAMPLE: self._refine,
            ActionKind.EXPAND: self._refine,
            ActionKind.FIX: self._refine,
            ActionKind.FREEFORM: self._refine,
            ActionKind.APPROVE: self._approve,
            ActionKind.REJECT: self._reject,
            ActionKind.REVERT: self._revert,
        }

    # ------------------------------------------------------------------ #
    # Comment flow                                                         #
    # ------------------------------------------------------------------ #

    def handle_comment_event(self, pr_number: int, comment_text: str, author: str) -> str | None:
        """Process one pull request comment and return the posted reply.

        Returns None, posting nothing, when the comment does not address the
        bot or was written by an ignored (bot) account.
        """
        if self._is_ignored_author(author):
            logger.debug("Ignoring comment by %s", author)
            return None
        if not addresses_bot(" ".join((comment_text or "").split())):
            return None

        try:
            command = parse(sanitize(comment_text, min_length=self.config["min_feedback_length"]))
        except ParseRejection:
            return None
        except SanitizationRejection as e:
            logger.warning("Rejected comment by %s on #%d: %s", author, pr_number, e.reason)
            return self._reply(pr_number, e.reply())

        logger.info("%s on #%d: %s %r", author, pr_number, command.action.value, command.target)
        try:
            with self.store.lock(self.repo, pr_number):
                self._check_origin(pr_number)
                reply = self._handlers[command.action](pr_number, command, author)
        except DocSyncError as e:
            logger.warning("%s on #%d failed: %s", command.action.value, pr_number, e.reason)
            reply = e.reply()
        except StoreError as e:
            logger.error("Session store failure on #%d: %s", pr_number, e)
            reply = f"**Session state is unavailable.**\n\n{e}\n\nCheck the pull request before retrying the command."
        except Exception:
            logger.exception("Unexpected error handling %s on #%d", command.action.value, pr_number)
            reply = "**DocSync hit an unexpected error.** Check the pull request before retrying the command."
        return self._reply(pr_number, reply)

    def _refine(self, pr_number: int, command: Command, author: str) -> str:
        session = self.store.get(self.repo, pr_number)
        file_path = self._resolve_target_file(pr_number, command)
        check_allowed(file_path)

        try:
            branch = self.host.get_head_branch(pr_number)
            current = self.host.get_file_content(file_path, ref=branch)
            diff = self.host.get_pull_request_diff(pr_number)
        except Exception as e:
            raise GenerationError(f"Could not gather pull request context: {type(e).__name__}: {e}") from e
        if current is None:
            raise ForbiddenFileError(
                f"`{file_path}` does not exist on `{branch}`. DocSync only edits documentation files "
                "already present in the repository."
            )

        instruction = build_instruction(command)
        context = build_context(file_path, current, diff, command.raw_text)
        new_content = self.generator.generate(context, instruction)

        if new_content == current:
            return f"The generated version of `{file_path}` is identical to the current one. Nothing to propose."

        replaced = session.pending_change is not None
        session.pending_change = PendingChange(
            file_path=file_path,
            new_content=new_content,
            instruction=instruction,
            requested_by=author,
        )
        session.approval_state = ApprovalState.AWAITING_APPROVAL
        session.updated_at = _now()
        self.store.save(session)

        preview = render_preview(file_path, current, new_content, self.config["preview_lines"])
        lines = [f"### Proposed update to `{file_path}`", "", f"> {instruction}", ""]
        if replaced:
            lines += ["_This replaces the previous pending proposal._", ""]
        lines += [
            preview,
            "",
            "Reply `@docbot approve` to commit this change or `@docbot reject` to discard it.",
        ]
        return "\n".join(lines)

    def _approve(self, pr_number: int, command: Command, author: str) -> str:
        session = self.store.get(self.repo, pr_number)
        pending = session.pending_change
        if pending is None:
            raise NothingPendingError(
                "There is no pending proposal to approve. "
                "Request one first, for example `@docbot update installation steps`."
            )

        ref = self.applier.apply(
            pr_number,
            pending.file_path,
            pending.new_content,
            message=f"docs: update {pending.file_path} ({pending.instruction[:50]})",
        )
        session.history.append(
            HistoryEntry(
                file_path=pending.file_path,
                prior_content=ref.prior_content,
                new_content=pending.new_content,
                commit_sha=ref.sha,
                kind="apply",
                author=author,
            )
        )
        session.pending_change = None
        session.approval_state = ApprovalState.APPLIED
        self._save_after_commit(session, ref.sha)

        self._notify(f"DocSync: {author} approved an update to {pending.file_path} on {self.repo}#{pr_number}")
        return (
            f"Committed the approved update to `{pending.file_path}` as {ref.sha[:7]}.\n\n"
            "Reply `@docbot revert last change` to undo it."
        )

    def _reject(self, pr_number: int, command: Command, author: str) -> str:
        session = self.store.get(self.repo, pr_number)
        if session.pending_change is None:
            raise NothingPendingError("There is no pending proposal to reject.")
        file_path = session.pending_change.file_path
        session.pending_change = None
        session.approval_state = ApprovalState.DISCARDED
        session.updated_at = _now()
        self.store.save(session)
        return f"Discarded the pending proposal for `{file_path}`. Nothing was committed."

    def _revert(self, pr_number: int, command: Command, author: str) -> str:
        session = self.store.get(self.repo, pr_number)
        if not session.history:
            raise NoHistoryError("No DocSync change has been applied to this pull request yet.")

        last = session.history[-1]
        ref = self.applier.apply(
            pr_number,
            last.file_path,
            last.prior_content,
            message=f"docs: revert {last.file_path} to before {last.commit_sha[:7]}",
        )
        session.history.append(
            HistoryEntry(
                file_path=last.file_path,
                prior_content=ref.prior_content,
                new_content=last.prior_content,
                commit_sha=ref.sha,
                kind="revert",
                author=author,
            )
        )
        dropped = session.pending_change is not None
        session.pending_change = None
        session.approval_state = ApprovalState.APPLIED
        self._save_after_commit(session, ref.sha)

        self._notify(f"DocSync: {author} reverted {last.file_path} on {self.repo}#{pr_number}")
        reply = f"Reverted `{last.file_path}` to its content before {last.commit_sha[:7]} (commit {ref.sha[:7]})."
        if dropped:
            reply += "\n\nThe pending proposal was discarded because it was based on the reverted content."
        return reply

    # ------------------------------------------------------------------ #
    # Merge-triggered sync                                                 #
    # ------------------------------------------------------------------ #

    def handle_merge_event(self, pr_number: int, diff_summary: str | None = None) -> NewPullRequestRef | None:
        """Open a documentation pull request for a merged change, if warranted.

        Runs under the repository's sync lock, so concurrent merges queue.
        Returns None when the change is skipped or the docs need no update.
        """
        with self.store.sync_lock(self.repo):
            try:
                labels, title = self.host.get_pull_request_labels_and_title(pr_number)
                if self._is_docsync(labels, title):
                    logger.info("#%d is a DocSync pull request; not syncing it.", pr_number)
                    return None
                diff_summary = diff_summary or self.host.get_pull_request_diff(pr_number)
                base = self.host.get_default_branch()
            except Exception as e:
                raise ContextError(f"Could not read merged pull request #{pr_number}: {type(e).__name__}: {e}") from e

            if not diff_summary.strip():
                logger.info("#%d has no diff; nothing to sync.", pr_number)
                return None
            if not self.generator.is_significant(diff_summary):
                logger.info("#%d classified as not significant for documentation.", pr_number)
                return None

            updates: dict[str, str] = {}
            for file_path in sorted(ALLOWED_FILES):
                try:
                    current = self.host.get_file_content(file_path, ref=base)
                except Exception as e:
                    raise ContextError(f"Could not read `{file_path}` on `{base}`: {type(e).__name__}: {e}") from e
                if current is None:
                    continue
                request = f"Pull request #{pr_number} ({title}) was merged into `{base}`."
                new_content = self.generator.generate(
                    build_context(file_path, current, diff_summary, request), _SYNC_INSTRUCTION
                )
                if new_content != current:
                    updates[file_path] = new_content

            if not updates:
                logger.info("Documentation already matches #%d.", pr_number)
                return None

            ref = self._open_sync_pull_request(pr_number, title, base, updates)
            logger.info("Opened documentation pull request #%d for #%d", ref.number, pr_number)
            self._notify(f"DocSync opened {ref.url} to sync documentation with {self.repo}#{pr_number}")
            return ref

    def _open_sync_pull_request(
        self, pr_number: int, title: str, base: str, updates: dict[str, str]
    ) -> NewPullRequestRef:
        """Commit ``updates`` on a fresh branch and open the pull request.

        If any step after branch creation fails the branch is deleted again,
        so a later run for the same merge starts clean.
        """
        branch = f"docsync/pr-{pr_number}"
        try:
            self.host.create_branch(branch, base)
        except Exception as e:
            raise ApplyError(f"Could not create branch `{branch}`: {type(e).__name__}: {e}") from e

        try:
            for file_path, content in updates.items():
                self.applier.commit_to_branch(branch, file_path, content, f"docs: sync {file_path} with #{pr_number}")
            files = ", ".join(f"`{f}`" for f in updates)
            try:
                return self.host.create_pull_request(
                    title=f"{self.config['title_marker']} Update documentation for #{pr_number}",
                    body=(
                        f"Automated documentation update following #{pr_number} ({title}).\n\n"
                        f"Updated: {files}\n\n"
                        "Refine with `@docbot <update|clarify|expand|add example|fix> <topic>`, "
                        "then `@docbot approve` or `@docbot reject`."
                    ),
                    head=branch,
                    base=base,
                    label=self.config["label"],
                )
            except Exception as e:
                raise ApplyError(f"Could not open the documentation pull request: {type(e).__name__}: {e}") from e
        except ApplyError:
            self._delete_branch(branch)
            raise

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _check_origin(self, pr_number: int) -> None:
        try:
            labels, title = self.host.get_pull_request_labels_and_title(pr_number)
        except Exception as e:
            raise ContextError(f"Could not verify the pull request origin: {type(e).__name__}: {e}") from e
        if not self._is_docsync(labels, title):
            raise ContextError(
                f"DocSync only refines pull requests labelled `{self.config['label']}` "
                f"or titled with `{self.config['title_marker']}`."
            )

    def _is_docsync(self, labels: list[str], title: str) -> bool:
        return is_docsync_pull_request(labels, title, self.config["label"], self.config["title_marker"])

    def _is_ignored_author(self, author: str) -> bool:
        return author.endswith("[bot]") or author in self.config.get("ignore_authors", [])

    def _resolve_target_file(self, pr_number: int, command: Command) -> str:
        """Pick the file a refinement command edits.

        A file named in the target wins, even one off the allow-list, so that
        ``check_allowed`` rejects it instead of silently editing another file.
        """
        named = _PATH_TOKEN_RE.findall(command.target)
        for file_path in named:
            if file_path not in ALLOWED_FILES:
                return file_path
        if named:
            return named[0]
        try:
            changed = self.host.get_changed_files(pr_number)
        except Exception as e:
            logger.warning("Could not list changed files of #%d: %s", pr_number, e)
            changed = []
        for file_path in changed:
            if file_path in ALLOWED_FILES:
                return file_path
        return _DEFAULT_TARGET_FILE

    def _save_after_commit(self, session: Session, commit_sha: str) -> None:
        session.updated_at = _now()
        try:
            self.store.save(session)
        except StoreError as e:
            logger.error("Commit %s pushed but session %s not saved: %s", commit_sha[:7], session.key, e)
            if self._clear_pending(session.repo, session.pr_number):
                detail = (
                    "The proposal was cleared so it cannot be committed twice, "
                    "but this commit is not in the revert history."
                )
            else:
                detail = (
                    "Do not approve the proposal again: it is still stored as pending "
                    "and would be committed twice."
                )
            raise StoreError(
                f"Commit {commit_sha[:7]} was pushed but the session could not be saved: {e}\n\n{detail}"
            ) from e

    def _clear_pending(self, repo: str, pr_number: int) -> bool:
        """Best-effort: drop the stored pending change after a commit whose save failed."""
        try:
            stored = self.store.get(repo, pr_number)
            stored.pending_change = None
            stored.approval_state = ApprovalState.APPLIED
            stored.updated_at = _now()
            self.store.save(stored)
        except StoreError as e:
            logger.error("Could not clear pending change of %s#%d: %s", repo, pr_number, e)
            return False
        return True

    def _delete_branch(self, branch: str) -> None:
        try:
            self.host.delete_branch(branch)
        except Exception as e:
            logger.warning("Could not delete branch %s: %s", branch, e)

    def _reply(self, pr_number: int, text: str) -> str:
        try:
            self.host.post_comment(pr_number, text)
        except Exception as e:
            logger.warning("Could not post reply on #%d: %s", pr_number, e)
        return text

    def _notify(self, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(message)
        except Exception as e:
            logger.warning("Notification failed: %s", e)
