"""Error taxonomy for comment handling.

Every error raised below the coordinator is one of these. The coordinator
converts each into exactly one reply on the pull request thread, except
ParseRejection, which is dropped silently.
"""

from __future__ import annotations


class DocSyncError(Exception):
    """Base class. ``reply()`` is the text posted back to the thread."""

    title = "DocSync could not process this command"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)

    def reply(self) -> str:
        return f"**{self.title}.**\n\n{self.reason}"


class SanitizationRejection(DocSyncError):
    """Blocked pattern or feedback too short."""

    title = "Command rejected"


class ParseRejection(DocSyncError):
    """Not addressed to the bot. Never replied to."""

    NOT_A_COMMAND = "not_a_command"


class ContextError(DocSyncError):
    """The pull request was not opened by DocSync."""

    title = "This pull request is not managed by DocSync"


class GenerationError(DocSyncError):
    """The AI content generator failed or timed out."""

    title = "Documentation generation failed"


class ApplyError(DocSyncError):
    """Committing to the pull request branch failed."""

    title = "Could not commit the change"


class ForbiddenFileError(ApplyError):
    """The target path is not on the documentation allow-list."""

    title = "File is not allowed"


class NoHistoryError(DocSyncError):
    title = "Nothing to revert"


class NothingPendingError(DocSyncError):
    title = "Nothing pending"
