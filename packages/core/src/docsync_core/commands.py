"""Command parser: turns a sanitized comment into a typed Command.

Two command forms are recognized:

    @docbot <action> <target>     structured (``@docsync`` is an alias)
    docsync: <feedback>           legacy, always free-form

An unknown action keyword after ``@docbot`` is not an error: the whole
remainder becomes free-form feedback.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from docsync_core.errors import ParseRejection
from docsync_core.sanitizer import LEGACY, STRUCTURED, SanitizedText


class ActionKind(str, Enum):
    UPDATE = "update"
    CLARIFY = "clarify"
    ADD_EXAMPLE = "add_example"
    EXPAND = "expand"
    FIX = "fix"
    APPROVE = "approve"
    REJECT = "reject"
    REVERT = "revert"
    FREEFORM = "freeform"


_EXAMPLE_WORDS = ("example", "examples")

CONTROL_ACTIONS = frozenset({ActionKind.APPROVE, ActionKind.REJECT, ActionKind.REVERT})

ACTION_KEYWORDS: dict[str, ActionKind] = {
    "update": ActionKind.UPDATE,
    "clarify": ActionKind.CLARIFY,
    "add": ActionKind.ADD_EXAMPLE,
    "add_example": ActionKind.ADD_EXAMPLE,
    "add-example": ActionKind.ADD_EXAMPLE,
    "expand": ActionKind.EXPAND,
    "fix": ActionKind.FIX,
    "approve": ActionKind.APPROVE,
    "reject": ActionKind.REJECT,
    "revert": ActionKind.REVERT,
}

_INSTRUCTIONS: dict[ActionKind, str] = {
    ActionKind.UPDATE: "Update the documentation covering: {target}",
    ActionKind.CLARIFY: "Rewrite the following part of the documentation so it is clearer: {target}",
    ActionKind.ADD_EXAMPLE: "Add a concrete, working usage example for: {target}",
    ActionKind.EXPAND: "Expand the documentation with more detail on: {target}",
    ActionKind.FIX: "Fix inaccurate or outdated statements about: {target}",
    ActionKind.FREEFORM: "Apply this reviewer feedback to the documentation: {target}",
}


@dataclass(frozen=True)
class Command:
    action: ActionKind
    target: str
    raw_text: str

    @property
    def is_control(self) -> bool:
        return self.action in CONTROL_ACTIONS


def parse(sanitized: SanitizedText) -> Command:
    """Parse a sanitized comment, raising ParseRejection if it is not a command."""
    if sanitized.prefix == STRUCTURED:
        keyword, _, rest = sanitized.payload.partition(" ")
        action = ACTION_KEYWORDS.get(keyword.lower())
        if action is None:
            return Command(ActionKind.FREEFORM, sanitized.payload, sanitized.body)
        target = rest.strip()
        if action is ActionKind.ADD_EXAMPLE:
            target = _strip_example_word(target)
        return Command(action, target, sanitized.body)

    if sanitized.prefix == LEGACY:
        return Command(ActionKind.FREEFORM, sanitized.payload, sanitized.body)

    raise ParseRejection(ParseRejection.NOT_A_COMMAND)


def build_instruction(command: Command) -> str:
    """Return the generator instruction for a refinement command."""
    if command.is_control:
        raise ValueError(f"{command.action.value!r} is not a refinement command")
    return _INSTRUCTIONS[command.action].format(target=command.target or "the changes in this pull request")


def _strip_example_word(target: str) -> str:
    # "@docbot add an example for retries" -> "retries"
    words = target.split(" ")
    if len(words) > 1 and words[0].lower() == "an" and words[1].lower() in _EXAMPLE_WORDS:
        words = words[1:]
    if words and words[0].lower() in _EXAMPLE_WORDS:
        words = words[1:]
        if words and words[0].lower() in ("for", "to", "of"):
            words = words[1:]
    return " ".join(words)
