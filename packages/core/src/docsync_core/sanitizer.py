"""Input sanitizer for pull request comments.

Comment text is untrusted: anyone who can comment on the pull request can
address the bot. Before a comment reaches the parser or the AI generator it
is checked against a fixed table of blocked terms. Matching is a plain
case-insensitive substring search, so harmless comments that mention a
blocked term are rejected too.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from docsync_core.errors import SanitizationRejection

MIN_FEEDBACK_LENGTH = 10

BLOCKED_PATTERNS: dict[str, tuple[str, ...]] = {
    "credential/secret reference": (
        "secret",
        "token",
        "password",
        "api_key",
        "credential",
        ".env",
        "private_key",
        "ssh",
    ),
    "non-documentation file reference": (".yml", ".yaml", ".json", ".js", ".ts", ".py", "package.json"),
    "infrastructure term": ("workflow", "action", "database", "sql"),
    "version-control operation": ("commit", "push", "merge", "delete"),
}

# Both prefixes must open the comment. Structured (`@docbot` or its `@docsync`
# alias) is checked first.
STRUCTURED_PREFIX_RE = re.compile(r"\s*@doc(?:bot|sync)\b", re.IGNORECASE)
LEGACY_PREFIX_RE = re.compile(r"\s*docsync:", re.IGNORECASE)

# Bare control verbs carry no feedback, so the length floor does not apply.
CONTROL_KEYWORDS = frozenset({"approve", "reject", "revert"})

STRUCTURED = "structured"
LEGACY = "legacy"


@dataclass(frozen=True)
class SanitizedText:
    """A comment that passed sanitization.

    ``body`` keeps the full trimmed comment for AI context, ``line`` is the
    whitespace-collapsed single line used for command detection, and
    ``payload`` is what follows the bot prefix.
    """

    body: str
    line: str
    payload: str
    prefix: str | None


def split_prefix(line: str) -> tuple[str | None, str]:
    """Return (prefix kind, text after the prefix) for a normalized line."""
    match = STRUCTURED_PREFIX_RE.match(line)
    if match:
        return STRUCTURED, line[match.end() :].lstrip(" :,").strip()
    match = LEGACY_PREFIX_RE.match(line)
    if match:
        return LEGACY, line[match.end() :].strip()
    return None, line


def addresses_bot(text: str) -> bool:
    return split_prefix(text)[0] is not None


def find_blocked_terms(text: str) -> list[tuple[str, str]]:
    """Return every (category, term) whose term occurs in ``text``."""
    lowered = text.lower()
    return [
        (category, term)
        for category, terms in BLOCKED_PATTERNS.items()
        for term in terms
        if term in lowered
    ]


def sanitize(raw_comment: str, min_length: int = MIN_FEEDBACK_LENGTH) -> SanitizedText:
    """Validate a raw comment, raising SanitizationRejection if it must not run."""
    body = (raw_comment or "").strip()
    line = " ".join(body.split())

    blocked = find_blocked_terms(body)
    if blocked:
        categories = sorted({category for category, _ in blocked})
        terms = ", ".join(f"`{term}`" for _, term in blocked)
        raise SanitizationRejection(
            f"The comment matches blocked pattern(s) ({'; '.join(categories)}): {terms}. "
            "DocSync only edits documentation text and will not act on requests that "
            "mention secrets, non-documentation files, infrastructure or repository operations."
        )

    prefix, payload = split_prefix(line)
    first_word = payload.split(" ", 1)[0].lower()
    is_control = prefix == STRUCTURED and first_word in CONTROL_KEYWORDS
    if not is_control and len(payload) < min_length:
        raise SanitizationRejection(
            f"Feedback is too short ({len(payload)} characters). "
            f"Please describe the change in at least {min_length} characters."
        )

    return SanitizedText(body=body, line=line, payload=payload, prefix=prefix)
