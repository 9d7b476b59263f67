"""Base generator implementing the Template Method pattern.

All providers share the same generation algorithm:
    generate() → _build_system_prompt() + _build_user_prompt()
               → _call_api()   ← only this differs per provider
               → _clean()

Subclasses implement two things only:
  - __init__: validate and store the SDK client (with its timeout)
  - _call_api: make one raw API call and return the text response

There is no retry loop. A failed or timed-out call surfaces as a
GenerationError reply and the reviewer re-issues the command.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from docsync_core.errors import GenerationError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 8192
_DEFAULT_TIMEOUT = 120


class BaseGenerator(ABC):
    MAX_TOKENS: int = _MAX_TOKENS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def generate(self, context: str, instruction: str) -> str:
        """Return a full-text replacement for the documentation file in ``context``.

        Raises GenerationError on API failure, timeout or empty output.
        """
        raw = self._call(self._build_system_prompt(), self._build_user_prompt(context, instruction))
        text = self._clean(raw)
        if not text.strip():
            raise GenerationError("The model returned no content.")
        return text

    def is_significant(self, diff_summary: str) -> bool:
        """Ask the model whether a merged change warrants a documentation update."""
        raw = self._call(_CLASSIFIER_SYSTEM_PROMPT, f"## Merged changes\n{diff_summary}")
        verdict = raw.strip().split()[0].strip(".:*").upper() if raw.strip() else ""
        logger.debug("%s significance verdict: %r", self.__class__.__name__, verdict)
        return verdict == "SIGNIFICANT"

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; ``_call`` converts that to GenerationError.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call(self, system_prompt: str, user_prompt: str) -> str:
        try:
            return self._call_api(system_prompt, user_prompt) or ""
        except Exception as e:
            logger.error("%s API call failed: %s", self.__class__.__name__, e)
            raise GenerationError(f"{self.__class__.__name__} failed: {type(e).__name__}: {e}") from e

    def _build_system_prompt(self) -> str:
        return """You are a documentation maintainer for a software repository.
You receive the current content of one Markdown documentation file, the
pull request diff it relates to, and an instruction from a human reviewer.

Rules:
- Return ONLY the complete updated file content, nothing else.
- Preserve the existing structure, headings, tone and formatting.
- Change only what the instruction asks for; leave unrelated sections untouched.
- Never include credentials, secrets, tokens or environment variable values.
- Do not wrap the output in code fences and do not add commentary."""

    def _build_user_prompt(self, context: str, instruction: str) -> str:
        return f"""{context}

## Instruction
{instruction}

Respond with the full updated file content."""

    def _clean(self, raw: str) -> str:
        """Strip only an outer ```markdown ... ``` fence the model may add."""
        cleaned = raw.strip()
        if cleaned.startswith("```"):
            cleaned = re.sub(r"^```[A-Za-z]*\s*\n", "", cleaned)
            cleaned = re.sub(r"\n?```$", "", cleaned)
        if raw.endswith("\n") and not cleaned.endswith("\n"):
            cleaned += "\n"
        return cleaned


_CLASSIFIER_SYSTEM_PROMPT = """You decide whether merged code changes require a documentation update.
Answer SIGNIFICANT if the changes alter public behaviour, configuration,
installation, commands, APIs or architecture described in user-facing docs.
Answer SKIP for refactors, tests, formatting, dependency bumps or typo fixes.
Reply with exactly one word: SIGNIFICANT or SKIP."""
