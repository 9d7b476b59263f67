from __future__ import annotations

from docsync_core.providers.base import _DEFAULT_TIMEOUT, BaseGenerator


class AnthropicGenerator(BaseGenerator):
    MODEL = "claude-sonnet-4-20250514"
    # Low temperature: edits should stay close to the existing text.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, timeout: float = _DEFAULT_TIMEOUT):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'docsync[anthropic]'"
            )
        # max_retries=0: failures are reported, never retried.
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.MODEL,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        return "".join(block.text for block in response.content if isinstance(block, TextBlock))
