"""Optional chat notification channel.

Fire-and-forget: a failed notification is logged and never affects the
command that triggered it.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Posts ``{"text": message}`` to an incoming-webhook URL (Slack-compatible)."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def notify(self, message: str) -> None:
        try:
            response = httpx.post(self.url, json={"text": message}, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Notification failed: %s", e)
