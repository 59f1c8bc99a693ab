"""Notification service for backup runs.

Sends one Discord-style webhook message per run. Each server becomes an embed
whose color marks success or failure. Delivery problems are logged and never
propagate to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from backend.errors import NotificationError
from backend.services.automation.executor import BackupResult


logger = logging.getLogger(__name__)

SUCCESS_COLOR = 456521
FAILURE_COLOR = 15599624


def build_embeds(results: Sequence[BackupResult]) -> List[Dict[str, Any]]:
    """Build one embed per result, preserving order.

    Args:
        results: Per-server backup results.

    Returns:
        List[Dict[str, Any]]: Embed objects.
    """

    return [
        {
            "title": result.server_name,
            "description": result.message,
            "color": SUCCESS_COLOR if result.success else FAILURE_COLOR,
        }
        for result in results
    ]


class NotificationService:
    """Post backup results to a webhook."""

    def __init__(
        self,
        *,
        webhook_url: str,
        username: str = "",
        avatar_url: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the notification service.

        Args:
            webhook_url: Webhook endpoint. Notifications are skipped when empty.
            username: Display name of the posting bot.
            avatar_url: Avatar image of the posting bot.
            timeout: HTTP timeout in seconds.
            transport: Optional httpx transport (used by tests).
            clock: Source of the report timestamp.
        """

        self.webhook_url = (webhook_url or "").strip()
        self.username = username
        self.avatar_url = avatar_url
        self.timeout = timeout
        self.transport = transport
        self.clock = clock

    def build_payload(self, results: Sequence[BackupResult]) -> Dict[str, Any]:
        """Build the webhook JSON body.

        Args:
            results: Per-server backup results.

        Returns:
            Dict[str, Any]: Payload.
        """

        timestamp = self.clock().strftime("%Y-%m-%d %H:%M:%S")
        return {
            "username": self.username,
            "avatar_url": self.avatar_url,
            "content": f"backup result of date : {timestamp}",
            "embeds": build_embeds(results),
        }

    def report(self, results: Sequence[BackupResult]) -> bool:
        """Send one notification containing every result.

        Args:
            results: Per-server backup results.

        Returns:
            bool: True when the webhook accepted the notification.
        """

        if not self.webhook_url:
            logger.warning("Notification skipped (DISCORD_WEBHOOK not configured)")
            return False

        try:
            self._post(self.build_payload(results))
        except NotificationError as exc:
            logger.error("Failed to send backup notification: %s", exc)
            return False

        logger.info("Backup notification sent for %s server(s)", len(results))
        return True

    def _post(self, payload: Dict[str, Any]) -> None:
        """POST a payload to the webhook.

        Raises:
            NotificationError: On transport errors or non-2xx responses.
        """

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NotificationError(
                f"Webhook responded with HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NotificationError(f"Webhook request failed: {exc}") from exc
