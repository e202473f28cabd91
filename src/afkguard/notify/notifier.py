# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Outbound notification delivery."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import httpx

from afkguard.errors import NotificationError
from afkguard.logging import get_logger

logger = get_logger(__name__)


class Severity(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


EMBED_COLORS: dict[Severity, int] = {
    Severity.INFO: 0x3498DB,
    Severity.SUCCESS: 0x00FF00,
    Severity.WARNING: 0xFF9900,
    Severity.ERROR: 0xFF0000,
}


class Notifier(ABC):
    """Best-effort sink for human-readable notifications."""

    @abstractmethod
    async def notify(
        self,
        title: str,
        body: str,
        severity: Severity = Severity.INFO,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Deliver one notification.

        Raises:
            NotificationError: If delivery failed
        """

    async def aclose(self) -> None:
        return None


class NullNotifier(Notifier):
    async def notify(
        self,
        title: str,
        body: str,
        severity: Severity = Severity.INFO,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        logger.debug("notification_dropped", title=title)


class WebhookNotifier(Notifier):
    """Posts Discord-style embeds to a log webhook and a chat webhook.

    Lifecycle events go to the log webhook; chat relays, roster changes and
    status reports go to the chat webhook (`metadata["channel"] == "chat"`).
    A channel without a URL is silently disabled.
    """

    def __init__(
        self,
        log_webhook: str | None,
        chat_webhook: str | None = None,
        *,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._urls = {"log": log_webhook, "chat": chat_webhook}
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))
        self._owns_client = client is None

    @property
    def enabled(self) -> bool:
        return any(self._urls.values())

    async def notify(
        self,
        title: str,
        body: str,
        severity: Severity = Severity.INFO,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        metadata = metadata or {}
        channel = metadata.get("channel", "log")
        url = self._urls.get(channel)
        if not url:
            return
        payload = {"embeds": [build_embed(title, body, severity, metadata)]}
        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"{channel} webhook delivery failed: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_embed(title: str, body: str, severity: Severity, metadata: dict[str, Any]) -> dict[str, Any]:
    embed: dict[str, Any] = {
        "description": body,
        "color": EMBED_COLORS.get(severity, EMBED_COLORS[Severity.INFO]),
        "timestamp": datetime.now(UTC).isoformat(),
    }
    author = metadata.get("author")
    if author:
        embed["author"] = {"name": author}
    else:
        embed["title"] = title
    fields = metadata.get("fields")
    if fields:
        embed["fields"] = [
            {"name": str(name), "value": str(value), "inline": True} for name, value in fields.items()
        ]
    return embed
