# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Fire-and-forget translation of lifecycle events into notifications."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Any

from afkguard.logging import get_logger
from afkguard.notify.notifier import Notifier, Severity

logger = get_logger(__name__)


class EventKind(StrEnum):
    STARTUP = "startup"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    KICKED = "kicked"
    CONNECT_FAILED = "connect_failed"
    LIVENESS_TIMEOUT = "liveness_timeout"
    RECONNECT_SCHEDULED = "reconnect_scheduled"
    RECONNECT_COOLDOWN = "reconnect_cooldown"
    MODE_CHANGED = "mode_changed"
    WAYPOINTS = "waypoints"
    STUCK = "stuck"
    STATUS_REPORT = "status_report"
    PLAYER_LIST = "player_list"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    CHAT = "chat"
    SHUTDOWN = "shutdown"


TITLES: dict[EventKind, str] = {
    EventKind.STARTUP: "🌐 Started",
    EventKind.CONNECTED: "✅ Connected",
    EventKind.DISCONNECTED: "⚠️ Disconnected",
    EventKind.KICKED: "🚫 Kicked",
    EventKind.CONNECT_FAILED: "❌ Connection Failed",
    EventKind.LIVENESS_TIMEOUT: "⚠️ Connection Timeout",
    EventKind.RECONNECT_SCHEDULED: "🔄 Reconnection",
    EventKind.RECONNECT_COOLDOWN: "⚠️ Reconnection Cooling",
    EventKind.MODE_CHANGED: "🔍 Mode Change",
    EventKind.WAYPOINTS: "🗺️ Waypoints Generated",
    EventKind.STUCK: "🚨 Stuck",
    EventKind.STATUS_REPORT: "🤖 Status Report",
    EventKind.PLAYER_LIST: "👥 Player List",
    EventKind.PLAYER_JOINED: "👤 Player Joined",
    EventKind.PLAYER_LEFT: "🚪 Player Left",
    EventKind.CHAT: "💬 Chat",
    EventKind.SHUTDOWN: "🛑 Stopped",
}

CHAT_CHANNEL_KINDS = frozenset(
    {
        EventKind.CHAT,
        EventKind.PLAYER_JOINED,
        EventKind.PLAYER_LEFT,
        EventKind.PLAYER_LIST,
        EventKind.STATUS_REPORT,
    }
)


class NotificationAdapter:
    """Schedules notifier calls as independent tasks.

    The caller never awaits delivery. Failures are logged and dropped; there
    are no retries and no ordering guarantee between notifications.
    """

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._pending: set[asyncio.Task[None]] = set()
        self.delivered = 0
        self.failed = 0

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def notify(
        self,
        kind: EventKind,
        text: str,
        severity: Severity = Severity.INFO,
        *,
        fields: dict[str, Any] | None = None,
        author: str | None = None,
    ) -> asyncio.Task[None] | None:
        metadata: dict[str, Any] = {
            "kind": kind.value,
            "channel": "chat" if kind in CHAT_CHANNEL_KINDS else "log",
        }
        if fields:
            metadata["fields"] = fields
        if author:
            metadata["author"] = author
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("notification_skipped_no_loop", kind=kind.value)
            return None
        task = loop.create_task(self._deliver(TITLES[kind], text, severity, metadata), name=f"notify:{kind.value}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, title: str, text: str, severity: Severity, metadata: dict[str, Any]) -> None:
        try:
            await self._notifier.notify(title, text, severity, metadata)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            logger.warning("notification_failed", kind=metadata["kind"], error=str(e))
            return
        self.delivered += 1

    async def drain(self, timeout_s: float = 5.0) -> None:
        """Wait for in-flight deliveries (shutdown and tests only)."""
        if not self._pending:
            return
        _, still_pending = await asyncio.wait(set(self._pending), timeout=timeout_s)
        for task in still_pending:
            task.cancel()
