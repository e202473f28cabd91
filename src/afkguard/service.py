# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Composition root: wires settings, session factory, notifier and manager."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import TYPE_CHECKING, Any

import uvicorn

from afkguard.app import create_app
from afkguard.core.lifecycle import SessionLifecycleManager
from afkguard.keepalive import KeepaliveActions
from afkguard.logging import get_logger
from afkguard.notify.adapter import EventKind, NotificationAdapter
from afkguard.notify.notifier import Notifier, NullNotifier, Severity, WebhookNotifier
from afkguard.session.loader import load_session_factory

if TYPE_CHECKING:
    from afkguard.session.loader import SessionFactory
    from afkguard.settings import Settings

logger = get_logger(__name__)


def build_notifier(settings: Settings) -> Notifier:
    if not (settings.log_webhook or settings.chat_webhook):
        logger.info("notifications_disabled", reason="no webhook configured")
        return NullNotifier()
    return WebhookNotifier(settings.log_webhook, settings.chat_webhook, timeout_s=settings.webhook_timeout_s)


class KeeperService:
    """Runs the lifecycle manager (and optional status server) until stopped."""

    def __init__(
        self,
        settings: Settings,
        *,
        session_factory: SessionFactory | None = None,
        notifier: Notifier | None = None,
        session_options: dict[str, Any] | None = None,
    ) -> None:
        self.settings = settings
        factory = session_factory or load_session_factory(settings.session_factory, **(session_options or {}))
        self.notifier = notifier or build_notifier(settings)
        self.notifications = NotificationAdapter(self.notifier)
        self.manager = SessionLifecycleManager(settings, factory, self.notifications)
        self.keepalive = KeepaliveActions(self.manager, settings.actions)
        self.keepalive.install()
        self._stopped: asyncio.Event | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task[None] | None = None

    def request_stop(self) -> None:
        if self._stopped is not None:
            self._stopped.set()

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        loop.set_exception_handler(_log_unhandled)
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_stop)

        logger.info("keeper_starting", endpoint=str(self.manager.endpoint), status_port=self.settings.status_port)
        self.manager.start()
        if self.settings.status_port is not None:
            self._start_status_server()
            self.notifications.notify(
                EventKind.STARTUP,
                f"Status server started on port {self.settings.status_port}",
            )
        try:
            await self._stopped.wait()
        finally:
            await self.shutdown()

    def _start_status_server(self) -> None:
        config = uvicorn.Config(
            create_app(self.manager, self.keepalive),
            host=self.settings.status_host,
            port=self.settings.status_port,
            log_level=self.settings.log_level.lower(),
        )
        self._server = uvicorn.Server(config)
        self._server_task = asyncio.create_task(self._server.serve(), name="status-server")
        # uvicorn handles SIGINT itself; its exit means the process is stopping.
        self._server_task.add_done_callback(lambda _: self.request_stop())

    async def shutdown(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        await self.manager.stop("shutdown")
        self.notifications.notify(EventKind.SHUTDOWN, "Keeper stopped.", Severity.WARNING)
        if self._server_task is not None:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._server_task
        await self.notifications.drain()
        await self.notifier.aclose()
        logger.info("keeper_stopped")


def _log_unhandled(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    error = context.get("exception")
    logger.error("unhandled_loop_error", message=context.get("message"), error=str(error) if error else None)
