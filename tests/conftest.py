# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from afkguard.core.lifecycle import SessionLifecycleManager
from afkguard.notify.adapter import NotificationAdapter
from afkguard.notify.notifier import Notifier, Severity
from afkguard.session.base import Endpoint
from afkguard.session.simulated import SimulatedSession
from afkguard.settings import (
    ActionIntervals,
    LivenessConfig,
    NavigationConfig,
    ReconnectConfig,
    Settings,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str, Severity, dict[str, Any]]] = []
        self.fail = fail

    async def notify(
        self,
        title: str,
        body: str,
        severity: Severity = Severity.INFO,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self.fail:
            raise RuntimeError("webhook down")
        self.sent.append((title, body, severity, metadata or {}))

    def kinds(self) -> list[str]:
        return [metadata.get("kind", "") for *_, metadata in self.sent]


class SessionRecorder:
    """Session factory that keeps every session it created."""

    def __init__(self, session_class: type[SimulatedSession] = SimulatedSession, **options: Any) -> None:
        self.session_class = session_class
        self.options = {"spawn_delay_s": 0.01, "tick_interval_s": 0.05, **options}
        self.sessions: list[SimulatedSession] = []

    def __call__(self, endpoint: Endpoint) -> SimulatedSession:
        session = self.session_class(endpoint, seed=len(self.sessions) + 1, **self.options)
        self.sessions.append(session)
        return session

    @property
    def last(self) -> SimulatedSession:
        return self.sessions[-1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint(host="mc.example.org", port=25565, username="lookAt", version="1.21.1")


@pytest.fixture
def settings() -> Settings:
    """Settings with short delays so lifecycle tests finish quickly."""
    return Settings(
        host="mc.example.org",
        port=25565,
        username="lookAt",
        connect_timeout_s=2.0,
        reconnect=ReconnectConfig(
            base_delay_s=0.05,
            multiplier=1.5,
            max_delay_s=1.0,
            max_attempts=5,
            window_s=600,
            cooldown_s=30,
        ),
        liveness=LivenessConfig(timeout_s=30, check_interval_s=30),
        actions=ActionIntervals(
            heartbeat_s=100,
            look_around_s=100,
            move_s=100,
            patrol_s=100,
            status_report_s=100,
            player_list_s=100,
        ),
        navigation=NavigationConfig(ascent_step_delay_s=0),
    )


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    """Poll a predicate on the running loop until it holds."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("condition not reached before timeout")
            await asyncio.sleep(0.01)

    return _wait


@pytest.fixture
def make_manager(settings: Settings, notifier: RecordingNotifier):
    """Build a lifecycle manager over recorded simulated sessions."""

    def _make(**options: Any) -> tuple[SessionLifecycleManager, SessionRecorder]:
        factory = SessionRecorder(**options)
        manager = SessionLifecycleManager(settings, factory, NotificationAdapter(notifier))
        return manager, factory

    return _make


@pytest.fixture
def failing_notifier() -> RecordingNotifier:
    return RecordingNotifier(fail=True)
