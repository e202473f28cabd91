"""Tests for the session lifecycle manager."""

from __future__ import annotations

import asyncio

import pytest

from afkguard.core.lifecycle import LifecycleState
from afkguard.session.base import ChatMessage, SessionEnded, SessionEstablished, Vec3
from afkguard.session.simulated import SimulatedSession


@pytest.mark.asyncio
async def test_start_connects_and_stop_goes_idle(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager()

    assert manager.start() is True
    assert manager.state is LifecycleState.CONNECTING
    assert manager.start() is False
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)

    assert manager.generation == 1
    assert manager.is_current(1) is factory.last
    assert manager.scheduler.running
    assert manager.monitor.running
    assert len(manager.navigator.waypoints) == 24

    await manager.stop()
    await manager.notifications.drain()

    assert manager.state is LifecycleState.IDLE
    assert manager.session is None
    assert not manager.reconnector.has_pending()
    assert not manager.scheduler.running
    assert "connected" in notifier.kinds()
    stopped = [body for _, body, _, meta in notifier.sent if meta["kind"] == "disconnected"]
    assert stopped == ["lookAt was disconnected. Reason: stopped."]


@pytest.mark.asyncio
async def test_clean_reconnect_cycle(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager()
    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)
    first = factory.last

    first.end("server restarting")

    assert manager.state is LifecycleState.RECONNECTING
    assert manager.session is None
    assert manager.is_current(1) is None
    assert manager.reconnector.has_pending()
    assert not manager.scheduler.running
    assert manager.last_disconnect_reason == "server restarting"

    await eventually(lambda: manager.generation == 2 and manager.state is LifecycleState.CONNECTED)

    assert len(factory.sessions) == 2
    assert factory.last is not first
    assert manager.reconnector.state.attempts == 0
    assert not first.is_connected()
    await manager.notifications.drain()
    assert notifier.kinds().count("disconnected") == 1
    await manager.stop()
    assert "reconnect_scheduled" in notifier.kinds()


@pytest.mark.asyncio
async def test_duplicate_and_stale_terminal_events_are_ignored(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager()
    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)

    manager.handle_event(1, SessionEnded("first"))
    manager.handle_event(1, SessionEnded("second"))

    assert manager.reconnector.state.attempts == 1
    assert manager.last_disconnect_reason == "first"

    await eventually(lambda: manager.generation == 2 and manager.state is LifecycleState.CONNECTED)
    manager.handle_event(1, SessionEnded("late event from old session"))

    assert manager.state is LifecycleState.CONNECTED
    assert manager.session is factory.last
    await manager.stop()


@pytest.mark.asyncio
async def test_explicit_start_cancels_pending_reconnect(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager()
    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)
    factory.last.kick("afk")
    assert manager.reconnector.has_pending()

    assert manager.start() is True

    assert not manager.reconnector.has_pending()
    assert manager.generation == 2
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)
    await asyncio.sleep(settings.reconnect.base_delay_s * 2)
    assert len(factory.sessions) == 2
    await manager.stop()


@pytest.mark.asyncio
async def test_stop_while_reconnecting_never_reconnects(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager()
    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)
    factory.last.end()

    await manager.stop()
    await asyncio.sleep(settings.reconnect.base_delay_s * 3)

    assert manager.state is LifecycleState.IDLE
    assert len(factory.sessions) == 1


@pytest.mark.asyncio
async def test_refused_connection_schedules_reconnect(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager(refuse_connect=True)

    manager.start()
    await eventually(lambda: manager.reconnector.state.attempts >= 1)

    assert "connection refused" in (manager.last_disconnect_reason or "")
    await manager.stop()
    await manager.notifications.drain()
    assert "connect_failed" in notifier.kinds()


@pytest.mark.asyncio
async def test_repeated_failures_enter_cooldown(settings, notifier, make_manager, eventually) -> None:
    settings.reconnect.base_delay_s = 0.01
    settings.reconnect.multiplier = 1.0
    settings.reconnect.max_attempts = 3
    manager, factory = make_manager(refuse_connect=True)

    manager.start()
    await eventually(lambda: manager.reconnector.state.cooling_down)
    await asyncio.sleep(0.05)

    assert len(factory.sessions) == 4
    assert manager.reconnector.state.last_delay_s == settings.reconnect.cooldown_s
    await manager.stop()
    await manager.notifications.drain()
    assert "reconnect_cooldown" in notifier.kinds()


@pytest.mark.asyncio
async def test_login_timeout_terminates_attempt(settings, notifier, make_manager, eventually) -> None:
    settings.connect_timeout_s = 0.05
    manager, factory = make_manager(spawn_delay_s=10)

    manager.start()
    await eventually(lambda: manager.last_disconnect_reason is not None)

    assert manager.last_disconnect_reason == "login timed out"
    await manager.stop()


@pytest.mark.asyncio
async def test_liveness_timeout_triggers_reconnect(settings, notifier, make_manager, eventually) -> None:
    settings.liveness.timeout_s = 0.05
    settings.liveness.check_interval_s = 0.02
    manager, factory = make_manager(tick_interval_s=10)

    manager.start()
    await eventually(lambda: manager.generation >= 2)
    await manager.stop()
    await manager.notifications.drain()

    assert "liveness_timeout" in notifier.kinds()
    assert len(factory.sessions) >= 2


@pytest.mark.asyncio
async def test_only_fatal_errors_reconnect(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager()
    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)

    factory.last.fail(ValueError("bad packet field"))
    assert manager.state is LifecycleState.CONNECTED

    factory.last.fail(ValueError("unrecoverable"), fatal=True)
    assert manager.state is LifecycleState.RECONNECTING
    await manager.stop()


@pytest.mark.asyncio
async def test_spectator_mode_change_regenerates_waypoints(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager()
    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)
    session = factory.last
    session.teleport(Vec3(500.0, 90.0, 500.0))

    session.set_mode("spectator")
    await manager.notifications.drain()

    assert manager.navigator.center == Vec3(500.0, 90.0, 500.0)
    assert "waypoints" in notifier.kinds()
    assert "mode_changed" in notifier.kinds()
    await manager.stop()


@pytest.mark.asyncio
async def test_chat_and_roster_relay_skip_own_name(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager(players=["alex"])
    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)
    session = factory.last

    session.emit(ChatMessage(username="lookAt", message="echo"))
    session.emit(ChatMessage(username="alex", message="hi there"))
    session.join("steve")
    await manager.notifications.drain()

    chats = [(body, meta) for _, body, _, meta in notifier.sent if meta["kind"] == "chat"]
    assert chats == [("hi there", {"kind": "chat", "channel": "chat", "author": "alex"})]
    joined = [meta for *_, meta in notifier.sent if meta["kind"] == "player_joined"]
    assert joined[0]["fields"] == {"Current Players": 2}
    await manager.stop()


@pytest.mark.asyncio
async def test_status_snapshot(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager(spawn=(10.7, 64.2, -3.4))

    idle = manager.status()
    assert idle.connected is False
    assert idle.state == "idle"
    assert idle.position is None

    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)
    snapshot = manager.status()

    assert snapshot.connected is True
    assert snapshot.message == "Keeper is running"
    assert snapshot.position is not None
    assert (snapshot.position.x, snapshot.position.y, snapshot.position.z) == (10, 64, -4)
    assert snapshot.mode == "survival"
    assert snapshot.generation == 1
    assert snapshot.reconnect_attempts == 0
    await manager.stop()


class BlindSession(SimulatedSession):
    """Session whose position lookup fails once it has spawned."""

    def get_position(self):
        raise RuntimeError("position unavailable")


class StickyHandlerSession(SimulatedSession):
    """Session whose first handler detach fails."""

    detach_failures = 1

    def clear_event_handler(self) -> None:
        if self.detach_failures:
            self.detach_failures -= 1
            raise RuntimeError("handler locked")
        super().clear_event_handler()


class EarlyLoginSession(SimulatedSession):
    """Session that reports establishment from inside connect()."""

    finished_connect = False

    async def connect(self) -> None:
        self._connected = True
        self.teleport(Vec3(0.0, 64.0, 0.0))
        self.emit(SessionEstablished())
        await asyncio.sleep(0)
        self.finished_connect = True


@pytest.mark.asyncio
async def test_established_handler_failure_tears_down(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager(session_class=BlindSession)

    manager.start()
    await eventually(lambda: manager.last_disconnect_reason is not None)

    assert manager.last_disconnect_reason == "handler failure on SessionEstablished"
    assert manager.state is LifecycleState.RECONNECTING
    assert manager.session is None
    assert not manager.monitor.running
    assert not manager.scheduler.running
    assert manager.reconnector.has_pending()
    await manager.stop()


@pytest.mark.asyncio
async def test_terminal_handler_failure_still_reconnects(settings, notifier, make_manager, eventually) -> None:
    manager, factory = make_manager(session_class=StickyHandlerSession)
    manager.start()
    await eventually(lambda: manager.state is LifecycleState.CONNECTED)

    factory.last.end("server closed")

    assert manager.state is LifecycleState.RECONNECTING
    assert manager.session is None
    assert not manager.scheduler.running
    assert manager.reconnector.has_pending()
    await eventually(lambda: manager.generation == 2 and manager.state is LifecycleState.CONNECTED)
    await manager.stop()
    assert manager.state is LifecycleState.IDLE


@pytest.mark.asyncio
async def test_established_inside_connect_lets_connect_finish(settings, make_manager, eventually) -> None:
    manager, factory = make_manager(session_class=EarlyLoginSession)

    manager.start()
    await eventually(lambda: factory.last.finished_connect)

    assert manager.state is LifecycleState.CONNECTED
    assert manager.session is factory.last
    await asyncio.wait_for(manager.stop(), timeout=settings.connect_timeout_s / 4)
    assert manager.state is LifecycleState.IDLE
