# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Single-session lifecycle: connect, keep alive, tear down, reconnect.

The manager owns exactly one session at a time. Every session gets a new
generation number and every callback (session events, scheduled actions,
liveness checks) carries the generation it was created under; anything that
arrives for an older generation is ignored. All state changes happen in
synchronous sections on the event loop, so they never interleave.
"""

from __future__ import annotations

import asyncio
import math
import random
import time
from enum import StrEnum
from functools import partial
from typing import TYPE_CHECKING, Any

from afkguard.constants import MODE_CHANGE_PATROL_DELAY_S, SPECTATOR_MODE
from afkguard.core.liveness import LivenessMonitor
from afkguard.core.navigation import SpectatorNavigator
from afkguard.core.reconnect import ReconnectionController
from afkguard.core.scheduler import ActionScheduler
from afkguard.errors import is_reconnect_triggering
from afkguard.logging import get_logger
from afkguard.notify.adapter import EventKind, NotificationAdapter
from afkguard.notify.notifier import NullNotifier, Severity
from afkguard.session.base import (
    Activity,
    ChatMessage,
    Endpoint,
    ModeChanged,
    PlayerJoined,
    PlayerLeft,
    SessionEnded,
    SessionErrored,
    SessionEstablished,
    SessionKicked,
    TERMINAL_EVENTS,
)
from afkguard.status import Position, StatusSnapshot

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from afkguard.session.base import GameSession, SessionEvent
    from afkguard.session.loader import SessionFactory
    from afkguard.settings import Settings

logger = get_logger(__name__)

PATROL_ACTION = "spectator_patrol"

# A handler failure on any of these tears the generation down.
SETTLING_EVENTS = (SessionEstablished, SessionErrored, *TERMINAL_EVENTS)


class LifecycleState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class SessionLifecycleManager:
    def __init__(
        self,
        settings: Settings,
        session_factory: SessionFactory,
        notifications: NotificationAdapter | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        host, port = settings.endpoint
        self.settings = settings
        self.endpoint = Endpoint(host=host, port=port, username=settings.username, version=settings.game_version)
        self._factory = session_factory
        self.notifications = notifications or NotificationAdapter(NullNotifier())
        self._clock = clock

        self.state = LifecycleState.IDLE
        self._session: GameSession | None = None
        self._generation = 0
        self._connected_at: float | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._login_timer: asyncio.TimerHandle | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self.last_disconnect_reason: str | None = None
        self.movement_count = 0
        self.last_movement_at: float | None = None

        self.scheduler = ActionScheduler(self.is_current)
        self.monitor = LivenessMonitor(
            settings.liveness,
            self.is_current,
            on_stale=self._on_stale,
            on_stuck=self._on_stuck,
            clock=clock,
        )
        self.reconnector = ReconnectionController(settings.reconnect, self._on_reconnect_timer, clock=clock)
        self.navigator = SpectatorNavigator(settings.navigation, rng)

    # Generation guard

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    @property
    def session(self) -> GameSession | None:
        return self._session

    def is_current(self, generation: int) -> GameSession | None:
        """Return the live session if `generation` is still the connected one."""
        if generation != self._generation or self.state is not LifecycleState.CONNECTED:
            return None
        return self._session

    def _accepts(self, generation: int) -> bool:
        return generation == self._generation and self.state in (LifecycleState.CONNECTING, LifecycleState.CONNECTED)

    # Transitions

    def start(self) -> bool:
        """Begin a new connection attempt; establishment is asynchronous.

        Returns:
            False if a session is already connecting or connected
        """
        if self.state not in (LifecycleState.IDLE, LifecycleState.RECONNECTING):
            logger.warning("start_ignored", state=self.state.value, generation=self._generation)
            return False
        self.reconnector.cancel()

        self._generation += 1
        generation = self._generation
        self.state = LifecycleState.CONNECTING
        logger.info("session_connecting", endpoint=str(self.endpoint), generation=generation)

        try:
            session = self._factory(self.endpoint)
        except Exception as e:
            logger.exception("session_create_failed", generation=generation)
            self._terminate(generation, f"session creation failed: {e}", EventKind.CONNECT_FAILED)
            return False

        self._session = session
        session.set_event_handler(partial(self.handle_event, generation))
        self._connect_task = self._spawn(self._connect(session, generation), name=f"connect:{generation}")
        return True

    async def _connect(self, session: GameSession, generation: int) -> None:
        timeout_s = self.settings.connect_timeout_s
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        try:
            await asyncio.wait_for(session.connect(), timeout=timeout_s)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            reason = "connect timed out" if isinstance(e, TimeoutError) else f"connect failed: {e}"
            logger.warning("session_connect_failed", generation=generation, error=str(e) or type(e).__name__)
            self._terminate(generation, reason, EventKind.CONNECT_FAILED)
            return
        if not self._accepts(generation) or self.state is not LifecycleState.CONNECTING:
            return
        # The transport is open; the login must complete within the same budget.
        self._login_timer = loop.call_later(
            max(0.0, deadline - loop.time()), self._on_login_timeout, generation, timeout_s
        )

    def _on_login_timeout(self, generation: int, timeout_s: float) -> None:
        self._login_timer = None
        if self._accepts(generation) and self.state is LifecycleState.CONNECTING:
            logger.warning("session_establish_timeout", generation=generation, timeout_s=timeout_s)
            self._terminate(generation, "login timed out", EventKind.CONNECT_FAILED)

    def handle_event(self, generation: int, event: SessionEvent) -> None:
        """Single entry point for every session event."""
        if not self._accepts(generation):
            logger.debug("stale_event_ignored", event_type=type(event).__name__, generation=generation)
            return
        try:
            match event:
                case SessionEstablished():
                    self._on_established(generation)
                case SessionEnded(reason=reason):
                    self._terminate(generation, reason, EventKind.DISCONNECTED)
                case SessionKicked(reason=reason):
                    self._terminate(generation, reason, EventKind.KICKED)
                case SessionErrored(error=error, fatal=fatal):
                    self._on_error(generation, error, fatal)
                case ModeChanged(mode=mode):
                    self._on_mode_changed(generation, mode)
                case Activity():
                    self.monitor.observe()
                case ChatMessage() | PlayerJoined() | PlayerLeft():
                    self._relay(event)
        except Exception:
            logger.exception("event_handler_failed", event_type=type(event).__name__, generation=generation)
            if isinstance(event, SETTLING_EVENTS) and self._accepts(generation):
                self._terminate(generation, f"handler failure on {type(event).__name__}", EventKind.DISCONNECTED)

    def _on_established(self, generation: int) -> None:
        if self.state is LifecycleState.CONNECTED:
            return
        session = self._session
        assert session is not None
        self.state = LifecycleState.CONNECTED
        self._connected_at = self._clock()
        self._cancel_login_timer()
        self.reconnector.reset()

        position = session.get_position()
        if position is not None:
            self.navigator.regenerate(position)

        self.monitor.start(generation)
        self.scheduler.start(generation)
        mode = session.current_mode()
        logger.info(
            "session_connected",
            endpoint=str(self.endpoint),
            generation=generation,
            mode=mode,
            actions=self.scheduler.active_actions(mode),
        )
        self.notifications.notify(
            EventKind.CONNECTED,
            f"{self.endpoint.username} has joined {self.endpoint.host}:{self.endpoint.port}.",
            Severity.SUCCESS,
        )

    def _on_error(self, generation: int, error: BaseException, fatal: bool | None) -> None:
        if is_reconnect_triggering(error, fatal):
            logger.warning("session_error_fatal", generation=generation, error=str(error), type=type(error).__name__)
            self._terminate(generation, f"error: {error}", EventKind.DISCONNECTED)
        else:
            logger.warning("session_error", generation=generation, error=str(error), type=type(error).__name__)

    def _on_mode_changed(self, generation: int, mode: str) -> None:
        session = self.is_current(generation)
        if session is None:
            return
        self.monitor.forget_position()
        logger.info("session_mode_changed", mode=mode, actions=self.scheduler.active_actions(mode))
        if mode != SPECTATOR_MODE:
            return
        position = session.get_position()
        if position is not None:
            self.navigator.regenerate(position)
            self.notifications.notify(
                EventKind.WAYPOINTS,
                f"Generated {len(self.navigator.waypoints)} waypoints for spectator navigation.",
            )
        self.notifications.notify(EventKind.MODE_CHANGED, f"{self.endpoint.username} entered spectator mode.")
        self.scheduler.trigger_once(PATROL_ACTION, MODE_CHANGE_PATROL_DELAY_S)

    def _on_stale(self, generation: int, age_s: float) -> None:
        self._terminate(generation, f"no activity for {age_s:.0f}s", EventKind.LIVENESS_TIMEOUT)

    def _on_stuck(self, generation: int, session: GameSession) -> None:
        """Corrective action only; being stuck never forces a reconnect."""
        self.notifications.notify(
            EventKind.STUCK,
            "Position has not changed for too long. Forcing a position change.",
            Severity.WARNING,
        )
        if self.navigator.needs_ascent(session.get_position()):
            self.navigator.start_ascent(session, lambda: self.is_current(generation) is session)
        else:
            self._spawn(self._corrective_move(session, generation), name="corrective-move")

    async def _corrective_move(self, session: GameSession, generation: int) -> None:
        if self.is_current(generation) is not session:
            return
        if await self.navigator.visit_next(session) is not None:
            self.record_movement()

    def _terminate(self, generation: int, reason: str, kind: EventKind) -> bool:
        """Tear the session down and hand over to the reconnection controller.

        Returns:
            False if this generation was already torn down
        """
        if not self._accepts(generation):
            return False
        self._teardown(reason)
        self.state = LifecycleState.RECONNECTING
        severity = Severity.WARNING if kind is EventKind.CONNECT_FAILED else Severity.ERROR
        logger.warning("session_lost", reason=reason, kind=kind.value, generation=generation)
        self.notifications.notify(kind, f"{self.endpoint.username} was disconnected. Reason: {reason}.", severity)

        delay = self.reconnector.schedule_reconnect(reason)
        if delay is not None:
            attempts = self.reconnector.state.attempts
            if self.reconnector.state.cooling_down:
                self.notifications.notify(
                    EventKind.RECONNECT_COOLDOWN,
                    f"Too many reconnection attempts. Waiting {delay:.0f} seconds before retrying.",
                    Severity.ERROR,
                )
            else:
                self.notifications.notify(
                    EventKind.RECONNECT_SCHEDULED,
                    f"Attempting to reconnect in {delay:.0f} seconds (attempt {attempts}).",
                    Severity.WARNING,
                )
        return True

    def _teardown(self, reason: str) -> None:
        session = self._session
        self._session = None
        self._connected_at = None
        self.last_disconnect_reason = reason
        steps = (
            self.scheduler.stop,
            self.monitor.stop,
            self.navigator.cancel_ascent,
            self._cancel_connect_task,
            self._cancel_login_timer,
        )
        if session is not None:
            steps += (session.clear_event_handler,)
        for step in steps:
            try:
                step()
            except Exception:
                logger.exception("teardown_step_failed", step=step.__name__)
        if session is not None:
            self._spawn(self._close_session(session), name="session-close")

    async def _close_session(self, session: GameSession) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.warning("session_close_failed", error=str(e))

    def _on_reconnect_timer(self) -> None:
        self.start()

    async def stop(self, reason: str = "stopped") -> None:
        """Shut down without reconnecting."""
        self.reconnector.cancel()
        was_live = self._session is not None
        if was_live or self.state is not LifecycleState.IDLE:
            self._teardown(reason)
        if was_live:
            self.notifications.notify(
                EventKind.DISCONNECTED,
                f"{self.endpoint.username} was disconnected. Reason: {reason}.",
                Severity.WARNING,
            )
        self.state = LifecycleState.IDLE
        logger.info("session_stopped", reason=reason, generation=self._generation)
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # Helpers

    def record_movement(self) -> None:
        self.movement_count += 1
        self.last_movement_at = self._clock()

    def uptime(self) -> float:
        if self._connected_at is None:
            return 0.0
        return max(0.0, self._clock() - self._connected_at)

    def _relay(self, event: SessionEvent) -> None:
        own_name = self.endpoint.username
        session = self._session
        online = 0
        if session is not None:
            online = len([name for name in session.players() if name != own_name])
        match event:
            case ChatMessage(username=username, message=message) if username != own_name:
                self.notifications.notify(EventKind.CHAT, message, author=username)
            case PlayerJoined(username=username) if username != own_name:
                self.notifications.notify(
                    EventKind.PLAYER_JOINED,
                    f"**{username}** joined the game.",
                    Severity.SUCCESS,
                    fields={"Current Players": online},
                )
            case PlayerLeft(username=username) if username != own_name:
                self.notifications.notify(
                    EventKind.PLAYER_LEFT,
                    f"**{username}** left the game.",
                    Severity.WARNING,
                    fields={"Current Players": online},
                )

    def _cancel_connect_task(self) -> None:
        task = self._connect_task
        self._connect_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def _cancel_login_timer(self) -> None:
        timer = self._login_timer
        self._login_timer = None
        if timer is not None:
            timer.cancel()

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("background_task_failed", task=task.get_name(), error=str(error))

    # Status

    def status(self) -> StatusSnapshot:
        """Side-effect-free snapshot for the status surface."""
        session = self._session if self.state is LifecycleState.CONNECTED else None
        connected = session is not None
        position = session.get_position() if session is not None else None
        players_online = 0
        if session is not None:
            players_online = len([name for name in session.players() if name != self.endpoint.username])
        return StatusSnapshot(
            connected=connected,
            state=self.state.value,
            message="Keeper is running" if connected else "Keeper is reconnecting",
            uptime_seconds=int(self.uptime()),
            position=Position(x=math.floor(position.x), y=math.floor(position.y), z=math.floor(position.z))
            if position
            else None,
            last_activity_age_seconds=round(self.monitor.activity_age(), 1) if connected else None,
            reconnect_attempts=self.reconnector.state.attempts,
            reconnect_pending=self.reconnector.has_pending(),
            mode=session.current_mode() if session is not None else None,
            generation=self._generation,
            players_online=players_online,
            waypoints=len(self.navigator.waypoints),
            movement_count=self.movement_count,
            last_disconnect_reason=self.last_disconnect_reason,
        )
