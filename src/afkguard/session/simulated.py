# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-process simulated game session (deterministic).

Used for dry runs (`afkguard run --simulate`) and tests. It spawns after a
short delay, emits activity ticks, and can inject disconnects, kicks and
connection failures at fixed times so runs are repeatable.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
import random
from typing import Any

from afkguard.logging import get_logger
from afkguard.session.base import (
    Activity,
    Endpoint,
    GameSession,
    ModeChanged,
    PeerInfo,
    PlayerJoined,
    PlayerLeft,
    SessionErrored,
    SessionEnded,
    SessionEstablished,
    SessionKicked,
    Vec3,
)

logger = get_logger(__name__)


class SimulatedSession(GameSession):
    def __init__(
        self,
        endpoint: Endpoint,
        *,
        seed: int = 1,
        mode: str = "survival",
        spawn: tuple[float, float, float] = (0.0, 64.0, 0.0),
        spawn_delay_s: float = 0.05,
        tick_interval_s: float = 1.0,
        end_after_s: float = 0,
        kick_after_s: float = 0,
        refuse_connect: bool = False,
        players: list[str] | None = None,
        label: str = "sim",
        **_: Any,
    ) -> None:
        super().__init__(endpoint)
        self._rng = random.Random(int(seed))
        self._mode = mode
        self._spawn = Vec3(*spawn)
        self._position: Vec3 | None = None
        self._yaw = 0.0
        self._pitch = 0.0
        self._spawn_delay_s = max(0.0, float(spawn_delay_s))
        self._tick_interval_s = float(tick_interval_s)
        self._end_after_s = float(end_after_s or 0)
        self._kick_after_s = float(kick_after_s or 0)
        self._refuse_connect = refuse_connect
        self._players = {
            name: PeerInfo(username=name, ping_ms=self._rng.randint(20, 120)) for name in (players or [])
        }
        self._label = label
        self._connected = False
        self._task: asyncio.Task[None] | None = None
        self.keepalives_sent = 0
        self.moves: list[Vec3] = []
        self.pulses: list[str] = []

    async def connect(self) -> None:
        if self._refuse_connect:
            raise ConnectionRefusedError(f"{self._label}: connection refused by {self.endpoint}")
        self._connected = True
        self._task = asyncio.create_task(self._run())
        logger.debug("simulated_connect", endpoint=str(self.endpoint), label=self._label)

    async def close(self) -> None:
        self.clear_event_handler()
        self._connected = False
        task = self._task
        self._task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        await asyncio.sleep(self._spawn_delay_s)
        if not self._connected:
            return
        self._position = self._spawn
        self.emit(SessionEstablished())
        started = loop.time()
        while self._connected:
            await asyncio.sleep(self._tick_interval_s)
            if not self._connected:
                return
            elapsed = loop.time() - started
            if self._kick_after_s and elapsed >= self._kick_after_s:
                self._connected = False
                self.emit(SessionKicked(f"{self._label}: kicked after {elapsed:.0f}s"))
                return
            if self._end_after_s and elapsed >= self._end_after_s:
                self._connected = False
                self.emit(SessionEnded(f"{self._label}: server closed after {elapsed:.0f}s"))
                return
            self.emit(Activity())

    # Fault injection and scripted events

    def end(self, reason: str = "server closed") -> None:
        self._connected = False
        self.emit(SessionEnded(reason))

    def kick(self, reason: str = "idle too long") -> None:
        self._connected = False
        self.emit(SessionKicked(reason))

    def fail(self, error: BaseException, fatal: bool | None = None) -> None:
        self.emit(SessionErrored(error, fatal))

    def set_mode(self, mode: str) -> None:
        if mode == self._mode:
            return
        self._mode = mode
        self.emit(ModeChanged(mode))

    def join(self, username: str) -> None:
        self._players[username] = PeerInfo(username=username, ping_ms=self._rng.randint(20, 120))
        self.emit(PlayerJoined(username))

    def leave(self, username: str) -> None:
        self._players.pop(username, None)
        self.emit(PlayerLeft(username))

    def teleport(self, position: Vec3) -> None:
        self._position = position

    # GameSession interface

    def is_connected(self) -> bool:
        return self._connected

    def current_mode(self) -> str:
        return self._mode

    def get_position(self) -> Vec3 | None:
        return self._position

    def get_orientation(self) -> tuple[float, float]:
        return self._yaw, self._pitch

    def set_orientation(self, yaw: float, pitch: float) -> None:
        self._require_connected()
        self._yaw = yaw
        self._pitch = max(-math.pi / 2, min(math.pi / 2, pitch))

    async def move_toward(self, target: Vec3) -> None:
        self._require_connected()
        self._position = target
        self.moves.append(target)

    async def pulse_control(self, control: str, duration_s: float) -> None:
        self._require_connected()
        self.pulses.append(control)
        await asyncio.sleep(max(0.0, duration_s))
        if control == "forward" and self._position is not None:
            step = 0.5
            self._position = Vec3(
                self._position.x - math.sin(self._yaw) * step,
                self._position.y,
                self._position.z + math.cos(self._yaw) * step,
            )

    async def send_keepalive(self) -> None:
        self._require_connected()
        self.keepalives_sent += 1

    def players(self) -> dict[str, PeerInfo]:
        return dict(self._players)

    def ping_ms(self) -> int | None:
        return 42 if self._connected else None

    def _require_connected(self) -> None:
        if not self._connected:
            raise ConnectionError(f"{self._label}: not connected")
