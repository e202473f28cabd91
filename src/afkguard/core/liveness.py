# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Session liveness: staleness and stuck detection."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from afkguard.logging import get_logger

if TYPE_CHECKING:
    from afkguard.session.base import GameSession, Vec3
    from afkguard.settings import LivenessConfig

logger = get_logger(__name__)


@dataclass
class LivenessRecord:
    last_activity: float
    last_position: Vec3 | None = None
    distance_moved: float = 0.0
    stuck_counter: int = 0
    corrections: int = 0


class LivenessMonitor:
    """Tracks activity and movement of the current session.

    Staleness (no activity for `timeout_s`) is reported through `on_stale`
    and is handled like a terminal session event. Being stuck (no movement
    beyond `stuck_epsilon` for `stuck_threshold` consecutive checks) is
    reported through `on_stuck` and only triggers a corrective action.
    """

    def __init__(
        self,
        config: LivenessConfig,
        resolve_session: Callable[[int], GameSession | None],
        *,
        on_stale: Callable[[int, float], Any],
        on_stuck: Callable[[int, GameSession], Any],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._resolve = resolve_session
        self._on_stale = on_stale
        self._on_stuck = on_stuck
        self._clock = clock
        self.record = LivenessRecord(last_activity=clock())
        self._task: asyncio.Task[None] | None = None
        self._generation: int | None = None

    def observe(self) -> None:
        """Record activity (heartbeat, physics tick, successful action)."""
        self.record.last_activity = self._clock()

    def activity_age(self) -> float:
        return max(0.0, self._clock() - self.record.last_activity)

    def reset(self) -> None:
        self.record = LivenessRecord(last_activity=self._clock())

    def forget_position(self) -> None:
        """Drop the movement baseline (after a mode change or teleport)."""
        self.record.last_position = None
        self.record.stuck_counter = 0

    def check_staleness(self) -> bool:
        """Report the session as dead if no activity was seen within the timeout.

        Returns:
            True if the session is stale
        """
        age = self.activity_age()
        if age <= self._config.timeout_s:
            return False
        generation = self._generation
        logger.warning("liveness_timeout", age_s=round(age, 1), timeout_s=self._config.timeout_s)
        if generation is not None:
            self._on_stale(generation, age)
        return True

    def check_stuck(self, position: Vec3 | None) -> bool:
        """Compare a position sample with the previous one.

        Returns:
            True if the stuck threshold was reached and a correction was requested
        """
        if position is None:
            return False
        record = self.record
        previous = record.last_position
        record.last_position = position
        if previous is None:
            return False
        moved = position.distance_to(previous)
        record.distance_moved = moved
        if moved >= self._config.stuck_epsilon:
            record.stuck_counter = 0
            return False
        record.stuck_counter += 1
        if record.stuck_counter < self._config.stuck_threshold:
            return False
        logger.warning("session_stuck", checks=record.stuck_counter, epsilon=self._config.stuck_epsilon)
        record.stuck_counter = 0
        record.corrections += 1
        generation = self._generation
        session = self._resolve(generation) if generation is not None else None
        if session is not None:
            self._on_stuck(generation, session)
        return True

    def start(self, generation: int) -> None:
        self.stop()
        self.reset()
        self._generation = generation
        self._task = asyncio.create_task(self._loop(generation), name="liveness")

    def stop(self) -> None:
        self._generation = None
        task = self._task
        self._task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self, generation: int) -> None:
        stuck_modes = set(self._config.stuck_modes)
        with contextlib.suppress(asyncio.CancelledError):
            while True:
                await asyncio.sleep(self._config.check_interval_s)
                session = self._resolve(generation)
                if session is None:
                    continue
                try:
                    if self.check_staleness():
                        return
                    if not stuck_modes or session.current_mode() in stuck_modes:
                        self.check_stuck(session.get_position())
                except Exception:
                    logger.exception("liveness_check_failed", generation=generation)
