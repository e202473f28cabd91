# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Reconnection scheduling with exponential backoff and cooldown."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from afkguard.logging import get_logger
from afkguard.settings import ReconnectConfig

logger = get_logger(__name__)


@dataclass
class ReconnectionAttemptState:
    attempts: int = 0
    last_scheduled_at: float | None = None
    last_delay_s: float | None = None
    # Monotonic timestamps of attempts inside the rolling window.
    recent_attempts: deque[float] = field(default_factory=deque)
    cooling_down: bool = False
    timer: asyncio.TimerHandle | None = None


class ReconnectionController:
    """Schedules the next connection attempt.

    At most one timer is pending at any time. The delay follows
    `min(base * multiplier ** attempts, cap)` until `max_attempts` attempts
    have accumulated inside the rolling window, after which one fixed
    cooldown is used and the attempt history is cleared when it fires.
    """

    def __init__(
        self,
        config: ReconnectConfig,
        on_fire: Callable[[], Any],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._on_fire = on_fire
        self._clock = clock
        self.state = ReconnectionAttemptState()

    def compute_delay(self, attempts: int) -> float:
        """Exponential delay for the given number of prior attempts."""
        cfg = self._config
        return min(cfg.base_delay_s * cfg.multiplier**attempts, cfg.max_delay_s)

    def has_pending(self) -> bool:
        return self.state.timer is not None

    def schedule_reconnect(self, reason: str = "") -> float | None:
        """Schedule one reconnection attempt.

        Args:
            reason: Why the session was lost, for logging only

        Returns:
            The chosen delay in seconds, or None if a timer was already pending
        """
        state = self.state
        if state.timer is not None:
            logger.debug("reconnect_already_pending", reason=reason)
            return None

        now = self._clock()
        cfg = self._config
        if state.last_scheduled_at is not None and now - state.last_scheduled_at > cfg.window_s:
            # Long stable period since the last attempt; start the curve over.
            state.attempts = 0
            state.recent_attempts.clear()
        while state.recent_attempts and now - state.recent_attempts[0] > cfg.window_s:
            state.recent_attempts.popleft()

        cooldown = len(state.recent_attempts) >= cfg.max_attempts
        delay = cfg.cooldown_s if cooldown else self.compute_delay(state.attempts)

        state.attempts += 1
        state.recent_attempts.append(now)
        state.last_scheduled_at = now
        state.last_delay_s = delay
        state.cooling_down = cooldown

        loop = asyncio.get_running_loop()
        state.timer = loop.call_later(delay, self._fire, cooldown)

        if cooldown:
            logger.warning(
                "reconnect_cooldown",
                attempts=state.attempts,
                window_s=cfg.window_s,
                delay_s=delay,
                reason=reason,
            )
        else:
            logger.info("reconnect_scheduled", attempt=state.attempts, delay_s=round(delay, 2), reason=reason)
        return delay

    def _fire(self, cooldown: bool) -> None:
        state = self.state
        state.timer = None
        if cooldown:
            state.attempts = 0
            state.recent_attempts.clear()
            state.cooling_down = False
        try:
            self._on_fire()
        except Exception:
            logger.exception("reconnect_start_failed")

    def cancel(self) -> bool:
        """Cancel the pending timer, if any.

        Returns:
            True if a timer was cancelled
        """
        timer = self.state.timer
        if timer is None:
            return False
        timer.cancel()
        self.state.timer = None
        self.state.cooling_down = False
        logger.debug("reconnect_cancelled")
        return True

    def reset(self) -> None:
        """Clear backoff history after a successful connection."""
        self.state.attempts = 0
        self.state.recent_attempts.clear()
        self.state.cooling_down = False

    def status(self) -> dict[str, Any]:
        state = self.state
        return {
            "attempts": state.attempts,
            "pending": state.timer is not None,
            "cooling_down": state.cooling_down,
            "last_delay_s": state.last_delay_s,
        }
