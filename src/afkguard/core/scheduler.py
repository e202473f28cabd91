# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Fixed-delay scheduler for keepalive actions.

Each registered action runs in its own task. The next firing is only
scheduled after the previous one has finished (or was skipped), so a single
action never overlaps itself. Every firing re-resolves the session through a
generation guard; a firing bound to a torn-down session is skipped and never
touches it.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from afkguard.logging import get_logger

if TYPE_CHECKING:
    from afkguard.session.base import GameSession

logger = get_logger(__name__)

ActionBody = Callable[["GameSession"], Awaitable[None] | None]
SessionResolver = Callable[[int], "GameSession | None"]


@dataclass
class ActionStats:
    runs: int = 0
    skipped_stale: int = 0
    skipped_mode: int = 0
    skipped_busy: int = 0
    failures: int = 0
    in_flight: bool = False


@dataclass
class ScheduledAction:
    name: str
    interval_s: float
    body: ActionBody
    initial_delay_s: float | None = None
    # None means every mode.
    only_modes: frozenset[str] | None = None
    skip_modes: frozenset[str] = field(default_factory=frozenset)

    def allows_mode(self, mode: str) -> bool:
        if mode in self.skip_modes:
            return False
        return self.only_modes is None or mode in self.only_modes

    @property
    def first_delay_s(self) -> float:
        return self.interval_s if self.initial_delay_s is None else self.initial_delay_s


class ActionScheduler:
    def __init__(self, resolve_session: SessionResolver) -> None:
        self._resolve = resolve_session
        self._actions: dict[str, ScheduledAction] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._oneshots: set[asyncio.Task[None]] = set()
        self._generation: int | None = None
        self.stats: dict[str, ActionStats] = {}

    @property
    def running(self) -> bool:
        return self._generation is not None

    @property
    def actions(self) -> dict[str, ScheduledAction]:
        return dict(self._actions)

    def register(self, action: ScheduledAction) -> None:
        """Add an action, replacing any action with the same name."""
        old = self._tasks.pop(action.name, None)
        if old is not None:
            old.cancel()
        self._actions[action.name] = action
        self.stats.setdefault(action.name, ActionStats())
        if self._generation is not None:
            self._spawn(action, self._generation)

    def register_all(self, actions: Iterable[ScheduledAction]) -> None:
        for action in actions:
            self.register(action)

    def unregister_all(self) -> None:
        """Remove every action and cancel its in-flight task."""
        self._cancel_tasks()
        self._actions.clear()

    def start(self, generation: int) -> None:
        """Start one loop per action bound to a session generation."""
        self._cancel_tasks()
        self._generation = generation
        for action in self._actions.values():
            self._spawn(action, generation)
        logger.debug("scheduler_started", generation=generation, actions=sorted(self._actions))

    def stop(self) -> None:
        """Cancel every timer synchronously."""
        if self._generation is not None:
            logger.debug("scheduler_stopped", generation=self._generation)
        self._generation = None
        self._cancel_tasks()

    def trigger_once(self, name: str, delay_s: float = 0.0) -> bool:
        """Fire an action once, out of band, under the same gating.

        Returns:
            False if the action is unknown or the scheduler is stopped
        """
        action = self._actions.get(name)
        generation = self._generation
        if action is None or generation is None:
            return False

        async def _once() -> None:
            await asyncio.sleep(delay_s)
            await self._fire(action, generation)

        task = asyncio.create_task(_once(), name=f"action-once:{name}")
        self._oneshots.add(task)
        task.add_done_callback(self._oneshots.discard)
        return True

    def active_actions(self, mode: str) -> list[str]:
        return sorted(name for name, action in self._actions.items() if action.allows_mode(mode))

    def _spawn(self, action: ScheduledAction, generation: int) -> None:
        self._tasks[action.name] = asyncio.create_task(self._loop(action, generation), name=f"action:{action.name}")

    def _cancel_tasks(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
        for task in list(self._oneshots):
            task.cancel()
        self._oneshots.clear()

    async def _loop(self, action: ScheduledAction, generation: int) -> None:
        delay = action.first_delay_s
        while True:
            await asyncio.sleep(delay)
            delay = action.interval_s
            await self._fire(action, generation)

    async def _fire(self, action: ScheduledAction, generation: int) -> None:
        stats = self.stats.setdefault(action.name, ActionStats())
        session = self._resolve(generation)
        if session is None:
            stats.skipped_stale += 1
            return
        if not action.allows_mode(session.current_mode()):
            stats.skipped_mode += 1
            return
        if stats.in_flight:
            # trigger_once overlapping the regular loop
            stats.skipped_busy += 1
            return
        stats.in_flight = True
        try:
            result: Any = action.body(session)
            if inspect.isawaitable(result):
                await result
            stats.runs += 1
        except asyncio.CancelledError:
            raise
        except Exception:
            stats.failures += 1
            logger.exception("action_failed", action=action.name, generation=generation)
        finally:
            stats.in_flight = False
