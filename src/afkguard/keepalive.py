# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Built-in keepalive actions run by the scheduler while connected."""

from __future__ import annotations

import os
import random
import resource
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from afkguard.constants import SPECTATOR_MODE
from afkguard.core.lifecycle import PATROL_ACTION
from afkguard.core.scheduler import ScheduledAction
from afkguard.logging import get_logger
from afkguard.notify.adapter import EventKind
from afkguard.notify.notifier import Severity

if TYPE_CHECKING:
    from afkguard.core.lifecycle import SessionLifecycleManager
    from afkguard.session.base import GameSession
    from afkguard.settings import ActionIntervals

logger = get_logger(__name__)

SPECTATOR_ONLY = frozenset({SPECTATOR_MODE})

# Minimum seconds between terrain moves of each kind.
FORWARD_SPACING_S = 10.0
JUMP_SPACING_S = 20.0


class KeepaliveStatus(BaseModel):
    action: str
    interval_s: float
    runs: int
    failures: int
    skipped: int


class KeepaliveActions:
    def __init__(
        self,
        manager: SessionLifecycleManager,
        intervals: ActionIntervals,
        rng: random.Random | None = None,
    ) -> None:
        self._manager = manager
        self._intervals = intervals
        self._rng = rng or random.Random()
        self._clock = manager.clock
        self._last_forward = 0.0
        self._last_jump = 0.0

    def build(self) -> list[ScheduledAction]:
        iv = self._intervals
        return [
            ScheduledAction("heartbeat", iv.heartbeat_s, self.heartbeat),
            ScheduledAction("look_around", iv.look_around_s, self.look_around),
            ScheduledAction("move", iv.move_s, self.move, skip_modes=SPECTATOR_ONLY),
            ScheduledAction(PATROL_ACTION, iv.patrol_s, self.patrol, only_modes=SPECTATOR_ONLY),
            ScheduledAction(
                "send_status",
                iv.status_report_s,
                self.send_status,
                initial_delay_s=iv.status_report_delay_s,
            ),
            ScheduledAction(
                "send_player_list",
                iv.player_list_s,
                self.send_player_list,
                initial_delay_s=iv.player_list_delay_s,
            ),
        ]

    def install(self) -> list[ScheduledAction]:
        actions = self.build()
        self._manager.scheduler.register_all(actions)
        return actions

    def status(self) -> list[dict[str, Any]]:
        out = []
        for action in self._manager.scheduler.actions.values():
            stats = self._manager.scheduler.stats.get(action.name)
            if stats is None:
                continue
            out.append(
                KeepaliveStatus(
                    action=action.name,
                    interval_s=action.interval_s,
                    runs=stats.runs,
                    failures=stats.failures,
                    skipped=stats.skipped_stale + stats.skipped_mode + stats.skipped_busy,
                ).model_dump()
            )
        return out

    # Actions

    async def heartbeat(self, session: GameSession) -> None:
        await session.send_keepalive()
        self._manager.monitor.observe()

    def look_around(self, session: GameSession) -> None:
        yaw, pitch = session.get_orientation()
        if session.current_mode() == SPECTATOR_MODE:
            yaw += self._rng.uniform(-0.25, 0.25)
            pitch += self._rng.uniform(-0.15, 0.15)
        else:
            yaw += self._rng.uniform(-0.15, 0.15)
            pitch += self._rng.uniform(-0.1, 0.1)
        session.set_orientation(yaw, pitch)
        self._manager.record_movement()

    async def move(self, session: GameSession) -> None:
        """Occasional terrain interaction: a short step forward or a jump."""
        roll = self._rng.random()
        now = self._clock()
        if roll < 0.5 and now - self._last_forward > FORWARD_SPACING_S:
            self._last_forward = now
            await session.pulse_control("forward", 0.5)
        elif roll < 0.6 and now - self._last_jump > JUMP_SPACING_S:
            self._last_jump = now
            await session.pulse_control("jump", 0.2)
        else:
            return
        self._manager.record_movement()

    async def patrol(self, session: GameSession) -> None:
        navigator = self._manager.navigator
        if navigator.ascending:
            return
        if navigator.needs_ascent(session.get_position()):
            logger.info("patrol_outside_safety_band", position=session.get_position())
            generation = self._manager.generation
            navigator.start_ascent(session, lambda: self._manager.is_current(generation) is session)
            return
        if await navigator.visit_next(session) is not None:
            self._manager.record_movement()

    def send_status(self, session: GameSession) -> None:
        manager = self._manager
        uptime = int(manager.uptime())
        hours, rem = divmod(uptime, 3600)
        minutes, seconds = divmod(rem, 60)
        position = session.get_position()
        pos_text = (
            f"X: {position.x:.0f}, Y: {position.y:.0f}, Z: {position.z:.0f}" if position is not None else "Unknown"
        )
        moving = manager.last_movement_at is not None and self._clock() - manager.last_movement_at < 5.0
        ping = session.ping_ms()
        fields = {
            "Uptime": f"{hours}h {minutes}m {seconds}s",
            "Position": pos_text,
            "Game Mode": session.current_mode().title(),
            "Peak Memory": f"{_peak_rss_mb():.2f} MB",
            "Ping": f"{ping}ms" if ping is not None else "Unknown",
            "Movement Status": "✅ Moving" if moving else "❌ Static",
            "Movement Count": f"{manager.movement_count} moves",
            "Server Load": f"{os.getloadavg()[0]:.2f}",
            "Connection Attempts": str(manager.reconnector.state.attempts),
        }
        manager.notifications.notify(
            EventKind.STATUS_REPORT,
            f"Status report for {manager.endpoint.username}",
            fields=fields,
        )

    def send_player_list(self, session: GameSession) -> None:
        own_name = self._manager.endpoint.username
        peers = [peer for name, peer in sorted(session.players().items()) if name != own_name]
        if not peers:
            self._manager.notifications.notify(EventKind.PLAYER_LIST, "No players online")
            return
        fields = {
            peer.username: (
                f"Ping: {peer.ping_ms if peer.ping_ms is not None else 'N/A'}ms | "
                f"In Range: {'Yes' if peer.in_range else 'No'}"
            )
            for peer in peers
        }
        self._manager.notifications.notify(
            EventKind.PLAYER_LIST,
            f"{len(peers)} player(s) online",
            Severity.INFO,
            fields=fields,
        )


def _peak_rss_mb() -> float:
    # ru_maxrss is reported in KiB on Linux.
    return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024
