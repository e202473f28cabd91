# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Spectator-mode patrol around a region centre.

Waypoints form concentric rings around the centre with a random vertical
offset clamped to the safety band. They are visited in a shuffled order,
cyclically, each visit turning to face the centre. When the viewpoint drifts
outside the safety band a forced ascent takes over until it is back inside,
then the waypoints are regenerated around the new position.
"""

from __future__ import annotations

import asyncio
import math
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from afkguard.logging import get_logger
from afkguard.session.base import Vec3

if TYPE_CHECKING:
    from afkguard.session.base import GameSession
    from afkguard.settings import NavigationConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class Waypoint:
    position: Vec3
    yaw: float
    pitch: float


def ring_layout(
    center: Vec3,
    *,
    rings: int,
    points_per_ring: int,
    ring_spacing: float,
    vertical_jitter: float,
    min_y: float,
    max_y: float,
    rng: random.Random,
) -> list[Waypoint]:
    """Generate waypoints on concentric rings around `center`.

    Ring `i` has radius `(i + 1) * ring_spacing` and `points_per_ring`
    equidistant points. Each point's yaw faces the centre.
    """
    waypoints: list[Waypoint] = []
    step = 2 * math.pi / points_per_ring
    for ring in range(rings):
        radius = (ring + 1) * ring_spacing
        for i in range(points_per_ring):
            angle = step * i
            x = center.x + math.cos(angle) * radius
            z = center.z + math.sin(angle) * radius
            y = center.y + rng.uniform(-vertical_jitter, vertical_jitter)
            y = min(max(y, min_y), max_y)
            waypoints.append(
                Waypoint(
                    position=Vec3(x, y, z),
                    yaw=face_toward(Vec3(x, y, z), center),
                    pitch=rng.uniform(-0.15, 0.15),
                )
            )
    return waypoints


def face_toward(origin: Vec3, target: Vec3) -> float:
    """Yaw (radians) that looks from origin toward target on the horizontal plane."""
    return math.atan2(-(target.x - origin.x), target.z - origin.z)


class SpectatorNavigator:
    def __init__(self, config: NavigationConfig, rng: random.Random | None = None) -> None:
        self.config = config
        self._rng = rng or random.Random()
        self.center: Vec3 | None = None
        self.waypoints: list[Waypoint] = []
        self._order: list[int] = []
        self._cursor = 0
        self._ascent: asyncio.Task[bool] | None = None

    def regenerate(self, center: Vec3) -> list[Waypoint]:
        """Lay out waypoints around a new region centre and reshuffle the visiting order."""
        cfg = self.config
        center = center.with_y(min(max(center.y, cfg.safe_min_y), cfg.safe_max_y))
        self.center = center
        self.waypoints = ring_layout(
            center,
            rings=cfg.rings,
            points_per_ring=cfg.points_per_ring,
            ring_spacing=cfg.ring_spacing,
            vertical_jitter=cfg.vertical_jitter,
            min_y=cfg.safe_min_y,
            max_y=cfg.safe_max_y,
            rng=self._rng,
        )
        self._order = list(range(len(self.waypoints)))
        self._rng.shuffle(self._order)
        self._cursor = 0
        logger.info("waypoints_generated", count=len(self.waypoints), center=tuple(round(v, 1) for v in center))
        return self.waypoints

    def next_waypoint(self) -> Waypoint | None:
        if not self.waypoints:
            return None
        waypoint = self.waypoints[self._order[self._cursor]]
        self._cursor = (self._cursor + 1) % len(self._order)
        return waypoint

    def needs_ascent(self, position: Vec3 | None) -> bool:
        if position is None:
            return False
        return not (self.config.safe_min_y <= position.y <= self.config.safe_max_y)

    @property
    def ascending(self) -> bool:
        return self._ascent is not None and not self._ascent.done()

    async def visit_next(self, session: GameSession) -> Waypoint | None:
        """Move to the next waypoint and face the region centre."""
        if self.ascending:
            return None
        waypoint = self.next_waypoint()
        if waypoint is None:
            position = session.get_position()
            if position is None:
                return None
            self.regenerate(position)
            waypoint = self.next_waypoint()
            if waypoint is None:
                return None
        await session.move_toward(waypoint.position)
        session.set_orientation(waypoint.yaw, waypoint.pitch)
        return waypoint

    def start_ascent(self, session: GameSession, still_current: Callable[[], bool]) -> asyncio.Task[bool] | None:
        """Run `force_ascent` as one cancellable task; None if one is already running."""
        if self.ascending:
            return None
        self._ascent = asyncio.create_task(self.force_ascent(session, still_current), name="forced-ascent")
        self._ascent.add_done_callback(_log_ascent_failure)
        return self._ascent

    async def force_ascent(self, session: GameSession, still_current: Callable[[], bool]) -> bool:
        """Bring the viewpoint back inside the safety band.

        Y is interpolated linearly over `ascent_steps` sub-steps with a fixed
        delay between steps. Aborts as soon as `still_current` fails.

        Returns:
            True if the ascent completed and waypoints were regenerated
        """
        cfg = self.config
        start = session.get_position()
        if start is None:
            return False
        if start.y < cfg.safe_min_y:
            target_y = min(cfg.safe_min_y + cfg.ascent_margin, cfg.safe_max_y)
        else:
            target_y = max(cfg.safe_max_y - cfg.ascent_margin, cfg.safe_min_y)
        logger.warning("forced_ascent_started", from_y=round(start.y, 1), to_y=round(target_y, 1))
        for step in range(1, cfg.ascent_steps + 1):
            if not still_current():
                logger.debug("forced_ascent_aborted", step=step)
                return False
            y = start.y + (target_y - start.y) * step / cfg.ascent_steps
            await session.move_toward(start.with_y(y))
            if step < cfg.ascent_steps:
                await asyncio.sleep(cfg.ascent_step_delay_s)
        if not still_current():
            return False
        position = session.get_position() or start.with_y(target_y)
        self.regenerate(position)
        logger.info("forced_ascent_completed", y=round(position.y, 1))
        return True

    def cancel_ascent(self) -> None:
        if self._ascent is not None:
            self._ascent.cancel()
            self._ascent = None


def _log_ascent_failure(task: asyncio.Task[bool]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("forced_ascent_failed", error=str(error))
