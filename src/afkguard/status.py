# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Read-only status snapshot of the keeper."""

from __future__ import annotations

from pydantic import BaseModel


class Position(BaseModel):
    x: int
    y: int
    z: int


class StatusSnapshot(BaseModel):
    connected: bool
    state: str
    message: str
    uptime_seconds: int
    position: Position | None = None
    last_activity_age_seconds: float | None = None
    reconnect_attempts: int = 0
    reconnect_pending: bool = False
    mode: str | None = None
    generation: int = 0
    players_online: int = 0
    waypoints: int = 0
    movement_count: int = 0
    last_disconnect_reason: str | None = None
