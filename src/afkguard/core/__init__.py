# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Session lifecycle core."""

from __future__ import annotations

from afkguard.core.lifecycle import LifecycleState, SessionLifecycleManager
from afkguard.core.liveness import LivenessMonitor, LivenessRecord
from afkguard.core.navigation import SpectatorNavigator, Waypoint
from afkguard.core.reconnect import ReconnectionAttemptState, ReconnectionController
from afkguard.core.scheduler import ActionScheduler, ScheduledAction

__all__ = [
    "ActionScheduler",
    "LifecycleState",
    "LivenessMonitor",
    "LivenessRecord",
    "ReconnectionAttemptState",
    "ReconnectionController",
    "ScheduledAction",
    "SessionLifecycleManager",
    "SpectatorNavigator",
    "Waypoint",
]
