# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Shared constants for afkguard."""

from __future__ import annotations

# Endpoint defaults
DEFAULT_PORT = 25565
DEFAULT_USERNAME = "lookAt"
DEFAULT_GAME_VERSION = "1.20.1"
DEFAULT_CONNECT_TIMEOUT_S = 60.0

# Reconnection backoff
DEFAULT_RECONNECT_BASE_S = 10.0
DEFAULT_RECONNECT_MULTIPLIER = 1.5
DEFAULT_RECONNECT_CAP_S = 300.0
DEFAULT_RECONNECT_MAX_ATTEMPTS = 5
DEFAULT_RECONNECT_WINDOW_S = 600.0
DEFAULT_RECONNECT_COOLDOWN_S = 300.0

# Liveness
DEFAULT_LIVENESS_TIMEOUT_S = 60.0
DEFAULT_LIVENESS_CHECK_INTERVAL_S = 5.0
STUCK_EPSILON = 0.1
STUCK_COUNTER_THRESHOLD = 10

# Action intervals
DEFAULT_HEARTBEAT_S = 15.0
DEFAULT_LOOK_AROUND_S = 5.0
DEFAULT_MOVE_S = 5.0
DEFAULT_PATROL_S = 45.0
DEFAULT_STATUS_REPORT_S = 30 * 60.0
DEFAULT_PLAYER_LIST_S = 10 * 60.0
DEFAULT_STATUS_REPORT_DELAY_S = 15.0
DEFAULT_PLAYER_LIST_DELAY_S = 10.0
MODE_CHANGE_PATROL_DELAY_S = 5.0

# Spectator navigation
SPECTATOR_MODE = "spectator"
DEFAULT_RINGS = 4
DEFAULT_POINTS_PER_RING = 6
DEFAULT_RING_SPACING = 6.0
DEFAULT_VERTICAL_JITTER = 5.0
DEFAULT_SAFE_MIN_Y = 5.0
DEFAULT_SAFE_MAX_Y = 300.0
DEFAULT_ASCENT_MARGIN = 20.0
DEFAULT_ASCENT_STEPS = 10
DEFAULT_ASCENT_STEP_DELAY_S = 0.2

# Status surface
DEFAULT_STATUS_HOST = "0.0.0.0"
