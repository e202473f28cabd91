# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Game session collaborator interface."""

from __future__ import annotations

from afkguard.session.base import (
    Activity,
    ChatMessage,
    Endpoint,
    GameSession,
    ModeChanged,
    PeerInfo,
    PlayerJoined,
    PlayerLeft,
    SessionEnded,
    SessionErrored,
    SessionEstablished,
    SessionEvent,
    SessionKicked,
    Vec3,
)
from afkguard.session.loader import SessionFactory, load_session_factory

__all__ = [
    "Activity",
    "ChatMessage",
    "Endpoint",
    "GameSession",
    "ModeChanged",
    "PeerInfo",
    "PlayerJoined",
    "PlayerLeft",
    "SessionEnded",
    "SessionErrored",
    "SessionEstablished",
    "SessionEvent",
    "SessionFactory",
    "SessionKicked",
    "Vec3",
    "load_session_factory",
]
