# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Abstract game session and the closed set of session events."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Callable


class Vec3(NamedTuple):
    x: float
    y: float
    z: float

    def distance_to(self, other: Vec3) -> float:
        return math.dist(self, other)

    def with_y(self, y: float) -> Vec3:
        return Vec3(self.x, y, self.z)


@dataclass(frozen=True)
class PeerInfo:
    """Roster entry for another player on the server."""

    username: str
    ping_ms: int | None = None
    in_range: bool = False


@dataclass(frozen=True)
class Endpoint:
    host: str
    port: int
    username: str
    version: str | None = None

    def __str__(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


# Session events. The lifecycle manager dispatches on these types only.


@dataclass(frozen=True)
class SessionEstablished:
    pass


@dataclass(frozen=True)
class SessionEnded:
    reason: str = "connection closed"


@dataclass(frozen=True)
class SessionKicked:
    reason: str = "kicked"


@dataclass(frozen=True)
class SessionErrored:
    error: BaseException
    # None lets the manager classify by exception type.
    fatal: bool | None = None


@dataclass(frozen=True)
class ModeChanged:
    mode: str


@dataclass(frozen=True)
class Activity:
    """Physics tick or transport heartbeat; proves the connection is alive."""


@dataclass(frozen=True)
class ChatMessage:
    username: str
    message: str


@dataclass(frozen=True)
class PlayerJoined:
    username: str


@dataclass(frozen=True)
class PlayerLeft:
    username: str


SessionEvent = (
    SessionEstablished
    | SessionEnded
    | SessionKicked
    | SessionErrored
    | ModeChanged
    | Activity
    | ChatMessage
    | PlayerJoined
    | PlayerLeft
)

TERMINAL_EVENTS = (SessionEnded, SessionKicked)


class GameSession(ABC):
    """Abstract base for a single connection to a game server.

    A session instance is created for one connection attempt and is never
    reused. Events are delivered to exactly one handler; once a terminal
    event (ended, kicked, fatal error) has been delivered the session must
    not be used again.
    """

    def __init__(self, endpoint: Endpoint) -> None:
        self.endpoint = endpoint
        self._handler: Callable[[SessionEvent], None] | None = None

    def set_event_handler(self, handler: Callable[[SessionEvent], None]) -> None:
        self._handler = handler

    def clear_event_handler(self) -> None:
        self._handler = None

    def emit(self, event: SessionEvent) -> None:
        """Deliver an event to the registered handler, if any."""
        handler = self._handler
        if handler is not None:
            handler(event)

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and begin login.

        Establishment is reported asynchronously through `SessionEstablished`.

        Raises:
            ConnectionError: If the server cannot be reached
            TimeoutError: If the connection attempt times out
        """

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release resources.

        Should be idempotent - safe to call multiple times.
        """

    @abstractmethod
    def current_mode(self) -> str:
        """Return the current mode tag (e.g. "survival", "spectator")."""

    @abstractmethod
    def get_position(self) -> Vec3 | None:
        """Return the last known position, or None before spawn."""

    @abstractmethod
    def get_orientation(self) -> tuple[float, float]:
        """Return (yaw, pitch) in radians."""

    @abstractmethod
    def set_orientation(self, yaw: float, pitch: float) -> None:
        """Turn the viewpoint."""

    @abstractmethod
    async def move_toward(self, target: Vec3) -> None:
        """Move (or teleport, in spectator mode) toward a position."""

    @abstractmethod
    async def pulse_control(self, control: str, duration_s: float) -> None:
        """Hold a control such as "forward" or "jump" for a short time."""

    @abstractmethod
    async def send_keepalive(self) -> None:
        """Write an application-level keepalive to the server.

        Raises:
            ConnectionError: If the connection is no longer writable
        """

    @abstractmethod
    def players(self) -> dict[str, PeerInfo]:
        """Return the current roster keyed by username."""

    def ping_ms(self) -> int | None:
        return None
