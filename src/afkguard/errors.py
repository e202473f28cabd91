# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exception hierarchy and error classification."""

from __future__ import annotations


class AfkGuardError(Exception):
    """Base exception for afkguard."""

    pass


class ConfigurationError(AfkGuardError):
    """Required configuration is missing or invalid."""

    pass


class SessionError(AfkGuardError):
    """Session-level failure reported by the game session."""

    pass


class TransientSessionError(SessionError):
    """Connection-level failure that should be retried (timeout, reset)."""

    pass


class ProtocolDesyncError(SessionError):
    """Partial read or protocol state desynchronisation."""

    pass


class NotificationError(AfkGuardError):
    """Outbound notification could not be delivered."""

    pass


_RECONNECT_TRIGGERING: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    EOFError,
    OSError,
    TransientSessionError,
    ProtocolDesyncError,
)


def is_reconnect_triggering(error: BaseException, fatal: bool | None = None) -> bool:
    """Return True if a session error should tear the session down.

    Args:
        error: Error reported by the session
        fatal: Explicit classification from the session, overrides the type check

    Returns:
        True for transient connection errors and fatal protocol errors
    """
    if fatal is not None:
        return fatal
    return isinstance(error, _RECONNECT_TRIGGERING)
