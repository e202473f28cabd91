# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Resolve the configured session factory."""

from __future__ import annotations

import importlib
from collections.abc import Callable
from typing import Any

from afkguard.errors import ConfigurationError
from afkguard.session.base import Endpoint, GameSession

SessionFactory = Callable[[Endpoint], GameSession]


def load_session_factory(spec: str, **options: Any) -> SessionFactory:
    """Import a session factory from a "module:attr" string.

    Args:
        spec: Import string, e.g. "afkguard.session.simulated:SimulatedSession"
        **options: Keyword arguments passed to the factory on every call

    Returns:
        Callable creating a new session for an endpoint

    Raises:
        ConfigurationError: If the string is malformed or cannot be imported
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Invalid session factory {spec!r}, expected 'module:attr'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import session factory module {module_name!r}: {e}") from e
    target = getattr(module, attr, None)
    if target is None or not callable(target):
        raise ConfigurationError(f"Session factory {spec!r} is not callable")

    def _factory(endpoint: Endpoint) -> GameSession:
        return target(endpoint, **options)

    return _factory
