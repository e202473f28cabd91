# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Status API routes.

Read-only view of the keeper for external monitoring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse

from afkguard.logging import get_logger

if TYPE_CHECKING:
    from afkguard.core.lifecycle import SessionLifecycleManager
    from afkguard.keepalive import KeepaliveActions

logger = get_logger(__name__)

router = APIRouter()

_manager: SessionLifecycleManager | None = None
_keepalive: KeepaliveActions | None = None


def setup(manager: SessionLifecycleManager, keepalive: KeepaliveActions | None = None) -> APIRouter:
    """Configure router with the lifecycle manager.

    Args:
        manager: SessionLifecycleManager instance
        keepalive: Optional keepalive actions for per-action counters

    Returns:
        Configured APIRouter
    """
    global _manager, _keepalive  # noqa: PLW0603
    _manager = manager
    _keepalive = keepalive
    return router


@router.get("/")
async def get_status():
    """Current status snapshot."""
    assert _manager is not None
    try:
        return _manager.status().model_dump()
    except Exception:
        logger.exception("status_route_failed")
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)


@router.get("/actions")
async def get_actions():
    """Per-action run counters."""
    if _keepalive is None:
        return []
    return _keepalive.status()


@router.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    return "OK"
