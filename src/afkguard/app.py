# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

from afkguard import __version__
from afkguard.api import status_routes

if TYPE_CHECKING:
    from afkguard.core.lifecycle import SessionLifecycleManager
    from afkguard.keepalive import KeepaliveActions


def create_app(manager: SessionLifecycleManager, keepalive: KeepaliveActions | None = None) -> FastAPI:
    """Create the FastAPI status app."""
    app = FastAPI(title="afkguard", version=__version__)
    app.include_router(status_routes.setup(manager, keepalive))
    app.state.manager = manager
    return app


__all__ = ["create_app"]
