# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""structlog setup for the keeper process.

Log lines go to stderr so `afkguard check-config` keeps stdout for its JSON.
The level is taken from `Settings.log_level` (AFKGUARD_LOG_LEVEL) unless the
CLI passes one explicitly.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, TextIO

import structlog

if TYPE_CHECKING:
    from afkguard.settings import Settings

__all__ = ["configure_logging", "get_logger"]


def configure_logging(
    settings: Settings | None = None,
    level: str | None = None,
    *,
    stream: TextIO | None = None,
) -> None:
    """Install the process-wide structlog configuration.

    Args:
        settings: Source of `log_level` when `level` is not given
        level: Level name such as "debug"; unknown names fall back to INFO
        stream: Destination for log lines, stderr by default
    """
    name = (level or (settings.log_level if settings is not None else "INFO")).upper()
    log_level = logging.getLevelNamesMapping().get(name, logging.INFO)
    out = stream or sys.stderr

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=out.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=out),
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)
