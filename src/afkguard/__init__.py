# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Keep a single game session alive, reconnect with backoff, report status."""

from __future__ import annotations

__version__ = "0.3.0"
