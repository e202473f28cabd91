# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Notification delivery."""

from __future__ import annotations

from afkguard.notify.adapter import EventKind, NotificationAdapter
from afkguard.notify.notifier import Notifier, NullNotifier, Severity, WebhookNotifier

__all__ = ["EventKind", "NotificationAdapter", "Notifier", "NullNotifier", "Severity", "WebhookNotifier"]
