from __future__ import annotations
# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

"""Timezone-aware datetime helpers.

All timestamps recorded by the supervisor are timezone-aware in the host's
local zone, so uptime arithmetic works on values restored from disk.
"""

from datetime import datetime


def now_local() -> datetime:
    """Return the current time as a timezone-aware local datetime."""
    return datetime.now().astimezone()


def now_iso() -> str:
    """Return the current time as an ISO8601 string with offset."""
    return now_local().isoformat()


def ensure_aware(dt: datetime) -> datetime:
    """Ensure *dt* is timezone-aware.  Naive datetimes are assumed local."""
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def format_uptime(seconds: float) -> str:
    """Render a duration as the two most significant units (``1d 3h``)."""
    total = max(int(seconds), 0)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
