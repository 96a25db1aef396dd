from __future__ import annotations
# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of ProcWarden, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Unified exception hierarchy for ProcWarden.

All domain-specific exceptions derive from :class:`ProcWardenError`,
enabling callers to catch the entire family with a single clause::

    try:
        ...
    except ProcWardenError as e:
        logger.error("Domain error: %s", e)

Only configuration errors at bootstrap are fatal to the supervisor.  The
process-level errors below are reported to the caller of a single command
and never abort supervision of other processes.
"""


class ProcWardenError(Exception):
    """Base exception for all ProcWarden errors."""


# ── Process lifecycle ────────────────────────────────────────


class ProcessError(ProcWardenError):
    """Errors tied to the lifecycle of one managed process."""

    def __init__(self, name: str, message: str | None = None) -> None:
        super().__init__(message or name)
        self.name = name


class ConfigurationMissing(ProcessError):
    """No process specification is configured under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"No configuration found for process '{name}'")


class ProcessNotFound(ProcessError):
    """The supervisor holds no record for the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Process '{name}' not found")


class AlreadyRunning(ProcessError):
    """A start was requested for a process that is already running."""

    def __init__(self, name: str, pid: int | None = None) -> None:
        detail = f" (PID {pid})" if pid else ""
        super().__init__(name, f"Process '{name}' is already running{detail}")
        self.pid = pid


class SignalFailure(ProcessError):
    """A termination signal could not be delivered to a bare PID."""

    def __init__(self, name: str, pid: int, reason: str) -> None:
        super().__init__(name, f"Failed to signal '{name}' (PID {pid}): {reason}")
        self.pid = pid


class RestartExhausted(ProcessError):
    """A crashed process exceeded its restart cap and was removed."""

    def __init__(self, name: str, restart_count: int, max_restarts: int) -> None:
        super().__init__(
            name,
            f"Process '{name}' reached max restarts ({max_restarts}) "
            f"after {restart_count} exits",
        )
        self.restart_count = restart_count
        self.max_restarts = max_restarts


class ControlConnectionError(ProcWardenError):
    """Control socket of the running supervisor is unreachable."""


# ── Persistence ──────────────────────────────────────────────


class PersistenceFailure(ProcWardenError):
    """Durable state could not be written.

    The supervisor keeps running with its in-memory state; a later restart
    of the supervisor may lose the most recent transitions.
    """


# ── Configuration ────────────────────────────────────────────


class ConfigError(ProcWardenError):
    """Configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Configuration file not found."""
