"""
Durable process records.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from procwarden.config.models import ProcessSpec
from procwarden.time_utils import ensure_aware, now_local


# ── Process Status ─────────────────────────────────────────────────

class ProcessStatus(Enum):
    """Lifecycle status of a managed process."""
    STARTING = "starting"                   # Record created, spawn in flight
    RUNNING = "running"                     # Spawned by this supervisor
    RUNNING_DETACHED = "running-detached"   # Alive, recovered from disk, no handle
    STOPPING = "stopping"                   # Stop requested
    STOPPED = "stopped"                     # Exited or found dead at reconciliation


# A start request for a record in one of these states is a no-op.
ACTIVE_STATES = frozenset({
    ProcessStatus.STARTING,
    ProcessStatus.RUNNING,
    ProcessStatus.RUNNING_DETACHED,
})


# ── Process Record ─────────────────────────────────────────────────

class ProcessRecord(BaseModel):
    """Durable state of one managed process.

    Everything here is written to the state file.  The live subprocess
    handle is kept separately by the engine and never serialized.
    """

    name: str
    command: str
    args: list[str] = []
    cwd: str | None = None
    env: dict[str, str] = {}
    restart_delay_ms: int = 2000
    max_restarts: int = -1
    restart_count: int = 0
    status: ProcessStatus = ProcessStatus.STARTING
    pid: int | None = None
    start_time: datetime | None = None
    exit_code: int | None = None

    @classmethod
    def from_spec(cls, spec: ProcessSpec) -> ProcessRecord:
        """Create a fresh record (``restart_count=0``) for an explicit start."""
        return cls(**spec.model_dump())

    def to_spec(self) -> ProcessSpec:
        """Return the launch specification captured in this record."""
        return ProcessSpec(
            name=self.name,
            command=self.command,
            args=list(self.args),
            cwd=self.cwd,
            env=dict(self.env),
            restart_delay_ms=self.restart_delay_ms,
            max_restarts=self.max_restarts,
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATES

    def restart_allowed(self) -> bool:
        """Whether the restart policy permits another respawn."""
        return self.max_restarts == -1 or self.restart_count <= self.max_restarts

    def uptime_sec(self) -> float | None:
        if self.pid is None or self.start_time is None:
            return None
        return (now_local() - ensure_aware(self.start_time)).total_seconds()

    def view(self, attached: bool = False) -> dict[str, Any]:
        """Read-only status view for the command surface."""
        return {
            "name": self.name,
            "status": self.status.value,
            "pid": self.pid,
            "restart_count": self.restart_count,
            "max_restarts": self.max_restarts,
            "exit_code": self.exit_code,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "uptime_sec": self.uptime_sec(),
            "attached": attached,
        }
