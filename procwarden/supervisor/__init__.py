# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
"""
Process supervision package.

Keeps a configured set of child processes running, restarts them under a
bounded policy and recovers its own state from disk after a restart.
"""

from __future__ import annotations

from procwarden.supervisor.bootstrap import reconcile, reconcile_record
from procwarden.supervisor.engine import SupervisionEngine
from procwarden.supervisor.ipc import ControlClient, ControlRequest, ControlResponse, ControlServer
from procwarden.supervisor.liveness import is_alive, terminate_pid
from procwarden.supervisor.output import FileOutputSink, OutputSink
from procwarden.supervisor.persistence import StateGateway, StateSnapshot
from procwarden.supervisor.process_handle import ProcessHandle
from procwarden.supervisor.records import ProcessRecord, ProcessStatus
from procwarden.supervisor.store import DescriptorStore

__all__ = [
    "ControlClient",
    "ControlRequest",
    "ControlResponse",
    "ControlServer",
    "DescriptorStore",
    "FileOutputSink",
    "OutputSink",
    "ProcessHandle",
    "ProcessRecord",
    "ProcessStatus",
    "StateGateway",
    "StateSnapshot",
    "SupervisionEngine",
    "is_alive",
    "reconcile",
    "reconcile_record",
    "terminate_pid",
]
