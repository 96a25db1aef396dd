"""
Reconciliation of persisted state against the live process table.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from collections.abc import Callable

from procwarden.exceptions import PersistenceFailure
from procwarden.supervisor.liveness import is_alive
from procwarden.supervisor.persistence import StateGateway
from procwarden.supervisor.records import ProcessRecord, ProcessStatus
from procwarden.supervisor.store import DescriptorStore

logger = logging.getLogger(__name__)


def reconcile_record(
    record: ProcessRecord,
    prober: Callable[[int | None], bool] = is_alive,
) -> ProcessRecord:
    """Relabel one loaded record by probing its PID.

    A live PID becomes ``running-detached`` (nothing here spawned it, so
    there is no handle).  Anything else becomes ``stopped`` with the PID
    cleared.  ``restart_count`` and ``exit_code`` are kept as loaded.
    """
    if record.pid is not None and prober(record.pid):
        record.status = ProcessStatus.RUNNING_DETACHED
    else:
        record.status = ProcessStatus.STOPPED
        record.pid = None
    return record


def reconcile(
    gateway: StateGateway,
    prober: Callable[[int | None], bool] = is_alive,
    persist: bool = True,
) -> DescriptorStore:
    """Build the initial descriptor store from the persisted snapshot.

    Runs once before any start command.  With ``persist=False`` the
    relabelled set is only held in memory (read-only status views).
    """
    snapshot = gateway.load()
    store = DescriptorStore(reconcile_record(r, prober) for r in snapshot.records())

    detached = [r.name for r in store if r.status is ProcessStatus.RUNNING_DETACHED]
    logger.info(
        "Reconciled %d processes from %s (%d still running)",
        len(store), gateway.path, len(detached),
    )
    for name in detached:
        logger.info("Found running process: %s (PID %s)", name, store.get(name).pid)

    if persist:
        try:
            gateway.save(store.records())
        except PersistenceFailure as exc:
            logger.error("State not persisted after reconciliation: %s", exc)
    return store
