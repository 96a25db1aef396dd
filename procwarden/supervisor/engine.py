"""
Supervision Engine - drives the lifecycle of every managed process.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from procwarden.config.models import ProcessSpec, SupervisorSettings
from procwarden.exceptions import (
    AlreadyRunning,
    PersistenceFailure,
    ProcessNotFound,
    RestartExhausted,
    SignalFailure,
)
from procwarden.supervisor.liveness import is_alive, terminate_pid
from procwarden.supervisor.output import OutputSink
from procwarden.supervisor.persistence import StateGateway
from procwarden.supervisor.process_handle import ProcessHandle, launch_process
from procwarden.supervisor.records import ProcessRecord, ProcessStatus
from procwarden.supervisor.store import DescriptorStore
from procwarden.time_utils import now_local

logger = logging.getLogger(__name__)


class SupervisionEngine:
    """
    Owns all transitions of the process records in a descriptor store.

    Responsibilities:
    - Start/stop child processes and forward their output to the log sink
    - Restart crashed children under the (delay, cap, counter) policy
    - Pick up exits of detached children by liveness probing
    - Persist the store after every mutation, before yielding to the loop

    All methods run on one event loop.  Child exits arrive as callbacks from
    the per-handle watcher tasks.
    """

    def __init__(
        self,
        store: DescriptorStore,
        gateway: StateGateway,
        sink: OutputSink,
        settings: SupervisorSettings | None = None,
        prober: Callable[[int | None], bool] = is_alive,
    ):
        self.store = store
        self.gateway = gateway
        self.sink = sink
        self.settings = settings or SupervisorSettings()
        self._prober = prober

        self._handles: dict[str, ProcessHandle] = {}
        self._respawns: set[asyncio.Task] = set()
        self._reapers: set[asyncio.Task] = set()
        self._shutdown = False

        # Called after a process is removed for exceeding max_restarts
        self.on_restart_exhausted: Callable[[RestartExhausted], None] | None = None

    # ── Helpers ────────────────────────────────────────────────

    def _persist(self) -> None:
        try:
            self.gateway.save(self.store.records())
        except PersistenceFailure as exc:
            logger.error("State not persisted, continuing in memory: %s", exc)

    def _track(self, tasks: set[asyncio.Task], task: asyncio.Task) -> None:
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    def is_attached(self, name: str) -> bool:
        """Whether *name* has a handle spawned by this engine."""
        return name in self._handles

    # ── Start / Spawn ──────────────────────────────────────────

    async def start(self, spec: ProcessSpec) -> ProcessRecord:
        """Create a fresh record for *spec* and spawn it.

        Raises:
            AlreadyRunning: If the name is starting or running.
        """
        existing = self.store.get(spec.name)
        if existing is not None and existing.is_active:
            raise AlreadyRunning(spec.name, existing.pid)

        record = ProcessRecord.from_spec(spec)
        self.store.put(record)
        self._persist()
        await self._spawn(record)
        return record

    async def _spawn(self, record: ProcessRecord) -> None:
        name = record.name
        logger.info("Starting process: %s", name)
        try:
            process = await launch_process(record)
        except OSError as exc:
            logger.error("Failed to launch %s: %s", name, exc)
            if self.store.get(name) is record and not self._shutdown:
                self._handle_exit(record, None)
            return

        if self.store.get(name) is not record or self._shutdown:
            logger.info(
                "Process %s was stopped during launch, terminating PID %s",
                name, process.pid,
            )
            orphan = ProcessHandle(name, process, self.sink, self._on_exit)
            orphan.start()
            orphan.terminate()
            self._track(self._reapers, asyncio.create_task(self._reap(orphan)))
            return

        handle = ProcessHandle(name, process, self.sink, self._on_exit)
        self._handles[name] = handle
        record.status = ProcessStatus.RUNNING
        record.pid = process.pid
        record.start_time = now_local()
        self._persist()
        handle.start()
        logger.info("Process started: %s (PID %s)", name, process.pid)

    # ── Exit / Restart policy ──────────────────────────────────

    def _on_exit(self, handle: ProcessHandle, code: int | None) -> None:
        name = handle.name
        if self._handles.get(name) is not handle:
            # Stopped, replaced or deleted since this handle was created.
            logger.debug("Ignoring late exit of %s (PID %s)", name, handle.pid)
            return
        del self._handles[name]
        record = self.store.get(name)
        if record is None:
            return
        self._handle_exit(record, code)

    def _handle_exit(self, record: ProcessRecord, code: int | None) -> None:
        name = record.name
        record.status = ProcessStatus.STOPPED
        record.exit_code = code
        record.pid = None
        record.restart_count += 1
        self._persist()
        logger.warning("Process %s crashed with exit code %s", name, code)

        if record.restart_allowed():
            logger.info(
                "Restarting %s in %dms... (restart #%d)",
                name, record.restart_delay_ms, record.restart_count,
            )
            self._track(
                self._respawns,
                asyncio.create_task(self._respawn_later(record), name=f"respawn-{name}"),
            )
            return

        self.store.remove(name)
        self._persist()
        exc = RestartExhausted(name, record.restart_count, record.max_restarts)
        logger.error("%s", exc)
        if self.on_restart_exhausted:
            self.on_restart_exhausted(exc)

    async def _respawn_later(self, record: ProcessRecord) -> None:
        await asyncio.sleep(record.restart_delay_ms / 1000)
        # A stop or a fresh start during the delay replaces or removes the record.
        if self._shutdown or self.store.get(record.name) is not record:
            logger.debug("Pending restart of %s cancelled", record.name)
            return
        record.status = ProcessStatus.STARTING
        self._persist()
        await self._spawn(record)

    # ── Stop ───────────────────────────────────────────────────

    async def stop(self, name: str) -> ProcessRecord:
        """Stop *name* and delete its record.

        Handle-backed children get SIGTERM now and SIGKILL after
        ``stop_grace_sec`` in the background.  Detached children are
        signalled by PID; delivery failures are logged.

        Raises:
            ProcessNotFound: If there is no record for *name*.
        """
        record = self.store.get(name)
        if record is None:
            raise ProcessNotFound(name)

        logger.info("Stopping process: %s", name)
        record.status = ProcessStatus.STOPPING
        self._persist()

        handle = self._handles.pop(name, None)
        if handle is not None:
            handle.terminate()
            self._track(self._reapers, asyncio.create_task(self._reap(handle)))
        elif record.pid is not None:
            try:
                terminate_pid(name, record.pid)
            except SignalFailure as exc:
                logger.warning("%s", exc)

        self.store.remove(name)
        self._persist()
        logger.info("Process stopped: %s", name)
        return record

    async def _reap(self, handle: ProcessHandle) -> None:
        grace = self.settings.stop_grace_sec
        code = await handle.wait(grace)
        if code is None and handle.is_alive():
            logger.warning(
                "Process did not respond to SIGTERM within %.1fs: %s",
                grace, handle.name,
            )
            handle.kill()
            code = await handle.wait(5.0)
        await handle.wait_closed()
        if handle.name not in self._handles:
            self.sink.close(handle.name)
        logger.debug("Reaped %s (PID %s, code=%s)", handle.name, handle.pid, code)

    async def restart(self, name: str, spec: ProcessSpec | None = None) -> ProcessRecord:
        """Stop *name*, wait the settle delay, then start it again.

        *spec* is the freshly loaded configuration; without it the launch
        specification of the stopped record is reused.
        """
        record = self.store.get(name)
        if record is None:
            raise ProcessNotFound(name)

        logger.info("Restarting process: %s", name)
        fallback = record.to_spec()
        await self.stop(name)
        await asyncio.sleep(self.settings.restart_settle_sec)
        return await self.start(spec or fallback)

    # ── Bulk operations ────────────────────────────────────────

    async def start_all(self, specs: Iterable[ProcessSpec]) -> list[str]:
        """Start *specs* sequentially, pausing between spawns.

        Returns the names that were started; running names are skipped.
        """
        specs = list(specs)
        logger.info("Starting all apps (%d apps)", len(specs))
        started: list[str] = []
        for index, spec in enumerate(specs):
            if index:
                await asyncio.sleep(self.settings.start_stagger_sec)
            try:
                await self.start(spec)
            except AlreadyRunning as exc:
                logger.info("%s", exc)
                continue
            started.append(spec.name)
        return started

    async def stop_all(self) -> list[str]:
        logger.info("Stopping all apps")
        stopped: list[str] = []
        for name in self.store.names():
            try:
                await self.stop(name)
            except ProcessNotFound:
                continue
            stopped.append(name)
        return stopped

    async def restart_all(self, specs: Iterable[ProcessSpec]) -> list[str]:
        specs = list(specs)
        await self.stop_all()
        await asyncio.sleep(self.settings.restart_all_delay_sec)
        return await self.start_all(specs)

    # ── Inspection / Maintenance ───────────────────────────────

    def status(self) -> list[dict[str, Any]]:
        return [record.view(attached=self.is_attached(record.name)) for record in self.store]

    def cleanup(self) -> list[str]:
        """Remove records whose PID is set but no longer alive."""
        removed = [
            record.name for record in self.store
            if record.pid is not None and not self._prober(record.pid)
        ]
        for name in removed:
            self.store.remove(name)
            self._handles.pop(name, None)
            logger.info("Removed dead process record: %s", name)
        if removed:
            self._persist()
        return removed

    def check_detached(self) -> list[str]:
        """Run the exit transition for detached children that have died."""
        lost: list[str] = []
        for record in self.store:
            if record.status is not ProcessStatus.RUNNING_DETACHED:
                continue
            if self._prober(record.pid):
                continue
            logger.warning("Detached process %s (PID %s) is gone", record.name, record.pid)
            lost.append(record.name)
            self._handle_exit(record, None)
        return lost

    async def shutdown(self) -> None:
        """Cancel pending restarts, stop everything and wait for the children."""
        logger.info("Shutting down all processes")
        self._shutdown = True

        for task in list(self._respawns):
            task.cancel()
        if self._respawns:
            await asyncio.gather(*list(self._respawns), return_exceptions=True)

        await self.stop_all()

        if self._reapers:
            await asyncio.gather(*list(self._reapers), return_exceptions=True)
        self.sink.close_all()
        logger.info("All processes shut down")
