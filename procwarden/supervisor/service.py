"""
Supervisor service - the long-running daemon loop.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Any

from procwarden.config.models import ProcessSpec, ProcWardenConfig, load_config
from procwarden.exceptions import (
    AlreadyRunning,
    ConfigError,
    ConfigurationMissing,
    ProcessNotFound,
)
from procwarden.paths import get_app_log_dir, get_socket_path, get_state_path
from procwarden.supervisor.bootstrap import reconcile
from procwarden.supervisor.engine import SupervisionEngine
from procwarden.supervisor.ipc import ControlRequest, ControlResponse, ControlServer
from procwarden.supervisor.output import FileOutputSink
from procwarden.supervisor.persistence import StateGateway

logger = logging.getLogger(__name__)

# Domain errors reported to control clients, most specific first
_ERROR_CODES: tuple[tuple[type[Exception], str], ...] = (
    (ProcessNotFound, "NOT_FOUND"),
    (AlreadyRunning, "ALREADY_RUNNING"),
    (ConfigurationMissing, "CONFIG_MISSING"),
    (ConfigError, "CONFIG_ERROR"),
)


class SupervisorService:
    """
    Runs the supervision engine behind the control socket.

    Startup: load config, reconcile persisted state, open the control
    socket, start the requested processes.  Then watch detached children
    until SIGINT/SIGTERM or a ``shutdown`` request, and stop everything.
    """

    def __init__(
        self,
        config_path: Path,
        state_path: Path | None = None,
        app_log_dir: Path | None = None,
        socket_path: Path | None = None,
    ):
        self.config_path = config_path
        self.state_path = state_path or get_state_path()
        self.app_log_dir = app_log_dir or get_app_log_dir()
        self.socket_path = socket_path or get_socket_path()

        self.engine: SupervisionEngine | None = None
        self.server: ControlServer | None = None
        self._stop_event = asyncio.Event()
        self._watch_task: asyncio.Task | None = None

    def request_shutdown(self) -> None:
        logger.info("Shutdown requested")
        self._stop_event.set()

    # ── Lifecycle ──────────────────────────────────────────────

    async def run(self, names: list[str] | None = None) -> None:
        """Supervise until shutdown.

        Raises:
            ConfigError: If the configuration cannot be loaded.
        """
        config = load_config(self.config_path)
        gateway = StateGateway(self.state_path)
        store = reconcile(gateway)
        self.engine = SupervisionEngine(
            store,
            gateway,
            FileOutputSink(self.app_log_dir),
            settings=config.supervisor,
        )
        self.server = ControlServer(self.socket_path, self.handle_request)
        await self.server.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_shutdown)

        try:
            await self._start_requested(config, names)
            self._watch_task = asyncio.create_task(self._detached_watch_loop())
            logger.info("Supervisor running (PID %s)", os.getpid())
            await self._stop_event.wait()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            if self._watch_task:
                self._watch_task.cancel()
                try:
                    await self._watch_task
                except asyncio.CancelledError:
                    pass
            await self.engine.shutdown()
            await self.server.stop()
            logger.info("Supervisor stopped")

    async def _start_requested(self, config: ProcWardenConfig, names: list[str] | None) -> None:
        assert self.engine is not None
        if not names:
            await self.engine.start_all(config.apps)
            return
        specs: list[ProcessSpec] = []
        for name in names:
            try:
                specs.append(config.get_spec(name))
            except ConfigurationMissing as exc:
                logger.error("%s", exc)
        await self.engine.start_all(specs)

    async def _detached_watch_loop(self) -> None:
        """Periodically pick up exits of children this instance did not spawn."""
        assert self.engine is not None
        interval = self.engine.settings.detached_check_interval_sec
        logger.debug("Detached watch loop started (interval=%.1fs)", interval)

        while True:
            try:
                await asyncio.sleep(interval)
                self.engine.check_detached()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in detached watch loop: %s", e)

        logger.debug("Detached watch loop stopped")

    # ── Control requests ───────────────────────────────────────

    async def handle_request(self, request: ControlRequest) -> ControlResponse:
        handler = getattr(self, f"_handle_{request.method}", None)
        if handler is None:
            return ControlResponse.failure(
                request.id, "UNKNOWN_METHOD", f"Unknown method: {request.method}",
            )
        try:
            result = await handler(request.params)
        except tuple(cls for cls, _ in _ERROR_CODES) as exc:
            code = next(code for cls, code in _ERROR_CODES if isinstance(exc, cls))
            logger.info("Control %s failed: %s", request.method, exc)
            return ControlResponse.failure(request.id, code, str(exc))
        return ControlResponse(id=request.id, result=result)

    async def _handle_ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"status": "ok", "pid": os.getpid()}

    async def _handle_start(self, params: dict[str, Any]) -> dict[str, Any]:
        assert self.engine is not None
        config = load_config(self.config_path)
        name = params.get("name")
        if name:
            await self.engine.start(config.get_spec(name))
            return {"started": [name]}
        return {"started": await self.engine.start_all(config.apps)}

    async def _handle_stop(self, params: dict[str, Any]) -> dict[str, Any]:
        assert self.engine is not None
        name = params.get("name")
        if name:
            await self.engine.stop(name)
            return {"stopped": [name]}
        return {"stopped": await self.engine.stop_all()}

    async def _handle_restart(self, params: dict[str, Any]) -> dict[str, Any]:
        assert self.engine is not None
        config = load_config(self.config_path)
        name = params.get("name")
        if name:
            try:
                spec: ProcessSpec | None = config.get_spec(name)
            except ConfigurationMissing:
                logger.info("%s is no longer configured, reusing last-known spec", name)
                spec = None
            await self.engine.restart(name, spec)
            return {"restarted": [name]}
        return {"restarted": await self.engine.restart_all(config.apps)}

    async def _handle_status(self, params: dict[str, Any]) -> dict[str, Any]:
        assert self.engine is not None
        return {"processes": self.engine.status()}

    async def _handle_cleanup(self, params: dict[str, Any]) -> dict[str, Any]:
        assert self.engine is not None
        return {"removed": self.engine.cleanup()}

    async def _handle_shutdown(self, params: dict[str, Any]) -> dict[str, Any]:
        self.request_shutdown()
        return {"status": "shutting_down"}
