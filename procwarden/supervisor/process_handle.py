"""
Process handle for managed child processes.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable

from procwarden.supervisor.output import OutputSink
from procwarden.supervisor.records import ProcessRecord

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024
# After the child exits, give the pumps this long to flush what is left in the
# pipes.  A grandchild holding the pipe open must not delay the exit event.
_DRAIN_TIMEOUT = 1.0

ExitCallback = Callable[["ProcessHandle", "int | None"], None]


async def launch_process(record: ProcessRecord) -> asyncio.subprocess.Process:
    """Spawn the command described by *record* in a new session.

    Raises:
        OSError: If the executable cannot be found or started.
    """
    env = {**os.environ, **record.env}
    logger.debug("Command: %s %s", record.command, " ".join(record.args))
    return await asyncio.create_subprocess_exec(
        record.command,
        *record.args,
        cwd=record.cwd or None,
        env=env,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )


# ── Process Handle ──────────────────────────────────────────────────

class ProcessHandle:
    """
    Runtime companion of a process record.

    Owns the ``asyncio.subprocess.Process``, one pump task per output
    stream and a watcher task that reports the exit back to the engine.
    Never persisted.
    """

    def __init__(
        self,
        name: str,
        process: asyncio.subprocess.Process,
        sink: OutputSink,
        on_exit: ExitCallback,
    ):
        self.name = name
        self.process = process
        self.sink = sink
        self._on_exit = on_exit
        self._pumps: list[asyncio.Task] = []
        self._watch_task: asyncio.Task | None = None
        self.exit_code: int | None = None

    @property
    def pid(self) -> int:
        return self.process.pid

    def start(self) -> None:
        """Attach the output pumps and the exit watcher."""
        for stream, reader in (("stdout", self.process.stdout), ("stderr", self.process.stderr)):
            if reader is None:
                continue
            self._pumps.append(asyncio.create_task(
                self._pump(stream, reader), name=f"pump-{self.name}-{stream}",
            ))
        self._watch_task = asyncio.create_task(
            self._watch(), name=f"watch-{self.name}",
        )

    async def _pump(self, stream: str, reader: asyncio.StreamReader) -> None:
        while True:
            chunk = await reader.read(_READ_CHUNK)
            if not chunk:
                return
            try:
                self.sink.write(self.name, stream, chunk)
            except Exception:
                logger.exception("Log sink failed for %s (%s)", self.name, stream)

    async def _watch(self) -> None:
        code = await self.process.wait()
        if self._pumps:
            _, pending = await asyncio.wait(self._pumps, timeout=_DRAIN_TIMEOUT)
            for task in pending:
                task.cancel()
        self.exit_code = code
        logger.debug("Process exited: %s (PID %s, code=%s)", self.name, self.pid, code)
        self._on_exit(self, code)

    def is_alive(self) -> bool:
        """Check if process is alive."""
        return self.process.returncode is None

    def _send(self, sig_name: str) -> None:
        if not self.is_alive():
            return
        try:
            getattr(self.process, sig_name)()
        except ProcessLookupError:
            logger.debug("Process %s already gone (PID %s)", self.name, self.pid)

    def terminate(self) -> None:
        """Send SIGTERM to the child."""
        self._send("terminate")

    def kill(self) -> None:
        """Force kill the child with SIGKILL."""
        logger.warning("Killing process: %s (PID %s)", self.name, self.pid)
        self._send("kill")

    async def wait(self, timeout: float | None = None) -> int | None:
        """Wait for the child to exit.  Returns ``None`` on timeout."""
        try:
            return await asyncio.wait_for(self.process.wait(), timeout)
        except asyncio.TimeoutError:
            return None

    async def wait_closed(self) -> None:
        """Wait until the exit watcher has drained output and reported."""
        if self._watch_task is not None:
            await asyncio.wait({self._watch_task}, timeout=_DRAIN_TIMEOUT + 1.0)
