"""
Log sink for child process output.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Protocol

logger = logging.getLogger(__name__)
output_logger = logging.getLogger("procwarden.output")

STREAMS = ("stdout", "stderr")

# Rotate an output file over 5 MB when it is first opened (keep one backup)
_ROTATE_BYTES = 5 * 1024 * 1024


class OutputSink(Protocol):
    """Receives every output chunk of every child, in arrival order."""

    def write(self, name: str, stream: str, chunk: bytes) -> None: ...

    def close(self, name: str) -> None: ...

    def close_all(self) -> None: ...


def output_paths(log_dir: Path, name: str) -> dict[str, Path]:
    """Return the stdout/stderr file paths for process *name*."""
    return {
        "stdout": log_dir / f"{name}-out.log",
        "stderr": log_dir / f"{name}-error.log",
    }


class FileOutputSink:
    """Appends raw output bytes to ``<name>-out.log`` / ``<name>-error.log``.

    Decoded text is echoed through the ``procwarden.output`` logger so that
    the supervisor console shows ``[name] line`` while running in the
    foreground.  Files are opened lazily and kept open until ``close``.
    """

    def __init__(self, log_dir: Path, echo: bool = True) -> None:
        self.log_dir = log_dir
        self.echo = echo
        self._files: dict[tuple[str, str], BinaryIO] = {}

    def _open(self, name: str, stream: str) -> BinaryIO:
        key = (name, stream)
        fh = self._files.get(key)
        if fh is not None:
            return fh

        self.log_dir.mkdir(parents=True, exist_ok=True)
        path = output_paths(self.log_dir, name)[stream]
        if path.exists():
            try:
                if path.stat().st_size > _ROTATE_BYTES:
                    backup = path.with_name(path.name + ".1")
                    if backup.exists():
                        backup.unlink()
                    path.rename(backup)
                    logger.info("Rotated %s for %s (>5MB)", path.name, name)
            except OSError:
                logger.debug("%s rotation failed", path.name, exc_info=True)

        fh = open(path, "ab")  # noqa: SIM115
        self._files[key] = fh
        return fh

    def write(self, name: str, stream: str, chunk: bytes) -> None:
        if stream not in STREAMS:
            raise ValueError(f"Unknown stream: {stream}")
        try:
            fh = self._open(name, stream)
            fh.write(chunk)
            fh.flush()
        except OSError:
            logger.warning("Failed to write %s output for %s", stream, name, exc_info=True)

        if self.echo:
            text = chunk.decode("utf-8", errors="replace").rstrip("\n")
            if not text:
                return
            level = logging.WARNING if stream == "stderr" else logging.INFO
            for line in text.splitlines():
                output_logger.log(level, "[%s] %s", name, line)

    def close(self, name: str) -> None:
        for stream in STREAMS:
            fh = self._files.pop((name, stream), None)
            if fh is None:
                continue
            try:
                fh.close()
            except OSError:
                logger.debug("Failed to close %s file for %s", stream, name, exc_info=True)

    def close_all(self) -> None:
        for name in {name for name, _ in self._files}:
            self.close(name)
