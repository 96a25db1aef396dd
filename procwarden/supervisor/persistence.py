# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of ProcWarden, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Crash-safe persistence of the process table.

The state file holds ``{"updated_at": ..., "processes": {name: record}}``.
Writes use the temp + fsync + rename pattern so a crash mid-write leaves
either the previous snapshot or the new one, never a truncated file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ValidationError

from procwarden.exceptions import PersistenceFailure
from procwarden.supervisor.records import ProcessRecord
from procwarden.time_utils import now_local

logger = logging.getLogger(__name__)


class StateSnapshot(BaseModel):
    updated_at: datetime | None = None
    processes: dict[str, ProcessRecord] = {}

    def records(self) -> list[ProcessRecord]:
        return list(self.processes.values())


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write content to file atomically using temp + rename pattern."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent, suffix=".tmp", prefix=f".{path.name}.",
    )
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.rename(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            logger.debug("Failed to unlink temp file %s", tmp_path, exc_info=True)
        raise


class StateGateway:
    """Reads and writes the durable snapshot at *path*."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def save(self, records: Iterable[ProcessRecord]) -> None:
        """Replace the snapshot with *records*.

        Raises:
            PersistenceFailure: If the snapshot could not be written.
        """
        snapshot = StateSnapshot(
            updated_at=now_local(),
            processes={record.name: record for record in records},
        )
        text = json.dumps(snapshot.model_dump(mode="json"), indent=2, ensure_ascii=False)
        try:
            atomic_write_text(self.path, text + "\n")
        except OSError as exc:
            raise PersistenceFailure(f"Failed to write {self.path}: {exc}") from exc
        logger.debug("State saved to %s (%d processes)", self.path, len(snapshot.processes))

    def load(self) -> StateSnapshot:
        """Return the stored snapshot.

        A missing file yields an empty snapshot.  A corrupt or unreadable
        file yields an empty snapshot and a warning; the supervisor then
        starts from a clean table and overwrites the file on first change.
        """
        if not self.path.exists():
            return StateSnapshot()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return StateSnapshot.model_validate(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return StateSnapshot()
