# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
"""Global test fixtures for ProcWarden.

Provides filesystem isolation for the runtime directory, shrunk supervisor
timings and fake child processes for the supervision engine.
"""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from procwarden.config.models import SupervisorSettings
from procwarden.supervisor.engine import SupervisionEngine
from procwarden.supervisor.persistence import StateGateway
from procwarden.supervisor.store import DescriptorStore
from tests.helpers.processes import FakeProcess


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Undo handler changes made by setup_logging() inside a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


# ── Runtime directory isolation ───────────────────────────


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point PROCWARDEN_DATA_DIR and PROCWARDEN_CONFIG into tmp_path."""
    d = tmp_path / "pw"
    d.mkdir()
    monkeypatch.setenv("PROCWARDEN_DATA_DIR", str(d))
    monkeypatch.setenv("PROCWARDEN_CONFIG", str(tmp_path / "procwarden.json"))
    return d


@pytest.fixture
def fast_settings() -> SupervisorSettings:
    """Supervisor timings shrunk for tests."""
    return SupervisorSettings(
        start_stagger_sec=0,
        restart_settle_sec=0,
        restart_all_delay_sec=0,
        stop_grace_sec=0.2,
        detached_check_interval_sec=0.05,
    )


# ── Engine ────────────────────────────────────────────────


@pytest.fixture
def launched(monkeypatch: pytest.MonkeyPatch) -> list[FakeProcess]:
    """Patch the engine's launcher; returns the list of spawned fakes."""
    procs: list[FakeProcess] = []

    async def _launch(record):
        proc = FakeProcess()
        procs.append(proc)
        return proc

    monkeypatch.setattr("procwarden.supervisor.engine.launch_process", _launch)
    return procs


@pytest.fixture
async def engine(tmp_path: Path, fast_settings: SupervisorSettings):
    """Engine over an empty store; every PID probes as dead.

    Shut down at teardown so no respawn or reaper task outlives the test.
    """
    eng = SupervisionEngine(
        DescriptorStore(),
        StateGateway(tmp_path / "state.json"),
        MagicMock(),
        settings=fast_settings,
        prober=lambda pid: False,
    )
    yield eng
    await eng.shutdown()
