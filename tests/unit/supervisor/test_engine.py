# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for the supervision engine.

Child processes are FakeProcess instances, so crashes are triggered
explicitly and restart sequences run in milliseconds.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from procwarden.config.models import ProcessSpec
from procwarden.exceptions import (
    AlreadyRunning,
    PersistenceFailure,
    ProcessNotFound,
    RestartExhausted,
    SignalFailure,
)
from procwarden.supervisor.engine import SupervisionEngine
from procwarden.supervisor.records import ProcessRecord, ProcessStatus
from tests.helpers.processes import FakeProcess, python_spec, wait_until


def _spec(name: str = "web", **kwargs) -> ProcessSpec:
    kwargs.setdefault("restart_delay_ms", 0)
    return ProcessSpec(name=name, command="app", **kwargs)


def _saved(engine: SupervisionEngine) -> dict:
    return json.loads(engine.gateway.path.read_text(encoding="utf-8"))["processes"]


class TestStart:

    async def test_start_spawns_and_persists_running(self, engine, launched):
        record = await engine.start(_spec())

        assert record.status is ProcessStatus.RUNNING
        assert record.pid == launched[0].pid
        assert record.start_time is not None
        assert record.restart_count == 0
        assert engine.is_attached("web")
        assert _saved(engine)["web"]["status"] == "running"
        assert _saved(engine)["web"]["pid"] == launched[0].pid

    async def test_start_running_name_raises_already_running(self, engine, launched):
        await engine.start(_spec())

        with pytest.raises(AlreadyRunning):
            await engine.start(_spec())
        assert len(launched) == 1

    async def test_start_detached_name_raises_already_running(self, engine, launched):
        engine.store.put(ProcessRecord(
            name="web", command="app", status=ProcessStatus.RUNNING_DETACHED, pid=4242,
        ))

        with pytest.raises(AlreadyRunning):
            await engine.start(_spec())
        assert launched == []

    async def test_output_chunks_reach_sink_in_order(self, engine, launched):
        await engine.start(_spec())
        proc = launched[0]

        for count, (stream, data) in enumerate(
            [("stdout", b"one\n"), ("stderr", b"bad\n"), ("stdout", b"two\n")], start=1,
        ):
            proc.emit(stream, data)
            await wait_until(lambda: engine.sink.write.call_count == count)

        calls = [c.args for c in engine.sink.write.call_args_list]
        assert calls == [
            ("web", "stdout", b"one\n"),
            ("web", "stderr", b"bad\n"),
            ("web", "stdout", b"two\n"),
        ]

    async def test_launch_failure_is_treated_as_crash(self, engine, monkeypatch):
        async def _fail(record):
            raise FileNotFoundError("no such file: app")

        monkeypatch.setattr("procwarden.supervisor.engine.launch_process", _fail)
        exhausted: list[RestartExhausted] = []
        engine.on_restart_exhausted = exhausted.append

        await engine.start(_spec(max_restarts=0))

        assert engine.store.get("web") is None
        assert exhausted[0].restart_count == 1

    async def test_persistence_failure_does_not_abort_start(self, engine, launched):
        engine.gateway = MagicMock()
        engine.gateway.save.side_effect = PersistenceFailure("disk full")

        record = await engine.start(_spec())

        assert record.status is ProcessStatus.RUNNING
        assert engine.store.get("web") is record


class TestRestartPolicy:

    async def test_max_restarts_two_deletes_after_third_crash(self, engine, launched):
        exhausted: list[RestartExhausted] = []
        engine.on_restart_exhausted = exhausted.append
        await engine.start(_spec(max_restarts=2))

        for expected in (2, 3):
            launched[-1].exit(1)
            await wait_until(lambda: len(launched) == expected)
        launched[-1].exit(1)
        await wait_until(lambda: engine.store.get("web") is None)

        assert len(launched) == 3
        assert exhausted[0].restart_count == 3
        assert exhausted[0].max_restarts == 2
        assert "web" not in _saved(engine)

    async def test_unlimited_restarts_survive_fifty_crashes(self, engine, launched):
        await engine.start(_spec(max_restarts=-1))

        for i in range(50):
            launched[-1].exit(1)
            await wait_until(lambda: len(launched) == i + 2)

        record = engine.store.get("web")
        await wait_until(lambda: record.status is ProcessStatus.RUNNING)
        assert record.restart_count == 50
        assert record.pid == launched[-1].pid
        assert record.exit_code == 1

    async def test_zero_max_restarts_never_restarts(self, engine, launched):
        await engine.start(_spec(max_restarts=0))

        launched[0].exit(3)
        await wait_until(lambda: engine.store.get("web") is None)
        await asyncio.sleep(0.05)

        assert len(launched) == 1

    async def test_exit_records_code_and_clears_pid(self, engine, launched):
        await engine.start(_spec(restart_delay_ms=500))

        launched[0].exit(7)
        record = engine.store.get("web")
        await wait_until(lambda: record.status is ProcessStatus.STOPPED)

        assert record.exit_code == 7
        assert record.pid is None
        assert record.restart_count == 1
        assert not engine.is_attached("web")
        assert _saved(engine)["web"]["status"] == "stopped"

    async def test_svc_scenario_one_restart_then_deleted(self, engine, launched):
        await engine.start(_spec("svc", restart_delay_ms=100, max_restarts=1))

        launched[0].exit(1)
        record = engine.store.get("svc")
        await wait_until(lambda: record.restart_count == 1)
        assert len(launched) == 1  # respawn waits for the delay

        await wait_until(lambda: len(launched) == 2)
        await wait_until(lambda: record.status is ProcessStatus.RUNNING)
        launched[1].exit(1)
        await wait_until(lambda: engine.store.get("svc") is None)

        assert record.restart_count == 2
        assert len(launched) == 2

    async def test_stop_during_delay_cancels_restart(self, engine, launched):
        await engine.start(_spec(restart_delay_ms=100))

        launched[0].exit(1)
        await wait_until(lambda: engine.store.get("web").status is ProcessStatus.STOPPED)
        await engine.stop("web")
        await asyncio.sleep(0.2)

        assert len(launched) == 1
        assert engine.store.get("web") is None

    async def test_fresh_start_during_delay_supersedes_restart(self, engine, launched):
        await engine.start(_spec(restart_delay_ms=100))

        launched[0].exit(1)
        await wait_until(lambda: engine.store.get("web").status is ProcessStatus.STOPPED)
        fresh = await engine.start(_spec(restart_delay_ms=100))
        await asyncio.sleep(0.2)

        assert len(launched) == 2
        assert engine.store.get("web") is fresh
        assert fresh.restart_count == 0


class TestStop:

    async def test_stop_terminates_and_deletes(self, engine, launched):
        await engine.start(_spec())

        stopped = await engine.stop("web")

        assert stopped.name == "web"
        assert launched[0].signals == ["TERM"]
        assert engine.store.get("web") is None
        assert _saved(engine) == {}

    async def test_stop_is_idempotent(self, engine, launched):
        await engine.start(_spec())
        await engine.stop("web")
        before = engine.gateway.path.read_text(encoding="utf-8")

        with pytest.raises(ProcessNotFound):
            await engine.stop("web")
        assert json.loads(engine.gateway.path.read_text(encoding="utf-8"))["processes"] == \
            json.loads(before)["processes"]

    async def test_late_exit_after_stop_is_ignored(self, engine, launched):
        await engine.start(_spec())
        await engine.stop("web")
        await asyncio.sleep(0.05)

        assert len(launched) == 1
        assert engine.store.get("web") is None

    async def test_stop_escalates_to_kill_after_grace(self, engine, monkeypatch):
        stubborn = FakeProcess(exit_on_terminate=False)

        async def _launch(record):
            return stubborn

        monkeypatch.setattr("procwarden.supervisor.engine.launch_process", _launch)
        await engine.start(_spec())

        await engine.stop("web")
        assert engine.store.get("web") is None
        await wait_until(lambda: stubborn.returncode is not None)

        assert stubborn.signals == ["TERM", "KILL"]

    async def test_stop_detached_signals_bare_pid(self, engine):
        engine.store.put(ProcessRecord(
            name="web", command="app", status=ProcessStatus.RUNNING_DETACHED, pid=4242,
        ))

        with patch("procwarden.supervisor.engine.terminate_pid") as mock_term:
            await engine.stop("web")

        mock_term.assert_called_once_with("web", 4242)
        assert engine.store.get("web") is None

    async def test_stop_detached_tolerates_signal_failure(self, engine):
        engine.store.put(ProcessRecord(
            name="web", command="app", status=ProcessStatus.RUNNING_DETACHED, pid=4242,
        ))

        with patch(
            "procwarden.supervisor.engine.terminate_pid",
            side_effect=SignalFailure("web", 4242, "no such process"),
        ):
            await engine.stop("web")

        assert engine.store.get("web") is None

    async def test_stop_during_launch_terminates_fresh_child(self, engine, monkeypatch):
        release = asyncio.Event()
        proc = FakeProcess()

        async def _slow_launch(record):
            await release.wait()
            return proc

        monkeypatch.setattr("procwarden.supervisor.engine.launch_process", _slow_launch)
        start_task = asyncio.create_task(engine.start(_spec()))
        await wait_until(lambda: engine.store.get("web") is not None)

        await engine.stop("web")
        release.set()
        await start_task

        assert proc.signals == ["TERM"]
        assert engine.store.get("web") is None
        assert not engine.is_attached("web")


class TestRestart:

    async def test_restart_uses_fresh_spec_and_resets_count(self, engine, launched):
        await engine.start(_spec(restart_delay_ms=0))
        launched[0].exit(1)
        await wait_until(lambda: len(launched) == 2)

        record = await engine.restart("web", _spec(args=["--new"]))

        assert record.args == ["--new"]
        assert record.restart_count == 0
        assert launched[1].signals == ["TERM"]
        assert len(launched) == 3

    async def test_restart_without_spec_reuses_last_known(self, engine, launched):
        await engine.start(_spec(args=["--old"]))

        record = await engine.restart("web")

        assert record.args == ["--old"]
        assert record.pid == launched[-1].pid

    async def test_restart_unknown_raises_not_found(self, engine, launched):
        with pytest.raises(ProcessNotFound):
            await engine.restart("ghost")


class TestBulk:

    async def test_start_all_skips_running(self, engine, launched):
        await engine.start(_spec("a"))

        started = await engine.start_all([_spec("a"), _spec("b"), _spec("c")])

        assert started == ["b", "c"]
        assert engine.store.names() == ["a", "b", "c"]

    async def test_start_all_pauses_between_spawns(self, engine, launched):
        engine.settings.start_stagger_sec = 0.5
        with patch("procwarden.supervisor.engine.asyncio.sleep") as mock_sleep:
            mock_sleep.return_value = None
            await engine.start_all([_spec("a"), _spec("b"), _spec("c")])

        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 0.5]

    async def test_stop_all_in_store_order(self, engine, launched):
        await engine.start_all([_spec("a"), _spec("b")])

        stopped = await engine.stop_all()

        assert stopped == ["a", "b"]
        assert len(engine.store) == 0

    async def test_restart_all(self, engine, launched):
        await engine.start_all([_spec("a"), _spec("b")])

        restarted = await engine.restart_all([_spec("a"), _spec("b")])

        assert restarted == ["a", "b"]
        assert len(launched) == 4
        assert all(r.status is ProcessStatus.RUNNING for r in engine.store)


class TestInspection:

    async def test_status_views(self, engine, launched):
        await engine.start(_spec("a"))
        engine.store.put(ProcessRecord(
            name="b", command="app", status=ProcessStatus.RUNNING_DETACHED, pid=4242,
        ))

        views = {v["name"]: v for v in engine.status()}

        assert views["a"]["status"] == "running"
        assert views["a"]["attached"] is True
        assert views["b"]["status"] == "running-detached"
        assert views["b"]["attached"] is False
        assert views["b"]["pid"] == 4242

    async def test_cleanup_removes_dead_pids_only(self, engine):
        engine._prober = lambda pid: pid == 100
        engine.store.put(ProcessRecord(name="alive", command="x", status=ProcessStatus.RUNNING_DETACHED, pid=100))
        engine.store.put(ProcessRecord(name="dead", command="x", status=ProcessStatus.RUNNING_DETACHED, pid=200))
        engine.store.put(ProcessRecord(name="idle", command="x", status=ProcessStatus.STOPPED))

        removed = engine.cleanup()

        assert removed == ["dead"]
        assert engine.store.names() == ["alive", "idle"]
        assert set(_saved(engine)) == {"alive", "idle"}

    async def test_check_detached_applies_restart_policy(self, engine, launched):
        record = ProcessRecord(
            name="web", command="app", status=ProcessStatus.RUNNING_DETACHED,
            pid=4242, restart_count=3, restart_delay_ms=0,
        )
        engine.store.put(record)

        lost = engine.check_detached()
        await wait_until(lambda: record.status is ProcessStatus.RUNNING)

        assert lost == ["web"]
        assert record.restart_count == 4
        assert record.exit_code is None
        assert record.pid == launched[0].pid
        assert engine.is_attached("web")

    async def test_check_detached_ignores_live_pids(self, engine, launched):
        engine._prober = lambda pid: True
        engine.store.put(ProcessRecord(
            name="web", command="app", status=ProcessStatus.RUNNING_DETACHED, pid=4242,
        ))

        assert engine.check_detached() == []
        assert engine.store.get("web").status is ProcessStatus.RUNNING_DETACHED


class TestShutdown:

    async def test_shutdown_cancels_pending_restarts_and_stops_all(self, engine, launched):
        await engine.start(_spec("a", restart_delay_ms=100))
        await engine.start(_spec("b"))
        launched[0].exit(1)
        await wait_until(lambda: engine.store.get("a").status is ProcessStatus.STOPPED)

        await engine.shutdown()
        await asyncio.sleep(0.15)

        assert len(engine.store) == 0
        assert len(launched) == 2
        assert launched[1].signals == ["TERM"]
        engine.sink.close_all.assert_called_once()


class TestRealChildren:
    """End-to-end with real interpreter children."""

    async def test_real_crash_is_recorded_and_capped(self, engine):
        exhausted: list[RestartExhausted] = []
        engine.on_restart_exhausted = exhausted.append

        await engine.start(python_spec("crash", "import sys; sys.exit(2)", max_restarts=0))
        await wait_until(lambda: engine.store.get("crash") is None, timeout=10.0)

        assert exhausted[0].name == "crash"
        assert exhausted[0].restart_count == 1

    async def test_real_child_stopped(self, engine, tmp_path: Path):
        record = await engine.start(python_spec("sleeper", "import time; time.sleep(30)"))
        pid = record.pid

        await engine.stop("sleeper")
        await engine.shutdown()

        from procwarden.supervisor.liveness import is_alive
        assert not is_alive(pid)
