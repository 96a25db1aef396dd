# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for procwarden/cli/commands/logs.py."""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from procwarden.cli.commands.logs import cmd_logs


def _args(name: str, lines: int = 50, no_follow: bool = True) -> argparse.Namespace:
    return argparse.Namespace(name=name, lines=lines, no_follow=no_follow)


@pytest.fixture
def app_logs(data_dir: Path) -> Path:
    d = data_dir / "logs" / "apps"
    d.mkdir(parents=True)
    return d


class TestCmdLogs:

    def test_missing_logs_exit(self, app_logs: Path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cmd_logs(_args("ghost"))
        assert exc_info.value.code == 1
        assert "No logs for app 'ghost'" in capsys.readouterr().out

    def test_prints_last_lines_of_both_streams(self, app_logs: Path, capsys):
        (app_logs / "web-out.log").write_text("one\ntwo\nthree\n", encoding="utf-8")
        (app_logs / "web-error.log").write_text("boom\n", encoding="utf-8")

        cmd_logs(_args("web", lines=2))

        out = capsys.readouterr().out
        assert "[OUT] one" not in out
        assert "[OUT] two" in out
        assert "[OUT] three" in out
        assert "[ERR] boom" in out
        assert "Following logs" not in out

    def test_stderr_only(self, app_logs: Path, capsys):
        (app_logs / "web-error.log").write_text("oops\n", encoding="utf-8")

        cmd_logs(_args("web"))

        out = capsys.readouterr().out
        assert "[ERR] oops" in out
        assert "[OUT]" not in out
