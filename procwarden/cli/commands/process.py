"""CLI commands for starting, stopping and inspecting managed apps."""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from typing import Any

from procwarden.cli._control import control_request, daemon_available
from procwarden.exceptions import ConfigError, ProcessNotFound
from procwarden.paths import get_app_log_dir, get_config_path, get_state_path
from procwarden.supervisor.ipc import ControlResponse
from procwarden.time_utils import format_uptime

logger = logging.getLogger(__name__)

# Default pause between stop and start when restarting without a supervisor
_LOCAL_RESTART_SETTLE_SEC = 1.0
_LOCAL_RESTART_ALL_DELAY_SEC = 2.0


# ── Helpers ───────────────────────────────────────────────


def _report(response: ControlResponse, done: str) -> None:
    """Print the outcome of a forwarded command."""
    if response.error:
        code = response.error.get("code", "ERROR")
        print(response.error.get("message", code))
        if code == "CONFIG_ERROR":
            sys.exit(1)
        return
    names = next(iter((response.result or {}).values()), [])
    if names:
        for name in names:
            print(f"{name} {done}")
    else:
        print(f"Nothing {done}")


def _local_engine(*, reconcile_state: bool = True, persist: bool = True):
    """Build an engine over the persisted state, without a running supervisor."""
    from procwarden.supervisor.bootstrap import reconcile
    from procwarden.supervisor.engine import SupervisionEngine
    from procwarden.supervisor.output import FileOutputSink
    from procwarden.supervisor.persistence import StateGateway
    from procwarden.supervisor.store import DescriptorStore

    gateway = StateGateway(get_state_path())
    if reconcile_state:
        store = reconcile(gateway, persist=persist)
    else:
        store = DescriptorStore(gateway.load().records())
    return SupervisionEngine(store, gateway, FileOutputSink(get_app_log_dir(), echo=False))


def _run_foreground(names: list[str] | None) -> None:
    """Run the supervisor in this process until SIGINT/SIGTERM."""
    from procwarden.supervisor.service import SupervisorService

    service = SupervisorService(get_config_path())
    try:
        asyncio.run(service.run(names))
    except ConfigError as exc:
        print(f"Error: {exc}")
        sys.exit(1)


def _local_stop(name: str | None) -> list[str]:
    engine = _local_engine()

    async def _stop() -> list[str]:
        if name:
            await engine.stop(name)
            return [name]
        return await engine.stop_all()

    return asyncio.run(_stop())


def render_status(processes: list[dict[str, Any]]) -> str:
    """Render the process table."""
    rule = "-" * 80
    lines = [
        "",
        "Process Status:",
        rule,
        f"{'NAME':<20}{'STATUS':<18}{'PID':<10}{'RESTARTS':<10}{'EXIT':<8}UPTIME",
        rule,
    ]
    for proc in processes:
        uptime = proc.get("uptime_sec")
        restarts = str(proc.get("restart_count", 0))
        if proc.get("max_restarts", -1) != -1:
            restarts += f"/{proc['max_restarts']}"
        exit_code = proc.get("exit_code")
        lines.append(
            f"{proc['name']:<20}"
            f"{proc['status']:<18}"
            f"{str(proc.get('pid') or 'N/A'):<10}"
            f"{restarts:<10}"
            f"{'-' if exit_code is None else str(exit_code):<8}"
            f"{format_uptime(uptime) if uptime is not None else 'N/A'}"
        )
    if not processes:
        lines.append("No apps")
    lines.append(rule)
    return "\n".join(lines)


# ── Commands ──────────────────────────────────────────────


def cmd_start(args: argparse.Namespace) -> None:
    """Start app(s), forwarding to a running supervisor when there is one."""
    if daemon_available():
        _report(control_request("start", {"name": args.name}), "started")
        return
    _run_foreground([args.name] if args.name else None)


def cmd_stop(args: argparse.Namespace) -> None:
    """Stop app(s)."""
    if daemon_available():
        _report(control_request("stop", {"name": args.name}), "stopped")
        return
    try:
        stopped = _local_stop(args.name)
    except ProcessNotFound as exc:
        print(exc)
        return
    if not stopped:
        print("Nothing stopped")
    for name in stopped:
        print(f"{name} stopped")


def cmd_restart(args: argparse.Namespace) -> None:
    """Restart app(s) with the current configuration."""
    if daemon_available():
        _report(control_request("restart", {"name": args.name}, timeout=300.0), "restarted")
        return
    try:
        _local_stop(args.name)
    except ProcessNotFound as exc:
        print(exc)
    delay = _LOCAL_RESTART_SETTLE_SEC if args.name else _LOCAL_RESTART_ALL_DELAY_SEC
    time.sleep(delay)
    _run_foreground([args.name] if args.name else None)


def cmd_status(args: argparse.Namespace) -> None:
    """Show the process table."""
    if daemon_available():
        response = control_request("status")
        processes = (response.result or {}).get("processes", [])
    else:
        processes = _local_engine(persist=False).status()
    print(render_status(processes))


def cmd_cleanup(args: argparse.Namespace) -> None:
    """Forget apps whose recorded PID is no longer alive."""
    if daemon_available():
        removed = (control_request("cleanup").result or {}).get("removed", [])
    else:
        removed = _local_engine(reconcile_state=False).cleanup()
    if not removed:
        print("Nothing to clean up")
    for name in removed:
        print(f"Removed {name}")


def cmd_shutdown(args: argparse.Namespace) -> None:
    """Stop all apps and the running supervisor."""
    if not daemon_available():
        print("Supervisor is not running")
        return
    control_request("shutdown")
    print("Supervisor shutting down")
