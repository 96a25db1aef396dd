# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import os


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procwarden",
        description="ProcWarden - Local Process Supervisor",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Override runtime data directory (default: ~/.procwarden or PROCWARDEN_DATA_DIR)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Process list file (default: ./procwarden.json or PROCWARDEN_CONFIG)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: INFO or PROCWARDEN_LOG_LEVEL)",
    )
    sub = parser.add_subparsers(dest="command")

    # ── Lifecycle ─────────────────────────────────────────
    p_start = sub.add_parser("start", help="Start app(s); runs the supervisor if none is running")
    p_start.add_argument("name", nargs="?", default=None, help="App name (default: all)")
    p_start.set_defaults(func=_lazy_start)

    p_stop = sub.add_parser("stop", help="Stop app(s)")
    p_stop.add_argument("name", nargs="?", default=None, help="App name (default: all)")
    p_stop.set_defaults(func=_lazy_stop)

    p_restart = sub.add_parser("restart", help="Restart app(s) with the current config")
    p_restart.add_argument("name", nargs="?", default=None, help="App name (default: all)")
    p_restart.set_defaults(func=_lazy_restart)

    # ── Inspection ────────────────────────────────────────
    p_status = sub.add_parser("status", aliases=["list", "ls"], help="List all apps")
    p_status.set_defaults(func=_lazy_status)

    p_cleanup = sub.add_parser("cleanup", help="Forget apps whose process is gone")
    p_cleanup.set_defaults(func=_lazy_cleanup)

    p_logs = sub.add_parser("logs", help="Show stdout/stderr of an app")
    p_logs.add_argument("name", help="App name")
    p_logs.add_argument("-n", "--lines", type=int, default=50, help="Number of lines (default: 50)")
    p_logs.add_argument("--no-follow", action="store_true", help="Print and exit")
    p_logs.set_defaults(func=_lazy_logs)

    # ── Supervisor ────────────────────────────────────────
    p_shutdown = sub.add_parser("shutdown", help="Stop all apps and the running supervisor")
    p_shutdown.set_defaults(func=_lazy_shutdown)

    return parser


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    # Apply overrides before any path is resolved
    if args.data_dir:
        os.environ["PROCWARDEN_DATA_DIR"] = args.data_dir
    if args.config:
        os.environ["PROCWARDEN_CONFIG"] = args.config

    from procwarden.logging_config import setup_logging
    from procwarden.paths import get_log_dir

    setup_logging(
        level=args.log_level or os.environ.get("PROCWARDEN_LOG_LEVEL", "INFO"),
        log_dir=get_log_dir(),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


# ── Lazy import wrappers ──────────────────────────────────


def _lazy_start(args: argparse.Namespace) -> None:
    from procwarden.cli.commands.process import cmd_start

    cmd_start(args)


def _lazy_stop(args: argparse.Namespace) -> None:
    from procwarden.cli.commands.process import cmd_stop

    cmd_stop(args)


def _lazy_restart(args: argparse.Namespace) -> None:
    from procwarden.cli.commands.process import cmd_restart

    cmd_restart(args)


def _lazy_status(args: argparse.Namespace) -> None:
    from procwarden.cli.commands.process import cmd_status

    cmd_status(args)


def _lazy_cleanup(args: argparse.Namespace) -> None:
    from procwarden.cli.commands.process import cmd_cleanup

    cmd_cleanup(args)


def _lazy_shutdown(args: argparse.Namespace) -> None:
    from procwarden.cli.commands.process import cmd_shutdown

    cmd_shutdown(args)


def _lazy_logs(args: argparse.Namespace) -> None:
    from procwarden.cli.commands.logs import cmd_logs

    cmd_logs(args)
