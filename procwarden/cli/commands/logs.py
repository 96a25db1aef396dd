"""CLI commands for viewing app output logs."""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path


def cmd_logs(args: argparse.Namespace) -> None:
    """View app stdout/stderr (tail -f style)."""
    from procwarden.paths import get_app_log_dir
    from procwarden.supervisor.output import output_paths

    paths = output_paths(get_app_log_dir(), args.name)
    log_files = {
        prefix: paths[stream]
        for prefix, stream in (("[OUT]", "stdout"), ("[ERR]", "stderr"))
        if paths[stream].exists()
    }
    if not log_files:
        print(f"Error: No logs for app '{args.name}'")
        print(f"Expected: {paths['stdout']}")
        sys.exit(1)

    print(f"Logs for {args.name}:")
    print("-" * 60)

    for prefix, log_file in log_files.items():
        print(f"\n{prefix} {log_file.name}")
        _show_last_lines(log_file, args.lines, prefix=prefix)

    if args.no_follow:
        return

    print("\n" + "=" * 60)
    print("Following logs... (Ctrl+C to stop)")
    print("=" * 60)

    try:
        _follow_multiple_files(log_files)
    except KeyboardInterrupt:
        print("\n[Stopped]")


def _show_last_lines(log_file: Path, n: int, prefix: str = "") -> None:
    """Show last N lines of a file."""
    try:
        lines = log_file.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        print(f"Error reading {log_file}: {e}")
        return
    for line in lines[-n:] if n > 0 else []:
        if not line:
            continue
        print(f"{prefix} {line}" if prefix else line)


def _follow_multiple_files(log_files: dict[str, Path]) -> None:
    """Follow multiple log files simultaneously."""
    file_handles = {}

    # Open all files and seek to end
    for prefix, log_file in log_files.items():
        try:
            f = open(log_file, encoding="utf-8", errors="replace")  # noqa: SIM115
        except OSError as e:
            print(f"Error opening {log_file}: {e}")
            continue
        f.seek(0, 2)
        file_handles[prefix] = f

    try:
        while True:
            any_output = False

            for prefix, f in file_handles.items():
                line = f.readline()
                if line:
                    print(f"{prefix} {line.rstrip()}")
                    any_output = True

            if not any_output:
                time.sleep(0.1)
    finally:
        for f in file_handles.values():
            f.close()
