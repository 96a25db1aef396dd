# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of ProcWarden, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Centralized path resolution for ProcWarden.

All modules import directory paths from here instead of computing them ad-hoc.
The runtime data directory can be overridden via the PROCWARDEN_DATA_DIR
environment variable, the config file via PROCWARDEN_CONFIG.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default runtime data directory
_DEFAULT_DATA_DIR = Path.home() / ".procwarden"

# Default config file name, resolved against the current directory
DEFAULT_CONFIG_NAME = "procwarden.json"


def get_data_dir() -> Path:
    """Return the runtime data directory, respecting PROCWARDEN_DATA_DIR."""
    env_val = os.environ.get("PROCWARDEN_DATA_DIR")
    if env_val:
        return Path(env_val).expanduser().resolve()
    return _DEFAULT_DATA_DIR


def get_config_path() -> Path:
    """Return the process list config path, respecting PROCWARDEN_CONFIG."""
    env_val = os.environ.get("PROCWARDEN_CONFIG")
    if env_val:
        return Path(env_val).expanduser().resolve()
    return Path.cwd() / DEFAULT_CONFIG_NAME


def get_state_path() -> Path:
    return get_data_dir() / "state.json"


def get_log_dir() -> Path:
    return get_data_dir() / "logs"


def get_app_log_dir() -> Path:
    """Return the directory holding per-process stdout/stderr files."""
    return get_log_dir() / "apps"


def get_run_dir() -> Path:
    return get_data_dir() / "run"


def get_socket_path() -> Path:
    """Return the control socket path of the running supervisor."""
    return get_run_dir() / "procwarden.sock"
