# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from procwarden.config.models import (
    ProcessSpec,
    ProcWardenConfig,
    SupervisorSettings,
    load_config,
    save_config,
)

__all__ = [
    "ProcessSpec",
    "ProcWardenConfig",
    "SupervisorSettings",
    "load_config",
    "save_config",
]
