# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
"""ProcWarden: supervise a fixed set of local long-running processes."""

__version__ = "0.1.0"
