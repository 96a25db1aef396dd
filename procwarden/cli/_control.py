# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from procwarden.exceptions import ControlConnectionError
from procwarden.paths import get_socket_path
from procwarden.supervisor.ipc import ControlResponse, request

logger = logging.getLogger(__name__)


# ── Public API ────────────────────────────────────────────


def daemon_available(socket_path: Path | None = None) -> bool:
    """Return whether a supervisor answers ``ping`` on the control socket.

    A socket file left behind by a crashed supervisor counts as unavailable.
    """
    path = socket_path or get_socket_path()
    if not path.exists():
        return False
    try:
        response = asyncio.run(request(path, "ping", timeout=2.0))
    except (ControlConnectionError, TimeoutError) as exc:
        logger.debug("Supervisor unreachable at %s: %s", path, exc)
        return False
    return response.error is None


def control_request(
    method: str,
    params: dict[str, Any] | None = None,
    *,
    timeout: float = 120.0,
    socket_path: Path | None = None,
) -> ControlResponse:
    """Send one request to the running supervisor.

    Raises:
        SystemExit: On connection error or timeout.
    """
    path = socket_path or get_socket_path()
    logger.debug("Control %s %s (timeout=%.1fs)", method, params, timeout)
    try:
        return asyncio.run(request(path, method, params, timeout=timeout))
    except ControlConnectionError as exc:
        print(f"Cannot reach supervisor: {exc}")
        sys.exit(1)
    except TimeoutError:
        print(f"Request timed out after {timeout}s.")
        sys.exit(1)
