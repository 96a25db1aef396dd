"""
Liveness probing and bare-PID signalling.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import signal

from procwarden.exceptions import SignalFailure

logger = logging.getLogger(__name__)


def is_alive(pid: int | None) -> bool:
    """Check whether a process with the given PID currently exists.

    Sends signal 0, which performs the existence and permission checks
    without delivering anything to the target.  A recycled PID belonging to
    an unrelated process reports ``True``; callers accept that window.
    """
    if pid is None or pid <= 0:
        # Signal 0 to pid 0 or a negative pid addresses a process group.
        return False
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but owned by another user.
        return True
    except OSError as exc:
        logger.debug("Liveness probe failed for PID %s: %s", pid, exc)
        return False


def terminate_pid(name: str, pid: int, sig: int = signal.SIGTERM) -> None:
    """Send *sig* to a bare PID that has no process handle.

    Raises:
        SignalFailure: If the process is gone or cannot be signalled.
    """
    if pid <= 0:
        raise SignalFailure(name, pid, "invalid PID")
    try:
        os.kill(pid, sig)
    except ProcessLookupError as exc:
        raise SignalFailure(name, pid, "no such process") from exc
    except PermissionError as exc:
        raise SignalFailure(name, pid, "permission denied") from exc
    except OSError as exc:
        raise SignalFailure(name, pid, str(exc)) from exc
    logger.info("Sent signal %s to %s (PID %s)", signal.Signals(sig).name, name, pid)
