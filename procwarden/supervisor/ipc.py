"""
Control channel using Unix Domain Sockets and JSON Lines protocol.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from procwarden.exceptions import ControlConnectionError
from procwarden.logging_config import set_request_id

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────
IPC_BUFFER_LIMIT = 1 * 1024 * 1024  # 1MB, status tables stay far below this


# ── Protocol Types ──────────────────────────────────────────────────

@dataclass
class ControlRequest:
    """Request from a CLI invocation to the running supervisor."""

    id: str
    method: str
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(cls, method: str, params: dict[str, Any] | None = None) -> ControlRequest:
        return cls(id=f"req_{uuid.uuid4().hex[:8]}", method=method, params=params or {})

    def to_json(self) -> str:
        """Serialize to JSON line."""
        return json.dumps({
            "id": self.id,
            "method": self.method,
            "params": self.params
        }, default=str)

    @classmethod
    def from_json(cls, line: str) -> ControlRequest:
        """Deserialize from JSON line."""
        data = json.loads(line)
        return cls(
            id=data["id"],
            method=data["method"],
            params=data.get("params", {})
        )


@dataclass
class ControlResponse:
    """Response from the supervisor.  Exactly one of result/error is set."""

    id: str
    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None

    @classmethod
    def failure(cls, request_id: str, code: str, message: str) -> ControlResponse:
        return cls(id=request_id, error={"code": code, "message": message})

    def to_json(self) -> str:
        """Serialize to JSON line."""
        data: dict[str, Any] = {"id": self.id}
        if self.error is not None:
            data["error"] = self.error
        else:
            data["result"] = self.result if self.result is not None else {}
        return json.dumps(data, default=str)

    @classmethod
    def from_json(cls, line: str) -> ControlResponse:
        """Deserialize from JSON line."""
        data = json.loads(line)
        return cls(
            id=data["id"],
            result=data.get("result"),
            error=data.get("error"),
        )


# ── Control Server (Supervisor) ────────────────────────────────────

RequestHandler = Callable[[ControlRequest], Awaitable[ControlResponse]]


class ControlServer:
    """
    Unix Domain Socket server of the running supervisor.

    Each line received is one request; each request gets exactly one
    response line.  Handler errors are reported to the client and never
    stop the server.
    """

    def __init__(
        self,
        socket_path: Path,
        request_handler: RequestHandler
    ):
        self.socket_path = socket_path
        self.request_handler = request_handler
        self.server: asyncio.Server | None = None

    async def start(self) -> None:
        """Start the Unix socket server."""
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        # Remove stale socket file if exists
        if self.socket_path.exists():
            self.socket_path.unlink()

        self.server = await asyncio.start_unix_server(
            self._handle_connection,
            path=str(self.socket_path),
            limit=IPC_BUFFER_LIMIT,
        )
        logger.info("Control server started on %s", self.socket_path)

    async def _write(self, writer: asyncio.StreamWriter, response: ControlResponse) -> None:
        writer.write((response.to_json() + "\n").encode("utf-8"))
        await writer.drain()

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter
    ) -> None:
        """Handle a single client connection."""
        try:
            while True:
                line_bytes = await reader.readline()
                if not line_bytes:
                    break

                line = line_bytes.decode("utf-8").strip()
                if not line:
                    continue

                try:
                    request = ControlRequest.from_json(line)
                except (json.JSONDecodeError, KeyError, TypeError) as e:
                    logger.error("Invalid control request: %s", e)
                    await self._write(
                        writer, ControlResponse.failure("unknown", "INVALID_REQUEST", str(e)),
                    )
                    continue

                set_request_id(request.id)
                logger.debug("Control request: %s (id=%s)", request.method, request.id)
                try:
                    response = await self.request_handler(request)
                except Exception as e:
                    logger.exception("Error handling control request: %s", e)
                    response = ControlResponse.failure(request.id, "HANDLER_ERROR", str(e))
                await self._write(writer, response)

        except asyncio.CancelledError:
            logger.debug("Control connection cancelled")
        except (ConnectionError, OSError) as e:
            logger.debug("Control connection error: %s", e)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                logger.debug("Control connection close error", exc_info=True)

    async def stop(self) -> None:
        """Stop the server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Control server stopped")

        # Clean up socket file
        if self.socket_path.exists():
            self.socket_path.unlink()


# ── Control Client (CLI) ────────────────────────────────────────────

class ControlClient:
    """
    Unix Domain Socket client used by CLI invocations.
    """

    def __init__(self, socket_path: Path):
        self.socket_path = socket_path
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None

    async def connect(self, timeout: float = 2.0) -> None:
        """Connect to the Unix socket.

        Raises:
            ControlConnectionError: If no supervisor is listening.
        """
        try:
            async with asyncio.timeout(timeout):
                self.reader, self.writer = await asyncio.open_unix_connection(
                    path=str(self.socket_path),
                    limit=IPC_BUFFER_LIMIT,
                )
        except (OSError, TimeoutError) as e:
            raise ControlConnectionError(
                f"Cannot connect to supervisor at {self.socket_path}: {e}"
            ) from e
        logger.debug("Control client connected to %s", self.socket_path)

    async def send_request(
        self,
        request: ControlRequest,
        timeout: float = 60.0
    ) -> ControlResponse:
        """
        Send a request and wait for its response.

        Raises:
            TimeoutError: If timeout exceeded
            ControlConnectionError: If not connected or the connection closed
        """
        if not self.reader or not self.writer:
            raise ControlConnectionError("Not connected")

        self.writer.write((request.to_json() + "\n").encode("utf-8"))
        await self.writer.drain()
        logger.debug("Control request sent: %s (id=%s)", request.method, request.id)

        async with asyncio.timeout(timeout):
            response_line = await self.reader.readline()
        if not response_line:
            raise ControlConnectionError("Connection closed by supervisor")

        response = ControlResponse.from_json(response_line.decode("utf-8").strip())
        if response.id != request.id:
            raise ControlConnectionError(
                f"Control protocol error: response ID mismatch "
                f"(expected={request.id}, got={response.id})"
            )
        return response

    async def close(self) -> None:
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except (ConnectionError, OSError):
                logger.debug("Control client close error", exc_info=True)
        self.reader = None
        self.writer = None


async def request(
    socket_path: Path,
    method: str,
    params: dict[str, Any] | None = None,
    timeout: float = 60.0,
) -> ControlResponse:
    """Open a connection, send one request and return the response."""
    client = ControlClient(socket_path)
    await client.connect()
    try:
        return await client.send_request(ControlRequest.new(method, params), timeout=timeout)
    finally:
        await client.close()
