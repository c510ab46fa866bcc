"""
Line transport and JSON-RPC frames.

MCP over stdio is one JSON-RPC 2.0 message per line. The server reads
requests from stdin without blocking the event loop and writes responses to
stdout, flushing after each line.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import stat
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, TextIO

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

# Inbound frames can carry long prompts
MAX_FRAME_BYTES = 16 * 1024 * 1024


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request or notification (id is None)."""
    method: str
    params: dict[str, Any]
    id: int | str | None = None

    def to_json(self) -> str:
        frame: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": self.method,
            "params": self.params,
        }
        if self.id is not None:
            frame["id"] = self.id
        return json.dumps(frame)

    @property
    def is_notification(self) -> bool:
        return self.id is None

    @classmethod
    def from_json(cls, data: str) -> "JsonRpcRequest":
        """
        Decode an inbound frame.

        Raises:
            ValueError: not JSON, not an object, or no method name.
        """
        parsed = json.loads(data)
        if not isinstance(parsed, dict):
            raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
        method = parsed.get("method")
        if not isinstance(method, str):
            raise ValueError("Frame has no method")
        params = parsed.get("params")
        return cls(
            method=method,
            params=params if isinstance(params, dict) else {},
            id=parsed.get("id"),
        )


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response."""
    id: int | str | None
    result: Any = None
    error: dict | None = None

    @classmethod
    def from_json(cls, data: str) -> "JsonRpcResponse":
        parsed = json.loads(data)
        return cls(
            id=parsed.get("id"),
            result=parsed.get("result"),
            error=parsed.get("error"),
        )

    @classmethod
    def failure(cls, id: int | str | None, code: int, message: str) -> "JsonRpcResponse":
        return cls(id=id, error={"code": code, "message": message})

    def to_json(self) -> str:
        frame: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": self.id}
        if self.error is not None:
            frame["error"] = self.error
        else:
            frame["result"] = self.result
        return json.dumps(frame)

    @property
    def is_error(self) -> bool:
        return self.error is not None


class LineTransport(ABC):
    """Newline-delimited text channel carrying JSON-RPC frames."""

    @abstractmethod
    async def read_line(self) -> str | None:
        """Return the next line without its newline, or None at end of input."""
        ...

    @abstractmethod
    def write_line(self, line: str) -> None:
        """Write one line and flush it."""
        ...

    def send(self, response: JsonRpcResponse) -> None:
        self.write_line(response.to_json())


class StdioLineTransport(LineTransport):
    """
    stdin/stdout transport for the server side of MCP.

    When stdin is a pipe, socket or terminal it is attached to the running
    loop so waiting for the next request never blocks subprocess I/O.
    Anything else (a redirected regular file) is read line by line in the
    default executor.
    """

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self._reader: asyncio.StreamReader | None = None
        self._use_pipe: bool | None = None

    def _stdin_is_pipe(self) -> bool:
        mode = os.fstat(self.stdin.fileno()).st_mode
        return stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode) or stat.S_ISCHR(mode)

    async def _connect(self) -> asyncio.StreamReader:
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=MAX_FRAME_BYTES)
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, self.stdin)
        logger.debug("Attached stdin to event loop")
        return reader

    async def read_line(self) -> str | None:
        if self._use_pipe is None:
            self._use_pipe = self._stdin_is_pipe()
            if not self._use_pipe:
                logger.debug("stdin is not a pipe, reading it in the executor")

        if not self._use_pipe:
            loop = asyncio.get_running_loop()
            text = await loop.run_in_executor(None, self.stdin.readline)
            if not text:
                return None
            return text.rstrip("\r\n")

        if self._reader is None:
            self._reader = await self._connect()
        data = await self._reader.readline()
        if not data:
            return None
        return data.decode("utf-8", errors="replace").rstrip("\r\n")

    def write_line(self, line: str) -> None:
        self.stdout.write(line + "\n")
        self.stdout.flush()
