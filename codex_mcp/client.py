"""
Synchronous stdio client for the codex MCP server.

Launches the server as a subprocess and talks JSON-RPC over its pipes,
one request at a time. Useful from scripts and agent frameworks that want
codex as a tool without speaking MCP themselves.

Usage:
    client = CodexMcpClient()
    client.start()

    text = client.call_text("codex", {"prompt": "Review the retry logic in api.py"})
    # ...
    # [SESSION_ID: 0199a213-81c0-7800-8aa1-bbab2a035a53]

    client.stop()
"""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import Any

from codex_mcp.server import PROTOCOL_VERSION
from codex_mcp.transport import JsonRpcRequest, JsonRpcResponse

logger = logging.getLogger(__name__)


class CodexMcpClient:
    """
    JSON-RPC over stdin/stdout pipes to a codex MCP server process.

    Requests are sent one at a time, so each response line read back
    belongs to the request just written.
    """

    def __init__(self, command: list[str] | None = None, env: dict[str, str] | None = None):
        """
        Args:
            command: Command to launch the server process.
                     Defaults to [sys.executable, "-m", "codex_mcp"].
            env: Optional environment variables for the server process.
        """
        self.command = command or [sys.executable, "-m", "codex_mcp"]
        self.env = env
        self.server_info: dict = {}
        self._process: subprocess.Popen | None = None
        self._request_id = 0

    def __enter__(self) -> "CodexMcpClient":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def start(self) -> dict:
        """Launch the server and perform the initialize handshake."""
        if self.is_alive():
            logger.warning("Server already running, stopping first")
            self.stop()

        logger.info(f"Starting codex MCP server: {' '.join(self.command)}")
        self._process = subprocess.Popen(
            self.command,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=None,  # server logs pass through to our stderr
            text=True,
            env=self.env,
            bufsize=1,  # Line-buffered
        )

        response = self.send(JsonRpcRequest(
            method="initialize",
            params={"protocolVersion": PROTOCOL_VERSION, "capabilities": {}},
            id=self.next_id(),
        ))
        if response.is_error:
            raise RuntimeError(f"initialize failed: {response.error}")

        self.notify("notifications/initialized")
        self.server_info = response.result.get("serverInfo", {})
        return response.result

    def stop(self) -> None:
        """Close stdin and wait for the server to exit."""
        if self._process:
            if self._process.stdin:
                self._process.stdin.close()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.terminate()
                try:
                    self._process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    self._process.kill()
            if self._process.stdout:
                self._process.stdout.close()
            self._process = None
            logger.info("codex MCP server stopped")

    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        self._write(JsonRpcRequest(method=method, params=params or {}))

    def send(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """Send a request and read its response line."""
        self._write(request)

        response_line = self._process.stdout.readline()
        if not response_line:
            raise RuntimeError(f"codex MCP server exited (code {self._process.poll()})")

        return JsonRpcResponse.from_json(response_line.strip())

    def _write(self, request: JsonRpcRequest) -> None:
        if not self.is_alive():
            raise RuntimeError("Server not running. Call start() first.")
        self._process.stdin.write(request.to_json() + "\n")
        self._process.stdin.flush()

    def list_tools(self) -> list[dict]:
        response = self.send(JsonRpcRequest(method="tools/list", params={}, id=self.next_id()))
        if response.is_error:
            raise RuntimeError(f"tools/list failed: {response.error}")
        return response.result.get("tools", [])

    def call(self, tool_name: str, arguments: dict[str, Any]) -> dict:
        """
        Call a codex tool.

        Returns:
            The MCP result, {"content": [{"type": "text", "text": ...}, ...]}.
        """
        response = self.send(JsonRpcRequest(
            method="tools/call",
            params={"name": tool_name, "arguments": arguments},
            id=self.next_id(),
        ))

        if response.is_error:
            raise RuntimeError(f"Tool call failed ({tool_name}): {response.error.get('message')}")

        return response.result

    def call_text(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Call a tool and join its text content."""
        result = self.call(tool_name, arguments)
        return "".join(
            part.get("text", "") for part in result.get("content", []) if part.get("type") == "text"
        )
