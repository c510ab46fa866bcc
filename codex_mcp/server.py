"""
MCP tool server.

The server:
1. Reads JSON-RPC requests from stdin, one per line
2. Answers protocol methods (initialize, tools/list, ping) inline
3. Runs tools/call requests as asyncio tasks that shell out to codex
4. Writes JSON-RPC responses to stdout

Because tool calls run concurrently, a fast call issued after a slow one
may be answered first. Each response carries its request's id.

    server = StdioToolServer()
    for tool in default_tools(CodexRunner(), server.sessions):
        server.register(tool)
    server.run()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from codex_mcp import __version__
from codex_mcp.errors import (
    CodexError,
    ExitError,
    MethodNotFoundError,
    MissingSessionIdError,
    RpcError,
    UnknownToolError,
)
from codex_mcp.sessions import SessionRegistry
from codex_mcp.tools import ToolHandler
from codex_mcp.transport import JsonRpcRequest, JsonRpcResponse, LineTransport, StdioLineTransport

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "codex-cli-wrapper"
INTERNAL_ERROR = -32603

INSTRUCTIONS = (
    "IMPORTANT: Read the `collaborating-with-codex` skill before using any Codex tools. "
    "Codex is an external AI agent for second opinions on complex decisions. Form your own "
    "analysis first to avoid anchoring bias, then use Codex for brainstorming, plan "
    "validation, or code review. Sessions run in read-only sandbox mode."
)

NOTIFICATIONS = {"initialized", "notifications/initialized"}


class StdioToolServer:
    """
    JSON-RPC tool server that communicates over a line transport.

    Protocol:
    - One JSON-RPC message per line
    - Supports methods:
        - "initialize"  → protocol version, capabilities, server info
        - "initialized" → notification, no response
        - "tools/list"  → registered tool descriptors
        - "tools/call"  → runs a tool by name with arguments
        - "ping"        → health check
    """

    def __init__(self, sessions: SessionRegistry | None = None):
        self.sessions = sessions if sessions is not None else SessionRegistry()
        self._handlers: dict[str, ToolHandler] = {}
        self._pending: set[asyncio.Task] = set()

    def register(self, handler: ToolHandler) -> None:
        """Register a tool handler."""
        if not handler.name:
            raise ValueError(f"ToolHandler {handler.__class__.__name__} has no name")
        self._handlers[handler.name] = handler
        logger.info(f"Registered tool: {handler.name}")

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    def run(self, transport: LineTransport | None = None) -> None:
        """Serve stdin/stdout until stdin is closed."""
        asyncio.run(self.serve(transport or StdioLineTransport()))

    async def serve(self, transport: LineTransport) -> None:
        """
        Main loop: read frames, dispatch, write responses.

        Returns once the transport reaches end of input and every
        outstanding tool call has been answered.
        """
        logger.info(f"Tool server starting with {len(self._handlers)} tools: {self.tool_names}")

        while True:
            line = await transport.read_line()
            if line is None:
                break
            await self.handle_line(line, transport)

        if self._pending:
            logger.info(f"Input closed, waiting for {len(self._pending)} tool call(s)")
            await asyncio.gather(*self._pending, return_exceptions=True)

        logger.info("Tool server stopped")

    async def handle_line(self, line: str, transport: LineTransport) -> None:
        """Process one inbound line. Never raises."""
        if not line.strip():
            return

        try:
            request = JsonRpcRequest.from_json(line)
        except ValueError as e:
            logger.error(f"Ignoring malformed frame: {e}")
            return

        if request.method == "tools/call":
            task = asyncio.create_task(self._call_tool(request, transport))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return

        try:
            result = self._dispatch(request)
        except RpcError as e:
            if request.is_notification:
                logger.warning(f"Ignoring notification {request.method!r}: {e.message}")
            else:
                transport.send(JsonRpcResponse.failure(request.id, e.code, e.message))
            return

        if not request.is_notification:
            transport.send(JsonRpcResponse(id=request.id, result=result))

    def _dispatch(self, request: JsonRpcRequest) -> Any:
        """Route a non-tool method to its handler."""
        method = request.method

        if method == "initialize":
            return {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}, "resources": {}},
                "serverInfo": {"name": SERVER_NAME, "version": __version__},
                "instructions": INSTRUCTIONS,
            }

        if method in NOTIFICATIONS:
            logger.debug("Client finished initialization")
            return None

        if method == "tools/list":
            return {"tools": [h.get_schema() for h in self._handlers.values()]}

        if method == "ping":
            return {"status": "ok", "tools": self.tool_names}

        raise MethodNotFoundError("Method not found")

    async def _call_tool(self, request: JsonRpcRequest, transport: LineTransport) -> None:
        """Run one tools/call request; answer it exactly once unless it is a notification."""
        tool_name = request.params.get("name", "")
        arguments = request.params.get("arguments") or {}

        try:
            if not isinstance(tool_name, str):
                raise UnknownToolError(f"Invalid tool name: {tool_name!r}")
            handler = self._handlers.get(tool_name)
            if not handler:
                raise UnknownToolError(f"Unknown tool: {tool_name}")
            if not isinstance(arguments, dict):
                raise UnknownToolError(f"Invalid arguments for {tool_name}: expected an object")

            result = await handler.handle(arguments)
        except RpcError as e:
            response = JsonRpcResponse.failure(request.id, e.code, e.message)
        except MissingSessionIdError as e:
            logger.error(f"{tool_name}: codex output had no thread id ({e.label})")
            response = JsonRpcResponse.failure(request.id, INTERNAL_ERROR, str(e))
        except ExitError as e:
            logger.error(f"{tool_name}: codex failed with exit code {e.exit_code}")
            response = JsonRpcResponse.failure(request.id, INTERNAL_ERROR, str(e))
        except CodexError as e:
            logger.error(f"{tool_name}: {e}")
            response = JsonRpcResponse.failure(request.id, INTERNAL_ERROR, str(e))
        except Exception as e:
            logger.exception(f"{tool_name}: unexpected failure")
            response = JsonRpcResponse.failure(request.id, INTERNAL_ERROR, str(e))
        else:
            response = JsonRpcResponse(
                id=request.id,
                result={
                    "content": [
                        {"type": "text", "text": result.output},
                        {"type": "text", "text": f"\n[SESSION_ID: {result.session_id}]"},
                    ],
                },
            )

        if request.is_notification:
            logger.warning(f"tools/call {tool_name!r} sent as a notification, not answering")
            return
        transport.send(response)
