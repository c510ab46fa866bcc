"""
Exception taxonomy for the codex MCP server.

Everything raised inside the tool pipeline derives from CodexError so the
dispatcher can turn it into a single JSON-RPC error frame.
"""

from __future__ import annotations


class CodexError(Exception):
    """Base class for failures while running a codex tool."""


class ToolArgumentError(CodexError):
    """A required tool argument is missing or has an invalid value."""


class SpawnError(CodexError):
    """The codex command could not be started at all."""


class ExitError(CodexError):
    """codex exited with a non-zero status."""

    def __init__(self, label: str, exit_code: int):
        self.label = label
        self.exit_code = exit_code
        super().__init__(f"{label} exited with code {exit_code}")


class MissingSessionIdError(CodexError):
    """codex exited cleanly but no thread id could be extracted."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Could not extract session ID from {label} output")


class CodexTimeoutError(CodexError):
    """codex did not exit within the configured timeout and was killed."""

    def __init__(self, label: str, timeout: float):
        self.label = label
        self.timeout = timeout
        super().__init__(f"{label} timed out after {timeout:g}s")


class OutputTooLargeError(CodexError):
    """codex wrote a stdout line longer than the stream limit."""

    def __init__(self, label: str, limit: int):
        self.label = label
        self.limit = limit
        super().__init__(f"{label} wrote an output line longer than {limit} bytes")


class RpcError(Exception):
    """A protocol-level error with a fixed JSON-RPC error code."""

    code = -32603

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MethodNotFoundError(RpcError):
    code = -32601


class UnknownToolError(RpcError):
    code = -32602
