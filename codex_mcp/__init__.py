"""
codex-mcp: an MCP tool server backed by the Codex CLI.

Architecture:
    ┌──────────────┐    stdio     ┌──────────────┐    argv     ┌──────────────┐
    │  MCP client  │ ──────────── │   codex-mcp  │ ──────────▶ │  codex exec  │
    │ (any agent)  │   JSON-RPC   │   (asyncio)  │ ◀────────── │   --json     │
    └──────────────┘              └──────────────┘    JSONL    └──────────────┘

Every tools/call spawns `codex exec ... --json`, streams its JSONL events,
and extracts the thread id so the conversation can be resumed with
codex-reply.

StdioToolServer handles the protocol, the ToolHandler subclasses build
codex argument vectors, and CodexRunner runs codex and parses its output.
CodexMcpClient drives the server from Python; the LangChain bridge wraps
its tools for agent frameworks.
"""

__version__ = "1.1.1"

from codex_mcp.events import CodexResult, EventExtractor
from codex_mcp.runner import CodexRunner, Launcher, SubprocessLauncher
from codex_mcp.server import StdioToolServer
from codex_mcp.sessions import SessionRecord, SessionRegistry
from codex_mcp.tools import ToolHandler, default_tools
from codex_mcp.client import CodexMcpClient


# Bridge requires langchain; lazy import to keep the server standalone
def codex_langchain_tools(*args, **kwargs):
    from codex_mcp.bridge import codex_langchain_tools as _impl
    return _impl(*args, **kwargs)


__all__ = [
    "CodexMcpClient",
    "CodexResult",
    "CodexRunner",
    "EventExtractor",
    "Launcher",
    "SessionRecord",
    "SessionRegistry",
    "StdioToolServer",
    "SubprocessLauncher",
    "ToolHandler",
    "codex_langchain_tools",
    "default_tools",
]
