"""
Bridge between the codex MCP server and LangChain.

Wraps each codex tool in a LangChain StructuredTool so an agent can ask
Codex for a second opinion and resume the conversation later.

Usage:
    from codex_mcp.bridge import codex_langchain_tools

    with CodexMcpClient() as client:
        tools = codex_langchain_tools(client)
        agent = create_react_agent(model, tools)
"""

from __future__ import annotations

from typing import Any

from langchain_core.tools import StructuredTool

from codex_mcp.client import CodexMcpClient


def codex_langchain_tool(
    client: CodexMcpClient,
    tool_name: str,
    description_override: str | None = None,
) -> StructuredTool:
    """
    Create a LangChain StructuredTool that proxies one codex tool.

    The tool's argument schema is the server's inputSchema, and the result
    is the text content of the MCP response (including the
    `[SESSION_ID: ...]` line, which the agent needs to call codex-reply).

    Args:
        client: A started CodexMcpClient
        tool_name: "codex", "codex-reply" or "codex-review"
        description_override: Optional override for the tool description
    """
    tools = client.list_tools()
    tool_schema = next((t for t in tools if t["name"] == tool_name), None)
    if tool_schema is None:
        raise ValueError(f"Unknown codex tool: {tool_name}. Available: {[t['name'] for t in tools]}")

    def _call_codex(**kwargs: Any) -> str:
        """Proxy call to the codex MCP server."""
        try:
            return client.call_text(tool_name, kwargs)
        except RuntimeError as e:
            return f"Error calling {tool_name}: {e}"

    return StructuredTool.from_function(
        func=_call_codex,
        name=tool_name,
        description=description_override or tool_schema.get("description", tool_name),
        args_schema=tool_schema.get("inputSchema", {"type": "object", "properties": {}}),
    )


def codex_langchain_tools(client: CodexMcpClient) -> list[StructuredTool]:
    """Wrap every tool the server lists."""
    return [codex_langchain_tool(client, t["name"]) for t in client.list_tools()]
