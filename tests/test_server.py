from __future__ import annotations

import logging

import pytest

from codex_mcp.errors import SpawnError
from codex_mcp.runner import CodexRunner
from codex_mcp.server import PROTOCOL_VERSION, StdioToolServer
from codex_mcp.tools import default_tools
from tests.utils import THREAD_ID, FakeLauncher, FakeRun, MemoryTransport, agent_message, thread_started


def make_server(launcher: FakeLauncher) -> StdioToolServer:
    server = StdioToolServer()
    for tool in default_tools(CodexRunner(launcher), server.sessions):
        server.register(tool)
    return server


async def exchange(server: StdioToolServer, *frames) -> list[dict]:
    transport = MemoryTransport()
    for frame in frames:
        transport.push(frame)
    transport.close()
    await server.serve(transport)
    return transport.sent


def tool_call(id, name, arguments):
    return {"jsonrpc": "2.0", "id": id, "method": "tools/call", "params": {"name": name, "arguments": arguments}}


@pytest.mark.asyncio
async def test_initialize():
    server = make_server(FakeLauncher())

    [response] = await exchange(server, {"jsonrpc": "2.0", "method": "initialize", "id": 1})

    assert response["id"] == 1
    result = response["result"]
    assert result["protocolVersion"] == PROTOCOL_VERSION == "2024-11-05"
    assert result["serverInfo"]["name"] == "codex-cli-wrapper"
    assert result["capabilities"] == {"tools": {}, "resources": {}}
    assert "read-only" in result["instructions"]


@pytest.mark.asyncio
async def test_initialized_notification_has_no_response():
    server = make_server(FakeLauncher())

    sent = await exchange(
        server,
        {"jsonrpc": "2.0", "method": "initialized"},
        {"jsonrpc": "2.0", "method": "notifications/initialized"},
    )

    assert sent == []


@pytest.mark.asyncio
async def test_tools_list():
    server = make_server(FakeLauncher())

    [response] = await exchange(server, {"jsonrpc": "2.0", "method": "tools/list", "id": "a"})

    names = [t["name"] for t in response["result"]["tools"]]
    assert names == ["codex", "codex-reply", "codex-review"]
    assert all("inputSchema" in t and t["description"] for t in response["result"]["tools"])


@pytest.mark.asyncio
async def test_ping():
    server = make_server(FakeLauncher())

    [response] = await exchange(server, {"jsonrpc": "2.0", "method": "ping", "id": 7})

    assert response["result"] == {"status": "ok", "tools": ["codex", "codex-reply", "codex-review"]}


@pytest.mark.asyncio
async def test_unknown_method():
    server = make_server(FakeLauncher())

    sent = await exchange(
        server,
        {"jsonrpc": "2.0", "method": "resources/list", "id": 3},
        {"jsonrpc": "2.0", "method": "notifications/cancelled"},
    )

    assert sent == [{"jsonrpc": "2.0", "id": 3, "error": {"code": -32601, "message": "Method not found"}}]


@pytest.mark.asyncio
async def test_malformed_frames_are_ignored(caplog):
    server = make_server(FakeLauncher())

    with caplog.at_level(logging.ERROR, logger="codex_mcp.server"):
        sent = await exchange(
            server,
            "{not json",
            "[1, 2]",
            '{"id": 4}',
            "",
            {"jsonrpc": "2.0", "method": "ping", "id": 5},
        )

    assert [r["id"] for r in sent] == [5]
    assert "malformed" in caplog.text


@pytest.mark.asyncio
async def test_codex_call_returns_session_annotation():
    launcher = FakeLauncher(FakeRun(lines=[thread_started()]))
    server = make_server(launcher)

    [response] = await exchange(server, tool_call(2, "codex", {"prompt": "hello"}))

    content = response["result"]["content"]
    assert content[1] == {"type": "text", "text": f"\n[SESSION_ID: {THREAD_ID}]"}
    assert content[0]["text"] == thread_started() + "\n"
    assert THREAD_ID in server.sessions
    assert launcher.calls[0][0] == ["exec", "hello", "--sandbox", "read-only", "--json"]


@pytest.mark.asyncio
async def test_codex_call_prefers_agent_message():
    launcher = FakeLauncher(FakeRun(lines=[thread_started(), agent_message("Looks fine.")]))
    server = make_server(launcher)

    [response] = await exchange(server, tool_call(2, "codex", {"prompt": "hello"}))

    assert response["result"]["content"][0] == {"type": "text", "text": "Looks fine."}


@pytest.mark.asyncio
async def test_review_missing_base_is_internal_error():
    launcher = FakeLauncher()
    server = make_server(launcher)

    [response] = await exchange(server, tool_call(9, "codex-review", {"mode": "base"}))

    assert response["id"] == 9
    assert response["error"]["code"] == -32603
    assert "requires base" in response["error"]["message"]
    assert launcher.calls == []


@pytest.mark.asyncio
async def test_unknown_tool():
    server = make_server(FakeLauncher())

    [response] = await exchange(server, tool_call(4, "gemini", {}))

    assert response["error"] == {"code": -32602, "message": "Unknown tool: gemini"}


@pytest.mark.asyncio
async def test_exit_failure_is_internal_error():
    server = make_server(FakeLauncher(FakeRun(lines=[thread_started()], exit_code=1)))

    [response] = await exchange(server, tool_call(5, "codex-reply", {"sessionId": THREAD_ID, "prompt": "more"}))

    assert response["error"] == {"code": -32603, "message": "Codex resume exited with code 1"}


@pytest.mark.asyncio
async def test_missing_session_id_is_internal_error():
    server = make_server(FakeLauncher(FakeRun(lines=["no json here"])))

    [response] = await exchange(server, tool_call(6, "codex-review", {"mode": "uncommitted"}))

    assert response["error"] == {
        "code": -32603,
        "message": "Could not extract session ID from Codex review output",
    }


@pytest.mark.asyncio
async def test_spawn_failure_is_internal_error():
    server = make_server(FakeLauncher(error=SpawnError("Failed to start codex: No such file")))

    [response] = await exchange(server, tool_call(8, "codex", {"prompt": "hello"}))

    assert response["error"]["code"] == -32603
    assert "Failed to start codex" in response["error"]["message"]
    assert len(server.sessions) == 0


@pytest.mark.asyncio
async def test_concurrent_calls_complete_out_of_order():
    def script(args):
        if "slow" in args:
            return FakeRun(lines=[thread_started(THREAD_ID), agent_message("slow done")], delay=0.2)
        return FakeRun(lines=[thread_started("0199a214-0000-7000-8000-000000000002"), agent_message("fast done")])

    server = make_server(FakeLauncher(script))

    sent = await exchange(
        server,
        tool_call("A", "codex", {"prompt": "slow"}),
        tool_call("B", "codex", {"prompt": "fast"}),
    )

    assert [r["id"] for r in sent] == ["B", "A"]
    by_id = {r["id"]: r["result"]["content"][0]["text"] for r in sent}
    assert by_id == {"A": "slow done", "B": "fast done"}
    assert len(server.sessions) == 2


@pytest.mark.asyncio
async def test_one_response_per_request():
    server = make_server(FakeLauncher(FakeRun(lines=[thread_started()])))

    sent = await exchange(
        server,
        {"jsonrpc": "2.0", "method": "initialize", "id": 1},
        {"jsonrpc": "2.0", "method": "initialized"},
        {"jsonrpc": "2.0", "method": "tools/list", "id": 2},
        tool_call(3, "codex", {"prompt": "hi"}),
        tool_call(4, "codex-review", {"mode": "commit"}),
        tool_call(5, "nope", {}),
    )

    assert sorted(r["id"] for r in sent) == [1, 2, 3, 4, 5]
    assert all(("result" in r) != ("error" in r) for r in sent)


def test_register_requires_name():
    class Nameless:
        name = ""

    with pytest.raises(ValueError):
        StdioToolServer().register(Nameless())


@pytest.mark.asyncio
async def test_non_string_tool_name_is_invalid_params():
    launcher = FakeLauncher()
    server = make_server(launcher)

    [response] = await exchange(server, tool_call(11, ["codex"], {"prompt": "hi"}))

    assert response["id"] == 11
    assert response["error"]["code"] == -32602
    assert launcher.calls == []


@pytest.mark.asyncio
async def test_tool_call_notification_runs_without_response():
    launcher = FakeLauncher(FakeRun(lines=[thread_started()]))
    server = make_server(launcher)

    sent = await exchange(
        server,
        {"jsonrpc": "2.0", "method": "tools/call", "params": {"name": "codex", "arguments": {"prompt": "hi"}}},
        {"jsonrpc": "2.0", "method": "tools/call", "params": {"name": "codex-review", "arguments": {}}},
    )

    assert sent == []
    assert len(launcher.calls) == 1
    assert THREAD_ID in server.sessions
