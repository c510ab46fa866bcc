from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Callable, Union

from codex_mcp.runner import Launcher
from codex_mcp.transport import LineTransport

THREAD_ID = "0199a213-81c0-7800-8aa1-bbab2a035a53"
OTHER_THREAD_ID = "0199a214-0000-7000-8000-000000000001"


def thread_started(thread_id: str = THREAD_ID) -> str:
    return json.dumps({"type": "thread.started", "thread_id": thread_id})


def agent_message(text: str) -> str:
    return json.dumps({"type": "item.completed", "item": {"type": "agent_message", "text": text}})


@dataclass
class FakeRun:
    """Script for one fake codex process."""
    lines: list[str] = field(default_factory=list)
    exit_code: int = 0
    stderr: bytes = b""
    delay: float = 0.0
    exit_delay: float = 0.0


class FakeProcess:
    """Stands in for asyncio.subprocess.Process."""

    def __init__(self, run: FakeRun):
        self.run = run
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.returncode: int | None = None
        self.killed = False
        self._done = asyncio.Event()
        self._task = asyncio.create_task(self._emit())

    async def _emit(self) -> None:
        if self.run.delay:
            await asyncio.sleep(self.run.delay)
        for line in self.run.lines:
            self.stdout.feed_data((line + "\n").encode())
            await asyncio.sleep(0)
        self.stdout.feed_eof()
        if self.run.stderr:
            self.stderr.feed_data(self.run.stderr)
        self.stderr.feed_eof()
        if self.run.exit_delay:
            await asyncio.sleep(self.run.exit_delay)
        self.returncode = self.run.exit_code
        self._done.set()

    async def wait(self) -> int:
        await self._done.wait()
        return self.returncode

    def kill(self) -> None:
        self.killed = True
        self._task.cancel()
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self.returncode = -9
        self._done.set()


class FakeLauncher(Launcher):
    """Records spawn calls and replays a scripted run for each."""

    def __init__(
        self,
        run: Union[FakeRun, Callable[[list[str]], FakeRun], None] = None,
        error: Exception | None = None,
    ):
        self.run = run or FakeRun(lines=[thread_started()])
        self.error = error
        self.calls: list[tuple[list[str], str | None]] = []
        self.processes: list[FakeProcess] = []

    async def spawn(self, args, cwd):
        self.calls.append((list(args), cwd))
        if self.error:
            raise self.error
        run = self.run(args) if callable(self.run) else self.run
        proc = FakeProcess(run)
        self.processes.append(proc)
        return proc


class MemoryTransport(LineTransport):
    """In-memory line transport; decoded outbound frames land in `sent`."""

    def __init__(self):
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []

    def push(self, frame: Union[dict, str]) -> None:
        self.inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def close(self) -> None:
        self.inbox.put_nowait(None)

    async def read_line(self):
        return await self.inbox.get()

    def write_line(self, line: str) -> None:
        self.sent.append(json.loads(line))
