"""
Runs the codex CLI as a child process and streams its output.

The launcher is the only piece that touches the OS. Tests swap in a fake
launcher that replays scripted stdout lines and an exit code.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Any

from codex_mcp.errors import CodexTimeoutError, ExitError, OutputTooLargeError, SpawnError
from codex_mcp.events import CodexResult, EventExtractor

logger = logging.getLogger(__name__)

# Agent messages arrive as single JSON lines and can be large
MAX_LINE_BYTES = 16 * 1024 * 1024


class Launcher(ABC):
    """Starts child processes for the runner."""

    @abstractmethod
    async def spawn(self, args: list[str], cwd: str | None) -> Any:
        """
        Start the command with the given arguments.

        Returns an object shaped like asyncio.subprocess.Process: `stdout`
        and `stderr` stream readers, `wait()`, and `kill()`.

        Raises:
            SpawnError: the command could not be started.
        """
        ...


class SubprocessLauncher(Launcher):
    """Launches the real codex binary via asyncio subprocesses."""

    def __init__(self, command: list[str] | None = None):
        """
        Args:
            command: Command prefix for codex, e.g. ["codex"] or
                     ["npx", "@openai/codex"].
        """
        self.command = command or ["codex"]

    async def spawn(self, args: list[str], cwd: str | None) -> Any:
        argv = [*self.command, *args]
        logger.debug(f"Spawning: {argv} (cwd={cwd or os.getcwd()})")
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd or os.getcwd(),
                env=os.environ.copy(),
                limit=MAX_LINE_BYTES,
            )
        except OSError as e:
            raise SpawnError(f"Failed to start {self.command[0]}: {e}") from e


class CodexRunner:
    """
    Executes one codex invocation and extracts its session id and answer.

    There is no deadline unless `timeout` is set; a run otherwise lasts
    until codex exits.
    """

    def __init__(self, launcher: Launcher | None = None, timeout: float | None = None):
        self.launcher = launcher or SubprocessLauncher()
        self.timeout = timeout

    async def run(
        self,
        args: list[str],
        cwd: str | None = None,
        label: str = "Codex",
    ) -> CodexResult:
        """
        Run codex and wait for it to exit.

        Args:
            args: Arguments after the codex command, e.g. ["exec", "hi", "--json"]
            cwd: Working directory for the child (defaults to ours)
            label: Name used in log lines and error messages

        Raises:
            SpawnError, ExitError, MissingSessionIdError, CodexTimeoutError,
            OutputTooLargeError
        """
        proc = await self.launcher.spawn(args, cwd)
        extractor = EventExtractor()

        try:
            # one deadline covers both draining the output and the exit
            exit_code = await asyncio.wait_for(self._collect(proc, extractor, label), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"{label} exceeded {self.timeout}s, killing it")
            raise CodexTimeoutError(label, self.timeout)
        finally:
            await self._reap(proc, label)

        if exit_code != 0:
            logger.error(f"{label} exited with code {exit_code}")
            raise ExitError(label, exit_code)

        result = extractor.finish(label, exit_code)
        logger.info(f"{label} finished: session={result.session_id}")
        return result

    async def _collect(self, proc: Any, extractor: EventExtractor, label: str) -> int:
        stderr_task = asyncio.ensure_future(self._pump_stderr(proc.stderr, label))
        try:
            await self._pump_stdout(proc.stdout, extractor, label)
            await stderr_task
        finally:
            if not stderr_task.done():
                stderr_task.cancel()
        return await proc.wait()

    @staticmethod
    async def _reap(proc: Any, label: str) -> None:
        """Kill the child if it is still running and wait for it."""
        if proc.returncode is not None:
            return
        logger.debug(f"Killing {label} (pid={getattr(proc, 'pid', '?')})")
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()

    @staticmethod
    async def _pump_stdout(stream: asyncio.StreamReader, extractor: EventExtractor, label: str) -> None:
        while True:
            try:
                data = await stream.readline()
            except (ValueError, asyncio.LimitOverrunError) as e:
                logger.error(f"{label} stdout line exceeded the stream limit: {e}")
                raise OutputTooLargeError(label, MAX_LINE_BYTES) from e
            if not data:
                break
            line = data.decode("utf-8", errors="replace").rstrip("\r\n")
            extractor.feed(line)

    @staticmethod
    async def _pump_stderr(stream: asyncio.StreamReader, label: str) -> None:
        while True:
            data = await stream.read(4096)
            if not data:
                break
            logger.warning(f"{label} stderr: {data.decode('utf-8', errors='replace').rstrip()}")
