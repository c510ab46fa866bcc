"""
Parsing of `codex exec --json` event streams.

codex writes one JSON event per line on stdout, mixed with the odd line of
plain text. Two event shapes matter here:

    {"type": "thread.started", "thread_id": "<uuid>"}
    {"type": "item.completed", "item": {"type": "agent_message", "text": "..."}}

The thread id is what makes a conversation resumable, so it is recovered in
two steps: from the structured events first, and, failing that, by a regex
scan over the raw transcript.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Union

from codex_mcp.errors import MissingSessionIdError

THREAD_ID_PATTERN = re.compile(r'thread_id[":]+([0-9a-f-]{36})')


@dataclass(frozen=True)
class SessionStarted:
    thread_id: str


@dataclass(frozen=True)
class AgentMessage:
    text: str


@dataclass(frozen=True)
class Unrecognized:
    line: str


CodexEvent = Union[SessionStarted, AgentMessage, Unrecognized]


@dataclass
class CodexResult:
    """Outcome of one successful codex run."""
    session_id: str
    raw_output: str
    final_message: str = ""
    exit_code: int = 0

    @property
    def output(self) -> str:
        """Text to show the caller: the last agent message, else the raw transcript."""
        return self.final_message or self.raw_output


def parse_event(line: str) -> CodexEvent:
    """Classify one stdout line. Never raises."""
    stripped = line.strip()
    if not stripped:
        return Unrecognized(line)

    try:
        record = json.loads(stripped)
    except ValueError:
        return Unrecognized(line)

    if not isinstance(record, dict):
        return Unrecognized(line)

    kind = record.get("type")

    if kind == "thread.started":
        thread_id = record.get("thread_id")
        if isinstance(thread_id, str) and thread_id:
            return SessionStarted(thread_id)

    if kind == "item.completed":
        item = record.get("item")
        if isinstance(item, dict) and item.get("type") == "agent_message":
            text = item.get("text")
            if isinstance(text, str) and text:
                return AgentMessage(text)

    return Unrecognized(line)


def find_thread_id(raw_output: str) -> str | None:
    """Fallback: first `thread_id` followed by a UUID anywhere in the transcript."""
    match = THREAD_ID_PATTERN.search(raw_output)
    return match.group(1) if match else None


class EventExtractor:
    """
    Accumulates one codex run's stdout and extracts its outcome.

    Feed lines in the order codex produced them, then call finish() once
    the process has exited.
    """

    def __init__(self):
        self._chunks: list[str] = []
        self.session_id: str | None = None
        self.final_message = ""

    @property
    def raw_output(self) -> str:
        return "".join(self._chunks)

    def feed(self, line: str) -> CodexEvent:
        self._chunks.append(line + "\n")

        event = parse_event(line)
        if isinstance(event, SessionStarted):
            # codex emits one per run; keep the first if it ever repeats
            if self.session_id is None:
                self.session_id = event.thread_id
        elif isinstance(event, AgentMessage):
            self.final_message = event.text
        return event

    def finish(self, label: str, exit_code: int = 0) -> CodexResult:
        """
        Build the result for a cleanly exited run.

        Raises:
            MissingSessionIdError: neither the events nor the raw
                transcript contain a thread id.
        """
        raw_output = self.raw_output
        session_id = self.session_id or find_thread_id(raw_output)
        if not session_id:
            raise MissingSessionIdError(label)

        return CodexResult(
            session_id=session_id,
            raw_output=raw_output,
            final_message=self.final_message,
            exit_code=exit_code,
        )
