"""
In-memory registry of codex sessions started by this server.

Bookkeeping only: it starts empty, is appended to when a `codex` call
succeeds, and disappears with the process. `codex-reply` trusts whatever
session id the caller passes and never looks here.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    initial_prompt: str
    created: float = field(default_factory=time.time)


class SessionRegistry:
    """session id → SessionRecord. Mutated only from the event loop thread."""

    def __init__(self):
        self._sessions: dict[str, SessionRecord] = {}

    def add(self, session_id: str, initial_prompt: str) -> SessionRecord:
        record = SessionRecord(session_id=session_id, initial_prompt=initial_prompt)
        self._sessions[session_id] = record
        logger.debug(f"Registered session {session_id} ({len(self._sessions)} total)")
        return record

    def get(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def ids(self) -> list[str]:
        return list(self._sessions)
