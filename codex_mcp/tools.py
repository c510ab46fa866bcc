"""
The three codex tools exposed over MCP.

Each tool validates its arguments, builds the `codex exec` argument vector,
and hands it to the CodexRunner. Validation always happens before anything
is spawned.

    codex         exec <prompt> --sandbox read-only [-C <cwd>] --json
    codex-reply   exec --json resume <sessionId> <prompt>
    codex-review  exec [-C <cwd>] --json review (--uncommitted | --base <b> | --commit <c> | <prompt>)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from codex_mcp.errors import ToolArgumentError
from codex_mcp.events import CodexResult
from codex_mcp.runner import CodexRunner
from codex_mcp.sessions import SessionRegistry

logger = logging.getLogger(__name__)

REVIEW_MODES = ("uncommitted", "base", "commit", "custom")


class ToolHandler(ABC):
    """
    Base class for a codex-backed tool.

    Subclasses set the schema attributes and implement build_args(); the
    base class runs codex and returns its result.
    """

    # Subclasses must set these
    name: str = ""
    label: str = "Codex"
    description: str = ""
    parameters: dict[str, dict] = {}
    required: list[str] = []

    def __init__(self, runner: CodexRunner):
        self.runner = runner

    @abstractmethod
    def build_args(self, arguments: dict[str, Any]) -> list[str]:
        """
        Validate tool arguments and build the codex argument vector.

        Raises:
            ToolArgumentError: a required argument is missing or invalid.
        """
        ...

    def working_directory(self, arguments: dict[str, Any]) -> str | None:
        return arguments.get("cwd") or None

    async def handle(self, arguments: dict[str, Any]) -> CodexResult:
        args = self.build_args(arguments)
        return await self.runner.run(args, cwd=self.working_directory(arguments), label=self.label)

    def get_schema(self) -> dict:
        """Return the tool descriptor for tools/list."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {
                "type": "object",
                "properties": self.parameters,
                "required": list(self.required),
            },
        }


def build_start_args(arguments: dict[str, Any]) -> list[str]:
    prompt = arguments.get("prompt")
    if not prompt:
        raise ToolArgumentError("codex requires prompt")

    args = ["exec", str(prompt)]

    # Never give codex write access from this tool
    args += ["--sandbox", "read-only"]

    cwd = arguments.get("cwd")
    if cwd:
        args += ["-C", str(cwd)]

    args.append("--json")
    return args


def build_resume_args(arguments: dict[str, Any]) -> list[str]:
    session_id = arguments.get("sessionId")
    prompt = arguments.get("prompt")
    if not session_id:
        raise ToolArgumentError("codex-reply requires sessionId")
    if not prompt:
        raise ToolArgumentError("codex-reply requires prompt")

    return ["exec", "--json", "resume", str(session_id), str(prompt)]


def build_review_args(arguments: dict[str, Any]) -> list[str]:
    mode = arguments.get("mode")
    if not mode:
        raise ToolArgumentError("codex-review requires mode")

    args = ["exec"]

    cwd = arguments.get("cwd")
    if cwd:
        args += ["-C", str(cwd)]

    # codex only honors --json ahead of the review subcommand
    args += ["--json", "review"]

    if mode == "uncommitted":
        args.append("--uncommitted")
    elif mode == "base":
        base = arguments.get("base")
        if not base:
            raise ToolArgumentError("mode=base requires base")
        args += ["--base", str(base)]
    elif mode == "commit":
        commit = arguments.get("commit")
        if not commit:
            raise ToolArgumentError("mode=commit requires commit")
        args += ["--commit", str(commit)]
    elif mode == "custom":
        prompt = str(arguments.get("prompt") or "").strip()
        if not prompt:
            raise ToolArgumentError("mode=custom requires prompt")
        args.append(prompt)
    else:
        raise ToolArgumentError(f"Unknown review mode: {mode}")

    return args


class CodexStartTool(ToolHandler):
    name = "codex"
    label = "Codex"
    description = (
        "Start a new Codex session. Use like a sub-agent: be specific in prompts, "
        "provide context. Sessions can be resumed with codex-reply."
    )
    parameters = {
        "prompt": {"type": "string", "description": "The prompt for Codex"},
        "cwd": {"type": "string", "description": "Working directory"},
    }
    required = ["prompt"]

    def __init__(self, runner: CodexRunner, sessions: SessionRegistry):
        super().__init__(runner)
        self.sessions = sessions

    def build_args(self, arguments: dict[str, Any]) -> list[str]:
        return build_start_args(arguments)

    async def handle(self, arguments: dict[str, Any]) -> CodexResult:
        result = await super().handle(arguments)
        self.sessions.add(result.session_id, str(arguments["prompt"]))
        return result


class CodexReplyTool(ToolHandler):
    name = "codex-reply"
    label = "Codex resume"
    description = (
        "Continue an existing Codex session. Use for multi-turn discussions where "
        "prior context matters (e.g., follow-up questions, asking for review after "
        "brainstorming)."
    )
    parameters = {
        "sessionId": {
            "type": "string",
            "description": "Session ID from a previous codex or codex-reply call",
        },
        "prompt": {"type": "string", "description": "Follow-up prompt"},
    }
    required = ["sessionId", "prompt"]

    def build_args(self, arguments: dict[str, Any]) -> list[str]:
        return build_resume_args(arguments)

    def working_directory(self, arguments: dict[str, Any]) -> str | None:
        # codex resolves the working directory from the stored session
        return None


class CodexReviewTool(ToolHandler):
    name = "codex-review"
    label = "Codex review"
    description = (
        "Run a Codex code review. In review mode, Codex uses a specialized review "
        "prompt. For reviews needing prior conversation context, use codex-reply instead."
    )
    parameters = {
        "mode": {
            "type": "string",
            "enum": list(REVIEW_MODES),
            "description": (
                "REQUIRED. One of: `uncommitted` (review staged/unstaged/untracked changes), "
                "`base` (PR-style diff, also set `base`), `commit` (single commit, also set "
                "`commit`), `custom` (free-form, also set `prompt`)."
            ),
        },
        "base": {
            "type": "string",
            "description": 'Branch name to diff against. Required when mode=`base`. Example: "main".',
        },
        "commit": {
            "type": "string",
            "description": "Commit SHA to review. Required when mode=`commit`.",
        },
        "prompt": {
            "type": "string",
            "description": "Review instructions. Required when mode=`custom`.",
        },
        "cwd": {
            "type": "string",
            "description": "Working directory (repo root). If omitted, uses the server process CWD.",
        },
    }
    required = ["mode"]

    def build_args(self, arguments: dict[str, Any]) -> list[str]:
        return build_review_args(arguments)


def default_tools(runner: CodexRunner, sessions: SessionRegistry) -> list[ToolHandler]:
    return [
        CodexStartTool(runner, sessions),
        CodexReplyTool(runner),
        CodexReviewTool(runner),
    ]
