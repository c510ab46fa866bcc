"""
Server configuration.

Values come from the environment first and can be overridden on the
command line:

    CODEX_MCP_COMMAND     command used to launch codex (default: "codex")
    CODEX_MCP_TIMEOUT     per-call timeout in seconds (default: none)
    CODEX_MCP_LOG_LEVEL   logging level name (default: INFO)
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import Mapping

DEFAULT_COMMAND = "codex"


@dataclass
class ServerConfig:
    codex_command: list[str] = field(default_factory=lambda: [DEFAULT_COMMAND])
    timeout: float | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ServerConfig":
        env = os.environ if env is None else env
        config = cls()
        if env.get("CODEX_MCP_COMMAND"):
            config.codex_command = parse_command(env["CODEX_MCP_COMMAND"])
        if env.get("CODEX_MCP_TIMEOUT"):
            config.timeout = parse_timeout(env["CODEX_MCP_TIMEOUT"])
        if env.get("CODEX_MCP_LOG_LEVEL"):
            config.log_level = parse_log_level(env["CODEX_MCP_LOG_LEVEL"])
        return config


def parse_command(value: str) -> list[str]:
    command = shlex.split(value)
    if not command:
        raise ValueError("codex command must not be empty")
    return command


def parse_timeout(value: str) -> float | None:
    """Seconds as a positive number; 0 or "none" disables the timeout."""
    if value.strip().lower() in ("", "0", "none"):
        return None
    timeout = float(value)
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {value}")
    return timeout


def parse_log_level(value: str) -> str:
    level = value.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown log level: {value}")
    return level
