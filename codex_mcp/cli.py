"""
Command-line entry point: run the codex MCP server on stdio.

Usage:
    # Default: launch `codex` from PATH
    codex-mcp

    # Use a different codex launcher and a per-call timeout
    codex-mcp --codex-command "npx -y @openai/codex" --timeout 900

    # Debug logging (always on stderr; stdout carries the protocol)
    codex-mcp --verbose
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from codex_mcp import __version__
from codex_mcp.config import ServerConfig, parse_command, parse_log_level, parse_timeout
from codex_mcp.runner import CodexRunner, SubprocessLauncher
from codex_mcp.server import StdioToolServer
from codex_mcp.tools import default_tools

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codex-mcp",
        description="MCP stdio server that runs the Codex CLI and returns resumable session IDs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  CODEX_MCP_COMMAND    command used to launch codex (default: codex)
  CODEX_MCP_TIMEOUT    per-call timeout in seconds (default: none)
  CODEX_MCP_LOG_LEVEL  log level (default: INFO)
        """,
    )
    parser.add_argument("--codex-command", type=parse_command, default=None, help="Command used to launch codex")
    parser.add_argument("--timeout", type=parse_timeout, default=None, help="Kill codex after this many seconds")
    parser.add_argument("--log-level", type=parse_log_level, default=None, help="Logging level (DEBUG, INFO, ...)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(argv: list[str] | None = None) -> ServerConfig:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        parser.error(str(e))

    if args.codex_command is not None:
        config.codex_command = args.codex_command
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.verbose:
        config.log_level = "DEBUG"
    return config


def build_server(config: ServerConfig) -> StdioToolServer:
    runner = CodexRunner(SubprocessLauncher(config.codex_command), timeout=config.timeout)
    server = StdioToolServer()
    for tool in default_tools(runner, server.sessions):
        server.register(tool)
    return server


def main(argv: list[str] | None = None) -> None:
    config = load_config(argv)

    logging.basicConfig(
        level=config.log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # Exit right away; in-flight codex runs are not drained
    def shutdown(sig, frame):
        logger.info(f"Received signal {sig}, exiting")
        sys.exit(0)
    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    server = build_server(config)
    logger.info(f"codex command: {' '.join(config.codex_command)}")
    server.run()


if __name__ == "__main__":
    main()
