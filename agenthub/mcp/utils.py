"""Logging adapter for MCP tool calls."""

from __future__ import annotations

# Standard Library
import sys
from datetime import UTC, datetime
from typing import Any

# Third-Party Libraries
from mcp.server.fastmcp import Context


class DualLogger:
    """
    LoggerProtocol for one MCP tool call.

    Each message is echoed to stderr, tagged with the tool name, and forwarded
    to the client through the request context. Stdout is reserved for the
    MCP transport.
    """

    def __init__(self, ctx: Context[Any, Any, Any], tool: str) -> None:
        self.ctx = ctx
        self.tool = tool

    def _echo(self, level: str, message: str) -> None:
        stamp = datetime.now(UTC).strftime('%Y-%m-%d %H:%M:%S')
        print(f'[{stamp}] [{level}] {self.tool}: {message}', file=sys.stderr)

    async def info(self, message: str) -> None:
        self._echo('INFO', message)
        await self.ctx.info(message)

    async def warning(self, message: str) -> None:
        self._echo('WARNING', message)
        await self.ctx.warning(message)

    async def error(self, message: str) -> None:
        self._echo('ERROR', message)
        await self.ctx.error(message)
