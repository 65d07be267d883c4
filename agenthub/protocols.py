"""
Protocols shared by the session services.

The stream pipeline talks to two outside parties: whoever reports progress
(a LoggerProtocol) and the agent process it answers (a ReplySink). Both are
structural so tests and front ends can pass plain objects.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class LoggerProtocol(Protocol):
    """
    Async logger for session-level progress.

    Implementations:
    - DualLogger (mcp/utils.py): stderr plus the MCP client
    - CLILogger (cli/logger.py): stderr, info only when verbose
    - NullLogger (below): discards everything
    """

    async def info(self, message: str) -> None: ...
    async def warning(self, message: str) -> None: ...
    async def error(self, message: str) -> None: ...


class NullLogger:
    """Logger for callers that do not report progress."""

    async def info(self, message: str) -> None:
        pass

    async def warning(self, message: str) -> None:
        pass

    async def error(self, message: str) -> None:
        pass


@runtime_checkable
class ReplySink(Protocol):
    """
    Reply channel of a running agent process (its stdin).

    The sink receives one complete JSON document per call, without the
    trailing newline; framing is the sink's responsibility.
    """

    async def send(self, line: str) -> None: ...
