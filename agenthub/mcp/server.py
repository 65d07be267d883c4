"""
AgentHub MCP Server.

Exposes session search and orchestration-plan extraction to MCP clients.

Setup:
    claude mcp add --scope user agenthub -- agenthub-mcp

Example:
    # Find past sessions that touched authentication
    search_sessions(query='auth')

    # Restrict to one repository
    search_sessions(query='login', project_path='/Users/me/src/webapp')
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from typing import Any

import attrs
from mcp.server.fastmcp import Context, FastMCP

from agenthub.base_model import StrictModel
from agenthub.config import settings
from agenthub.mcp.utils import DualLogger
from agenthub.schemas.plan import OrchestrationPlan
from agenthub.schemas.search import SessionSearchResult
from agenthub.services.plan_extractor import extract_plan
from agenthub.services.search import SessionSearchIndex
from agenthub.storage.local import ClaudeDataDirectory

# ==============================================================================
# Server State (immutable)
# ==============================================================================


@attrs.define(frozen=True)
class ServerState:
    """
    Immutable server state initialized at startup.

    The index itself rebuilds in place when the history log changes.
    """

    data_dir: Path
    index: SessionSearchIndex


class IndexStatus(StrictModel):
    """Result of an explicit index rebuild."""

    data_dir: str
    indexed_sessions: int


# ==============================================================================
# Lifespan Management
# ==============================================================================


@contextlib.asynccontextmanager
async def lifespan(mcp_server: FastMCP) -> AsyncIterator[None]:
    """Create the search index at startup and register tools over it."""
    data_dir = settings.CLAUDE_DATA_DIR
    state = ServerState(
        data_dir=data_dir,
        index=SessionSearchIndex(ClaudeDataDirectory(data_dir)),
    )

    # Register tools with closure over state
    register_tools(state)

    print(f'[MCP Server] Data dir: {data_dir}', file=sys.stderr)

    yield  # Setup successful; application active


# ==============================================================================
# Server Setup
# ==============================================================================

server = FastMCP('agenthub', lifespan=lifespan)


# ==============================================================================
# Tool Registration (Closure Pattern)
# ==============================================================================


def register_tools(state: ServerState) -> None:
    """
    Register MCP tools with closure over server state.

    Args:
        state: Server state containing the search index
    """

    @server.tool()
    async def search_sessions(
        query: str,
        project_path: str | None = None,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> Sequence[SessionSearchResult]:
        """
        Search past Claude Code sessions.

        Matches case-insensitively against, in priority order: session slug,
        project path, git branch, session summaries, and the first prompt.
        Each session is returned once, under its highest-priority match.

        Args:
            query: Text to search for (empty returns nothing)
            project_path: Only sessions whose project path starts with this

        Returns:
            Matching sessions, most recently active first
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx, 'search_sessions')

        results = await asyncio.to_thread(state.index.search, query, project_path)
        await logger.info(f'{len(results)} of {state.index.indexed_session_count} sessions match {query!r}')
        return results

    @server.tool()
    async def rebuild_search_index(ctx: Context[Any, Any, Any] | None = None) -> IndexStatus:
        """
        Rebuild the session index from disk, even if the history log is unchanged.

        Returns:
            Data directory and number of sessions indexed
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx, 'rebuild_search_index')

        await asyncio.to_thread(state.index.rebuild)
        await logger.info(f'Indexed {state.index.indexed_session_count} sessions')
        return IndexStatus(data_dir=str(state.data_dir), indexed_sessions=state.index.indexed_session_count)

    @server.tool()
    async def extract_orchestration_plan(text: str) -> OrchestrationPlan | None:
        """
        Extract an orchestration plan from assistant output.

        Accepts the plan between <orchestration-plan> markers, in a ```json
        fenced block, or as a bare JSON object with "modulePath" and "sessions".

        Args:
            text: Assistant output to scan

        Returns:
            The plan, or null when the text contains none
        """
        return extract_plan(text)


def main() -> None:
    """Run the MCP server."""
    server.run()


if __name__ == '__main__':
    main()
