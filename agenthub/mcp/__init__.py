"""MCP server entry point for agenthub."""

from __future__ import annotations

from agenthub.mcp.server import main, server

__all__ = ['main', 'server']
