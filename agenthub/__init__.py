"""
agenthub: protocol core for orchestrating Claude Code agent sessions.

Packages:
- schemas: Pydantic models for the stream-json feed, control handshake,
  orchestration plans and search index
- services: event decoding, control protocol, plan extraction, session
  search and the session stream pipeline
- storage: corpus sources for the search index
- cli / mcp: command-line and MCP server surfaces
"""
