"""
Schema definitions for agenthub.

This package contains Pydantic models for:
- json_value: arbitrary JSON payloads (tool inputs, control bodies)
- events: the agent's stream-json event feed
- control: the tool-approval control handshake
- plan: orchestration plans extracted from assistant text
- search: history log entries, index entries and search results
"""

from __future__ import annotations

from agenthub.schemas.control import ControlRequest, ControlResponse, PermissionDecision
from agenthub.schemas.events import ProtocolEvent, UnknownEvent
from agenthub.schemas.json_value import JsonValue
from agenthub.schemas.plan import OrchestrationPlan, OrchestrationSession
from agenthub.schemas.search import SessionIndexEntry, SessionSearchResult

__all__ = [
    'ControlRequest',
    'ControlResponse',
    'JsonValue',
    'OrchestrationPlan',
    'OrchestrationSession',
    'PermissionDecision',
    'ProtocolEvent',
    'SessionIndexEntry',
    'SessionSearchResult',
    'UnknownEvent',
]
