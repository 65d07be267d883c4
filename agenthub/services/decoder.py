"""
Decoder for the agent's stream-json feed: one line in, one ProtocolEvent out.

Decoding never raises. Blank lines, invalid JSON, non-object JSON, unknown
top-level types and payloads that fail validation all become UnknownEvent, so
a single bad line never stops the stream. Each undecodable line is logged once
at warning level.

Usage:
    decoder = EventDecoder()
    for line in lines:
        event = decoder.decode(line)
        match event:
            case AssistantEvent():
                ...
            case UnknownEvent(reason=reason):
                ...
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

import pydantic

from agenthub.exceptions import InvalidJsonError
from agenthub.schemas.events import (
    AssistantEvent,
    ControlRequestEvent,
    ProtocolEvent,
    ResultEvent,
    SystemEvent,
    ToolResultEvent,
    TypedEvent,
    UnknownEvent,
    UserEvent,
)
from agenthub.schemas.json_value import JsonValue

__all__ = ['EventDecoder', 'decode_line', 'encode_event']

logger = logging.getLogger(__name__)

# Finite lookup from wire `type` to the model that decodes it
_EVENT_DECODERS: Mapping[str, Callable[[Any], TypedEvent]] = {
    'system': SystemEvent.model_validate,
    'assistant': AssistantEvent.model_validate,
    'user': UserEvent.model_validate,
    'tool_result': ToolResultEvent.model_validate,
    'control_request': ControlRequestEvent.model_validate,
    'result': ResultEvent.model_validate,
}

KNOWN_EVENT_TYPES = frozenset(_EVENT_DECODERS)


class EventDecoder:
    """Line decoder that counts decoded and dropped (`unknown_count`) lines for one stream."""

    def __init__(self) -> None:
        self.decoded_count = 0
        self.unknown_count = 0

    def decode(self, line: str) -> ProtocolEvent:
        event = decode_line(line)
        if isinstance(event, UnknownEvent):
            self.unknown_count += 1
        else:
            self.decoded_count += 1
        return event


def decode_line(line: str) -> ProtocolEvent:
    """Decode one line of the feed. Total: returns UnknownEvent instead of raising."""
    if not line.strip():
        return UnknownEvent(raw=line, reason='empty')

    try:
        payload = JsonValue.from_json(line).root
    except InvalidJsonError as e:
        return _unknown(line, None, f'invalid JSON: {e.__cause__ or e}')

    if not isinstance(payload, dict):
        return _unknown(line, None, 'not a JSON object')

    wire_type = payload.get('type')
    if not isinstance(wire_type, str):
        return _unknown(line, None, 'missing type')

    decoder = _EVENT_DECODERS.get(wire_type)
    if decoder is None:
        return _unknown(line, wire_type, f'unknown type {wire_type!r}')

    try:
        return decoder(payload)
    except pydantic.ValidationError as e:
        return _unknown(line, wire_type, f'invalid {wire_type} payload ({e.error_count()} errors)')


def encode_event(event: ProtocolEvent) -> str:
    """
    Serialize an event back to its wire form (compact, no trailing newline).

    UnknownEvent re-encodes to the raw line it was decoded from.
    """
    if isinstance(event, UnknownEvent):
        return event.raw
    # exclude_unset keeps explicit nulls and omits fields absent on the wire
    json_data = event.model_dump(exclude_unset=True, mode='json')
    return json.dumps(json_data, separators=(',', ':'), ensure_ascii=False)


def _unknown(line: str, wire_type: str | None, reason: str) -> UnknownEvent:
    logger.warning('Undecodable stream line: %s', reason)
    return UnknownEvent(raw=line, wire_type=wire_type, reason=reason)
