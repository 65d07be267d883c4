"""Service layer for agent session protocol handling."""

from agenthub.services.control import ControlProtocol, PendingControlRequest
from agenthub.services.decoder import EventDecoder, decode_line, encode_event
from agenthub.services.plan_extractor import PlanExtractor, extract_plan
from agenthub.services.search import SessionSearchIndex
from agenthub.services.stream import SessionStream, StreamWriterSink, split_lines

__all__ = [
    'ControlProtocol',
    'EventDecoder',
    'PendingControlRequest',
    'PlanExtractor',
    'SessionSearchIndex',
    'SessionStream',
    'StreamWriterSink',
    'decode_line',
    'encode_event',
    'extract_plan',
    'split_lines',
]
