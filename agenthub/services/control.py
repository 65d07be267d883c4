"""
Request/response state tracking for the tool-approval control handshake.

Lifecycle of one request id:

    received ──► Pending ──resolve()──► Resolved (response written, state dropped)
        │
        └── unknown subtype ──► auto-denied, never pending

Each pending request gets exactly one control_response. Resolving an id that
is not pending is a programming error: it raises in strict mode (development,
tests) and is a logged no-op otherwise (production).

The protocol owns no timeouts. A decision may take as long as the user needs;
cancellation of the surrounding stream calls cancel_all().
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import attrs

from agenthub.config import settings
from agenthub.exceptions import DuplicateControlRequestError, UnknownControlRequestError
from agenthub.protocols import ReplySink
from agenthub.schemas.control import (
    CanUseToolRequest,
    ControlResponse,
    HookCallbackRequest,
    PermissionDecision,
    UnknownControlRequest,
)
from agenthub.schemas.events import ControlRequestEvent
from agenthub.schemas.json_value import JsonValue

__all__ = ['ControlProtocol', 'PendingControlRequest']

logger = logging.getLogger(__name__)


@attrs.define(frozen=True)
class PendingControlRequest:
    """A control request awaiting the host's decision."""

    request_id: str
    request: CanUseToolRequest | HookCallbackRequest

    @property
    def tool_name(self) -> str | None:
        return self.request.tool_name if isinstance(self.request, CanUseToolRequest) else None

    @property
    def input(self) -> JsonValue:
        return self.request.input


class ControlProtocol:
    """
    Tracks outstanding control requests and writes their responses.

    Args:
        sink: Reply channel of the agent process
        strict: Raise on protocol misuse instead of logging (defaults to
            STRICT_CONTROL_PROTOCOL)
    """

    def __init__(self, sink: ReplySink, *, strict: bool | None = None) -> None:
        self._sink = sink
        self._strict = settings.STRICT_CONTROL_PROTOCOL if strict is None else strict
        self._pending: dict[str, PendingControlRequest] = {}

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def pending_ids(self) -> Sequence[str]:
        """Outstanding request ids in arrival order."""
        return tuple(self._pending)

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    async def receive(self, event: ControlRequestEvent) -> PendingControlRequest | None:
        """
        Register an incoming control request.

        Returns:
            The pending request awaiting a decision, or None when the request
            was answered immediately (unknown subtype) or ignored (duplicate id
            in lenient mode)

        Raises:
            DuplicateControlRequestError: Strict mode, id already pending
        """
        request_id = event.request_id
        request = event.request

        if isinstance(request, UnknownControlRequest):
            logger.warning('Denying control request %s with unsupported subtype %r', request_id, request.subtype)
            decision = PermissionDecision.deny(f'Unsupported control request subtype: {request.subtype}')
            await self._send(ControlResponse.for_request(request_id, decision))
            return None

        if request_id in self._pending:
            if self._strict:
                raise DuplicateControlRequestError(request_id)
            logger.warning('Ignoring duplicate control request %s', request_id)
            return None

        pending = PendingControlRequest(request_id=request_id, request=request)
        self._pending[request_id] = pending
        return pending

    async def resolve(self, request_id: str, decision: PermissionDecision) -> ControlResponse | None:
        """
        Answer a pending request. Writes exactly one response per request id.

        Returns:
            The response written, or None for a lenient-mode no-op

        Raises:
            UnknownControlRequestError: Strict mode, id not pending
        """
        pending = self._pending.pop(request_id, None)
        if pending is None:
            if self._strict:
                raise UnknownControlRequestError(request_id)
            logger.warning('Ignoring resolve of control request %s: not pending', request_id)
            return None

        response = ControlResponse.for_request(request_id, _shape_decision(pending, decision))
        await self._send(response)
        return response

    async def allow(self, request_id: str, updated_input: JsonValue | None = None) -> ControlResponse | None:
        return await self.resolve(request_id, PermissionDecision.allow(updated_input))

    async def deny(self, request_id: str, message: str | None = None) -> ControlResponse | None:
        return await self.resolve(request_id, PermissionDecision.deny(message))

    async def cancel_all(self, message: str = 'Session cancelled') -> Sequence[ControlResponse]:
        """Deny every outstanding request once and clear state."""
        pending_ids = list(self._pending)
        if pending_ids:
            logger.info('Denying %d outstanding control request(s): %s', len(pending_ids), message)
        responses = []
        for request_id in pending_ids:
            response = await self.resolve(request_id, PermissionDecision.deny(message))
            if response is not None:
                responses.append(response)
        return responses

    async def _send(self, response: ControlResponse) -> None:
        await self._sink.send(response.to_wire())


def _shape_decision(pending: PendingControlRequest, decision: PermissionDecision) -> PermissionDecision:
    """
    Normalize a decision for the wire.

    The agent requires updatedInput on can_use_tool allows, so an unmodified
    allow echoes the original input. Other request kinds never carry it.
    """
    if not decision.allowed:
        return PermissionDecision.deny(decision.message)
    if isinstance(pending.request, CanUseToolRequest):
        updated_input = decision.updatedInput if decision.updatedInput is not None else pending.request.input
        return PermissionDecision.allow(updated_input)
    return PermissionDecision.allow()
