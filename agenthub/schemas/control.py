"""
Pydantic models for the tool-approval control handshake.

When the agent runs with a permission prompt tool routed over stdio, it asks
before using a tool:

    {"type":"control_request","request_id":"req-1",
     "request":{"subtype":"can_use_tool","tool_name":"Bash","input":{...},"tool_use_id":"toolu_..."}}

and blocks until a response with the same request_id arrives on its stdin:

    {"type":"control_response",
     "response":{"subtype":"success","request_id":"req-1",
                 "response":{"behavior":"allow","updatedInput":{...}}}}

The request body is dispatched on its `subtype`. Unrecognized subtypes decode
to UnknownControlRequest instead of failing, so a newer agent never breaks the
stream. The caller decides what to do with them (ControlProtocol auto-denies).
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

import pydantic
from pydantic import Discriminator, Tag

from agenthub.base_model import PermissiveModel, StrictModel, WireModel
from agenthub.schemas.json_value import JsonValue

# ==============================================================================
# Control Requests (agent -> host)
# ==============================================================================


class CanUseToolRequest(WireModel):
    """Permission request for a single tool invocation."""

    subtype: Literal['can_use_tool']
    tool_name: str
    input: JsonValue = pydantic.Field(default_factory=JsonValue.empty_object)
    tool_use_id: str | None = None


class HookCallbackRequest(WireModel):
    """Invocation of a host-registered hook callback."""

    subtype: Literal['hook_callback']
    callback_id: str
    input: JsonValue = pydantic.Field(default_factory=JsonValue.empty_object)
    tool_use_id: str | None = None


class UnknownControlRequest(PermissiveModel):
    """Control request with a subtype this version does not understand."""

    subtype: str | None = None


KNOWN_CONTROL_SUBTYPES = frozenset({'can_use_tool', 'hook_callback'})


def get_control_request_subtype(v: Any) -> str:
    """
    Callable discriminator for the ControlRequest union.

    Must handle both dict (deserialization) and model instances
    (serialization/re-validation).
    """
    subtype = v.get('subtype') if isinstance(v, dict) else getattr(v, 'subtype', None)
    return subtype if subtype in KNOWN_CONTROL_SUBTYPES else 'unknown'


ControlRequest = Annotated[
    Annotated[CanUseToolRequest, Tag('can_use_tool')]
    | Annotated[HookCallbackRequest, Tag('hook_callback')]
    | Annotated[UnknownControlRequest, Tag('unknown')],
    Discriminator(get_control_request_subtype),
]


# ==============================================================================
# Control Responses (host -> agent)
# ==============================================================================


class PermissionDecision(StrictModel):
    """
    The host's answer to a control request.

    Fields:
        behavior: allow or deny
        updatedInput: Tool input to run with (can_use_tool allow only)
        message: Reason shown to the agent (deny only)
    """

    behavior: Literal['allow', 'deny']
    updatedInput: JsonValue | None = None
    message: str | None = None

    @classmethod
    def allow(cls, updated_input: JsonValue | None = None) -> PermissionDecision:
        return cls(behavior='allow', updatedInput=updated_input)

    @classmethod
    def deny(cls, message: str | None = None) -> PermissionDecision:
        return cls(behavior='deny', message=message)

    @property
    def allowed(self) -> bool:
        return self.behavior == 'allow'


class ControlResponseBody(StrictModel):
    """Correlated response body."""

    subtype: Literal['success']
    request_id: str
    response: PermissionDecision


class ControlResponse(StrictModel):
    """Envelope written to the agent's stdin."""

    type: Literal['control_response']
    response: ControlResponseBody

    @classmethod
    def for_request(cls, request_id: str, decision: PermissionDecision) -> ControlResponse:
        return cls(
            type='control_response',
            response=ControlResponseBody(subtype='success', request_id=request_id, response=decision),
        )

    @property
    def request_id(self) -> str:
        return self.response.request_id

    def to_wire(self) -> str:
        """Compact single-line JSON, without the trailing newline."""
        decision = self.response.response
        body: dict[str, Any] = {'behavior': decision.behavior}
        if decision.updatedInput is not None:
            body['updatedInput'] = decision.updatedInput.to_python()
        if decision.message is not None:
            body['message'] = decision.message
        envelope = {
            'type': self.type,
            'response': {'subtype': self.response.subtype, 'request_id': self.request_id, 'response': body},
        }
        return json.dumps(envelope, separators=(',', ':'), ensure_ascii=False)
