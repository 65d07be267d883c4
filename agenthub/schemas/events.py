"""
Pydantic models for the agent's stream-json event feed.

One JSON object per line, dispatched on its top-level `type`:

    system           session metadata (subtype "init" carries session_id, model, tools, cwd)
    assistant        one assistant message (text and tool_use content blocks)
    user             one user message (usually tool_result blocks)
    tool_result      a bare tool result (older CLI builds)
    control_request  the agent asks the host to approve a tool or run a hook callback
    result           end of turn: final text, usage, cost

Anything else, or anything that fails validation, is an UnknownEvent that keeps
the raw line. UnknownEvent is a normal outcome, not an error.

Content blocks inside messages are dispatched on their own inner `type` by a
callable discriminator. Unrecognized inner types degrade to OtherBlock and the
rest of the message survives.

Round-trip serialization:
- Every model requires its Literal `type`, so it is always "set"
- Use model_dump(exclude_unset=True, mode='json') to reproduce the wire shape,
  keeping explicit nulls and leaving out fields that were never present
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Annotated, Any, Literal, TypeAlias

import pydantic
from pydantic import Discriminator, Tag

from agenthub.base_model import PermissiveModel, StrictModel, WireModel
from agenthub.schemas.control import ControlRequest
from agenthub.schemas.json_value import JsonValue

# ==============================================================================
# Shared
# ==============================================================================


class Usage(WireModel):
    """Token accounting reported on assistant messages and results."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None


def _block_type(v: Any) -> str | None:
    return v.get('type') if isinstance(v, dict) else getattr(v, 'type', None)


# ==============================================================================
# Content Blocks
# ==============================================================================


class TextBlock(WireModel):
    type: Literal['text']
    text: str


class ToolUseBlock(WireModel):
    """A tool invocation. `input` is arbitrary JSON chosen by the model."""

    type: Literal['tool_use']
    id: str
    name: str
    input: JsonValue = pydantic.Field(default_factory=JsonValue.empty_object)


class ToolResultItem(PermissiveModel):
    """One entry of a list-shaped tool result (text, image, ...)."""

    type: str | None = None
    text: str | None = None


class ToolResultBlock(WireModel):
    type: Literal['tool_result']
    tool_use_id: str
    content: str | Sequence[ToolResultItem] | None = None
    is_error: bool | None = None

    @property
    def text(self) -> str:
        """Result content as plain text; list content joins its text items with newlines."""
        return _flatten_tool_result(self.content)


class OtherBlock(PermissiveModel):
    """Content block with an inner type this version does not model (thinking, image, ...)."""

    type: str | None = None


def get_assistant_block_type(v: Any) -> str:
    """Callable discriminator for assistant content blocks."""
    block_type = _block_type(v)
    return block_type if block_type in ('text', 'tool_use') else 'other'


def get_user_block_type(v: Any) -> str:
    """Callable discriminator for user content blocks."""
    block_type = _block_type(v)
    return block_type if block_type in ('text', 'tool_result') else 'other'


ContentBlock = Annotated[
    Annotated[TextBlock, Tag('text')]
    | Annotated[ToolUseBlock, Tag('tool_use')]
    | Annotated[OtherBlock, Tag('other')],
    Discriminator(get_assistant_block_type),
]

UserContentBlock = Annotated[
    Annotated[ToolResultBlock, Tag('tool_result')]
    | Annotated[TextBlock, Tag('text')]
    | Annotated[OtherBlock, Tag('other')],
    Discriminator(get_user_block_type),
]


def _flatten_tool_result(content: str | Sequence[ToolResultItem] | None) -> str:
    if content is None:
        return ''
    if isinstance(content, str):
        return content
    return '\n'.join(item.text for item in content if item.text is not None)


# ==============================================================================
# Messages
# ==============================================================================


class AssistantMessage(WireModel):
    id: str | None = None
    role: Literal['assistant'] | None = None
    model: str | None = None
    content: Sequence[ContentBlock] = ()
    stop_reason: str | None = None
    usage: Usage | None = None

    @property
    def text_content(self) -> str:
        """Text blocks of this message joined with newlines."""
        return '\n'.join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def tool_use_blocks(self) -> Sequence[ToolUseBlock]:
        return tuple(block for block in self.content if isinstance(block, ToolUseBlock))


class UserMessage(WireModel):
    role: Literal['user'] | None = None
    content: Sequence[UserContentBlock] | str | None = None


# ==============================================================================
# Events
# ==============================================================================


class SystemEvent(WireModel):
    type: Literal['system']
    subtype: str | None = None
    session_id: str | None = None
    model: str | None = None
    tools: Sequence[str] | None = None
    cwd: str | None = None


class AssistantEvent(WireModel):
    type: Literal['assistant']
    message: AssistantMessage
    session_id: str | None = None
    parent_tool_use_id: str | None = None
    error: str | None = None  # e.g. "authentication_failed"


class UserEvent(WireModel):
    type: Literal['user']
    message: UserMessage
    session_id: str | None = None
    parent_tool_use_id: str | None = None


class ToolResultEvent(WireModel):
    type: Literal['tool_result']
    tool_use_id: str
    content: str | Sequence[ToolResultItem] | None = None
    is_error: bool | None = None

    @property
    def text(self) -> str:
        return _flatten_tool_result(self.content)


class ControlRequestEvent(WireModel):
    type: Literal['control_request']
    request_id: str
    request: ControlRequest


class ResultEvent(WireModel):
    type: Literal['result']
    subtype: str | None = None
    is_error: bool | None = None
    result: str | None = None
    output: str | None = None
    error: str | None = None
    session_id: str | None = None
    usage: Usage | None = None
    duration_ms: int | None = None
    num_turns: int | None = None
    total_cost_usd: float | None = None

    @property
    def text(self) -> str:
        """Final text of the turn (`result`, falling back to `output`)."""
        return self.result or self.output or ''


class UnknownEvent(StrictModel):
    """
    A line that could not be decoded into a typed event.

    Fields:
        raw: The original line, byte-for-byte as received
        wire_type: Top-level `type` when one was readable
        reason: Short description (empty, invalid JSON, unknown type, ...)
    """

    raw: str
    wire_type: str | None = None
    reason: str


ProtocolEvent: TypeAlias = (
    SystemEvent | AssistantEvent | UserEvent | ToolResultEvent | ControlRequestEvent | ResultEvent | UnknownEvent
)

TypedEvent = SystemEvent | AssistantEvent | UserEvent | ToolResultEvent | ControlRequestEvent | ResultEvent
