"""
Shared Pydantic base models.

Layering:
- StrictModel: our own value types (plans, index entries, results). Rejects
  unknown fields and is immutable.
- WireModel: payloads read off the agent's stream-json feed. Unknown fields are
  ignored so that protocol additions never break decoding.
- PermissiveModel: typed fallbacks at the end of unions (OtherBlock,
  UnknownControlRequest). Unknown fields are kept for inspection.
"""

from __future__ import annotations

import pydantic


class StrictModel(pydantic.BaseModel):
    """Base model with strict validation settings."""

    model_config = pydantic.ConfigDict(
        extra='forbid',  # Raise error on unexpected fields
        strict=True,  # Strict type validation
        frozen=True,  # Immutable (cannot modify after creation)
    )


class WireModel(pydantic.BaseModel):
    """
    Base model for records decoded from the agent's event stream.

    The CLI adds fields between releases (uuid, parent_tool_use_id, cost
    breakdowns, ...). Those are dropped on decode rather than rejected.
    """

    model_config = pydantic.ConfigDict(
        extra='ignore',  # Forward-compatible with new wire fields
        frozen=True,  # Immutable after creation
    )


class PermissiveModel(pydantic.BaseModel):
    """
    Fallback model for unrecognized shapes inside typed unions.

    Use as the LAST type in a union to catch unknown structures:

        ContentBlock = Annotated[
            Annotated[TextBlock, Tag('text')] | Annotated[OtherBlock, Tag('other')],
            Discriminator(get_block_type),
        ]

    Detection: isinstance(x, PermissiveModel) catches all fallback usages.
    """

    model_config = pydantic.ConfigDict(
        extra='allow',  # Accept unknown fields (graceful fallback)
        frozen=True,  # Immutable after creation
    )

    def get_extra_fields(self) -> dict[str, object]:
        """Get extra fields captured by this permissive model.

        Returns only the unknown fields, not defined model fields.
        Useful for inspection and logging of untyped structures.
        """
        return dict(self.__pydantic_extra__) if self.__pydantic_extra__ else {}
