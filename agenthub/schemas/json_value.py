"""
Recursive JSON value model for payloads of unknown shape.

Tool inputs and control-request bodies are arbitrary JSON chosen by the agent
(and by third-party MCP tools), so they cannot be typed ahead of time. They
are carried as a JsonValue: a frozen tagged variant over
null | bool | number | string | array | object.

Numeric rule:
- Integral literals without fraction or exponent decode as int ("1" -> 1)
- Everything else decodes as float ("1.0" -> 1.0, "1e3" -> 1000.0)
- Floats always re-encode with a fraction or exponent, so the sub-type
  survives a round trip. JsonValue(1) != JsonValue(1.0).

Equality and hashing compare the canonical serialization (sorted keys,
compact separators), never Python equality of the underlying objects, so
True and 1 are different values.

Usage:
    value = JsonValue.from_json('{"command": "ls", "timeout": 5}')
    value['command'].string    # 'ls'
    value['timeout'].number    # 5
    value['missing']           # None
    value.kind                 # 'object'
"""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping, Sequence
from typing import Any, Literal, NoReturn

import pydantic

from agenthub.exceptions import InvalidJsonError

__all__ = ['JsonKind', 'JsonValue']

JsonKind = Literal['null', 'bool', 'number', 'string', 'array', 'object']


def _reject_constant(token: str) -> NoReturn:
    # json.loads accepts NaN/Infinity by default; they are not JSON
    raise ValueError(f'Non-standard JSON constant: {token}')


class JsonValue(pydantic.RootModel[pydantic.JsonValue]):
    """A JSON document of arbitrary shape, immutable after construction."""

    model_config = pydantic.ConfigDict(frozen=True)

    # ==========================================================================
    # Construction
    # ==========================================================================

    @classmethod
    def from_json(cls, data: str | bytes) -> JsonValue:
        """
        Decode JSON text into a JsonValue.

        Raises:
            InvalidJsonError: If data is not valid JSON
        """
        try:
            parsed = json.loads(data, parse_constant=_reject_constant)
        except (ValueError, RecursionError) as e:
            raise InvalidJsonError(f'Invalid JSON: {e}') from e
        return cls._wrap(parsed)

    @classmethod
    def of(cls, value: Any) -> JsonValue:
        """Wrap a plain Python value (or return an existing JsonValue unchanged)."""
        if isinstance(value, JsonValue):
            return value
        return cls(value)

    @classmethod
    def empty_object(cls) -> JsonValue:
        return cls._wrap({})

    @classmethod
    def _wrap(cls, data: Any) -> JsonValue:
        # Skips validation: only for data that came out of json.loads or an
        # already-validated JsonValue
        return cls.model_construct(data)

    # ==========================================================================
    # Serialization
    # ==========================================================================

    def to_json(self, *, canonical: bool = False) -> str:
        """
        Encode as compact JSON.

        Args:
            canonical: Sort object keys (used for equality and hashing)
        """
        return json.dumps(
            self.root,
            sort_keys=canonical,
            separators=(',', ':'),
            ensure_ascii=False,
            allow_nan=False,
        )

    def to_python(self) -> pydantic.JsonValue:
        """Deep copy of the underlying plain-Python data."""
        return copy.deepcopy(self.root)

    # ==========================================================================
    # Variant inspection
    # ==========================================================================

    @property
    def kind(self) -> JsonKind:
        """Name of the active variant."""
        match self.root:
            case None:
                return 'null'
            case bool():
                return 'bool'
            case int() | float():
                return 'number'
            case str():
                return 'string'
            case list():
                return 'array'
            case dict():
                return 'object'
            case _:
                raise TypeError(f'Unsupported JSON value: {type(self.root).__name__}')

    @property
    def is_null(self) -> bool:
        return self.root is None

    @property
    def string(self) -> str | None:
        return self.root if isinstance(self.root, str) else None

    @property
    def number(self) -> int | float | None:
        root = self.root
        if isinstance(root, bool):
            return None
        return root if isinstance(root, (int, float)) else None

    @property
    def boolean(self) -> bool | None:
        return self.root if isinstance(self.root, bool) else None

    @property
    def mapping(self) -> Mapping[str, JsonValue] | None:
        """Members of an object value, each wrapped; None for other variants."""
        if not isinstance(self.root, dict):
            return None
        return {key: JsonValue._wrap(item) for key, item in self.root.items()}

    @property
    def array(self) -> Sequence[JsonValue] | None:
        """Items of an array value, each wrapped; None for other variants."""
        if not isinstance(self.root, list):
            return None
        return tuple(JsonValue._wrap(item) for item in self.root)

    # ==========================================================================
    # Traversal
    # ==========================================================================

    def get(self, key: str) -> JsonValue | None:
        """Member of an object value; None if absent or not an object."""
        if isinstance(self.root, dict) and key in self.root:
            return JsonValue._wrap(self.root[key])
        return None

    def __getitem__(self, key: str | int) -> JsonValue | None:
        if isinstance(key, str):
            return self.get(key)
        if isinstance(self.root, list) and -len(self.root) <= key < len(self.root):
            return JsonValue._wrap(self.root[key])
        return None

    # ==========================================================================
    # Structural equality
    # ==========================================================================

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JsonValue):
            return NotImplemented
        return self.to_json(canonical=True) == other.to_json(canonical=True)

    def __hash__(self) -> int:
        return hash(self.to_json(canonical=True))

    def __repr__(self) -> str:
        return f'JsonValue({self.to_json()})'
