"""
Pydantic models for orchestration plans.

The agent emits a plan as a JSON object inside free-form text:

    {"modulePath": "src/auth",
     "sessions": [{"description": "...", "branchName": "feat/login",
                   "sessionType": "parallel", "prompt": "..."}]}

`branchName` identifies a session within a plan. `sessionType` falls back to
"parallel" when missing or unrecognized; every other field is required.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Annotated, Any, Literal, get_args

import pydantic

from agenthub.base_model import WireModel

SessionType = Literal['parallel', 'prototype', 'exploration']

SESSION_TYPES: frozenset[str] = frozenset(get_args(SessionType))
DEFAULT_SESSION_TYPE: SessionType = 'parallel'


def _coerce_session_type(value: Any) -> Any:
    return value if isinstance(value, str) and value in SESSION_TYPES else DEFAULT_SESSION_TYPE


class OrchestrationSession(WireModel):
    description: str
    branchName: str
    sessionType: Annotated[SessionType, pydantic.BeforeValidator(_coerce_session_type)] = DEFAULT_SESSION_TYPE
    prompt: str


class OrchestrationPlan(WireModel):
    modulePath: str
    sessions: Sequence[OrchestrationSession]

    @property
    def branch_names(self) -> Sequence[str]:
        return tuple(session.branchName for session in self.sessions)

    def to_json(self) -> str:
        """Compact JSON with every session's resolved sessionType."""
        return self.model_dump_json()
