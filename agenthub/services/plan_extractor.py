"""
Extraction of orchestration plans from free-form assistant text.

The agent is asked to wrap its plan in marker tags:

    <orchestration-plan>
    {"modulePath": "...", "sessions": [...]}
    </orchestration-plan>

but in practice it also fences the JSON in ```json blocks, or drops the markers
entirely. Three strategies are tried in order, and the first plan that decodes
wins:

1. extract_marked_plan   text between the markers (a surrounding fence is stripped)
2. extract_fenced_plan   any fenced block that starts with `{` and names both keys
3. extract_braced_plan   balanced-brace scan of the raw text

Every strategy is total: a candidate that fails to decode is "no plan" from
that strategy, never an exception.

PlanExtractor accumulates the text of one turn and produces at most one plan
per turn, no matter how many plan blocks the text contains.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import TypeAlias

import pydantic

from agenthub.exceptions import InvalidJsonError
from agenthub.schemas.json_value import JsonValue
from agenthub.schemas.plan import OrchestrationPlan

__all__ = [
    'PLAN_END',
    'PLAN_START',
    'STRATEGIES',
    'PlanExtractor',
    'contains_plan_markers',
    'extract_braced_plan',
    'extract_fenced_plan',
    'extract_marked_plan',
    'extract_plan',
    'strip_plan_markers',
]

logger = logging.getLogger(__name__)

PLAN_START = '<orchestration-plan>'
PLAN_END = '</orchestration-plan>'

PLAN_KEYS = ('"modulePath"', '"sessions"')

# Opening fence may carry any info string (json, bash, ...)
FENCE_PATTERN = re.compile(r'```[\w+-]*[ \t]*\n([\s\S]*?)```')

ExtractionStrategy: TypeAlias = Callable[[str], OrchestrationPlan | None]


# ==============================================================================
# Decoding
# ==============================================================================


def _mentions_plan_keys(text: str) -> bool:
    return all(key in text for key in PLAN_KEYS)


def _decode_plan(candidate: str, strategy: str) -> OrchestrationPlan | None:
    try:
        payload = JsonValue.from_json(candidate).root
        return OrchestrationPlan.model_validate(payload)
    except (InvalidJsonError, pydantic.ValidationError) as e:
        logger.debug('Plan candidate rejected by %s strategy: %s', strategy, e)
        return None


def _strip_fence(text: str) -> str:
    """Remove a surrounding ``` / ```json fence, if any."""
    text = text.strip()
    if not text.startswith('```'):
        return text
    newline = text.find('\n')
    text = text[newline + 1 :] if newline != -1 else ''
    if text.endswith('```'):
        text = text[:-3]
    return text.strip()


# ==============================================================================
# Strategies
# ==============================================================================


def extract_marked_plan(text: str) -> OrchestrationPlan | None:
    """Plan between the first start marker and the next end marker after it."""
    start = text.find(PLAN_START)
    if start == -1:
        return None
    body_start = start + len(PLAN_START)
    end = text.find(PLAN_END, body_start)
    if end == -1:
        return None
    return _decode_plan(_strip_fence(text[body_start:end]), 'marker')


def extract_fenced_plan(text: str) -> OrchestrationPlan | None:
    """First fenced code block holding a decodable plan."""
    if not _mentions_plan_keys(text):
        return None
    for match in FENCE_PATTERN.finditer(text):
        candidate = match.group(1).strip()
        if not candidate.startswith('{') or not _mentions_plan_keys(candidate):
            continue
        plan = _decode_plan(candidate, 'fenced')
        if plan is not None:
            return plan
    return None


def extract_braced_plan(text: str) -> OrchestrationPlan | None:
    """
    First balanced `{...}` span of the raw text that decodes as a plan.

    Braces inside JSON strings (and escaped quotes inside those strings) do not
    count toward nesting. A span without both plan keys is skipped whole; a
    span with the keys that fails to decode is retried from its inner braces.
    """
    if not _mentions_plan_keys(text):
        return None
    position = 0
    while (open_index := text.find('{', position)) != -1:
        close_index = _matching_brace(text, open_index)
        if close_index is None:
            return None
        candidate = text[open_index : close_index + 1]
        if not _mentions_plan_keys(candidate):
            position = close_index + 1
            continue
        plan = _decode_plan(candidate, 'braced')
        if plan is not None:
            return plan
        position = open_index + 1
    return None


def _matching_brace(text: str, open_index: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for index in range(open_index, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return index
    return None


STRATEGIES: Sequence[ExtractionStrategy] = (extract_marked_plan, extract_fenced_plan, extract_braced_plan)


def extract_plan(text: str) -> OrchestrationPlan | None:
    """Run the strategies in order; the first plan found wins."""
    return _run_strategies(text, STRATEGIES)


def _run_strategies(text: str, strategies: Sequence[ExtractionStrategy]) -> OrchestrationPlan | None:
    for strategy in strategies:
        plan = strategy(text)
        if plan is not None:
            logger.info('Extracted orchestration plan via %s (%d sessions)', strategy.__name__, len(plan.sessions))
            return plan
    return None


# ==============================================================================
# Display helpers
# ==============================================================================


def contains_plan_markers(text: str) -> bool:
    return PLAN_START in text and PLAN_END in text


def strip_plan_markers(text: str) -> str:
    """Remove the marker-delimited plan block, leaving the prose around it."""
    start = text.find(PLAN_START)
    if start == -1:
        return text
    end = text.find(PLAN_END, start + len(PLAN_START))
    if end == -1:
        return text
    return (text[:start] + text[end + len(PLAN_END) :]).strip()


# ==============================================================================
# Per-turn accumulator
# ==============================================================================


class PlanExtractor:
    """
    Accumulates one turn of assistant text and yields at most one plan.

    Usage:
        extractor = PlanExtractor()
        extractor.begin_turn()
        for chunk in assistant_text:
            if (plan := extractor.feed(chunk)) is not None:
                launch(plan)  # runs once per turn
    """

    def __init__(self, strategies: Sequence[ExtractionStrategy] = STRATEGIES) -> None:
        self._strategies = tuple(strategies)
        self._parts: list[str] = []
        self._plan: OrchestrationPlan | None = None

    def begin_turn(self) -> None:
        """Reset the accumulated text and the produced flag."""
        self._parts.clear()
        self._plan = None

    def feed(self, text: str) -> OrchestrationPlan | None:
        """
        Append text and try to extract a plan.

        Returns:
            The plan, only on the call that first produced it this turn
        """
        self._parts.append(text)
        if self._plan is not None:
            return None
        self._plan = _run_strategies(self.text, self._strategies)
        return self._plan

    @property
    def text(self) -> str:
        return ''.join(self._parts)

    @property
    def plan(self) -> OrchestrationPlan | None:
        """The plan produced this turn, if any."""
        return self._plan

    @property
    def produced(self) -> bool:
        return self._plan is not None
