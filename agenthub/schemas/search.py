"""
Pydantic models for the session search index.

HistoryEntry is one line of the agent's append-only prompt history
(`history.jsonl`). SessionIndexEntry is what the index keeps per session, and
SessionSearchResult is a per-query projection of it naming the field that
matched.
"""

from __future__ import annotations

import datetime
from pathlib import PurePosixPath
from typing import Literal

import pydantic

from agenthub.base_model import StrictModel, WireModel

SearchMatchField = Literal['slug', 'path', 'gitBranch', 'summary', 'firstMessage']


class HistoryEntry(WireModel):
    """One prompt in the history log. Unknown keys (pastedContents, ...) are ignored."""

    sessionId: str | None = None
    project: str
    display: str | None = None
    timestamp: int  # epoch milliseconds

    @pydantic.field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v: int) -> int:
        """Reject timestamps outside the range a datetime can represent."""
        try:
            _from_epoch_millis(v)
        except (ValueError, OverflowError, OSError) as e:
            raise ValueError(f'timestamp {v} is out of range') from e
        return v

    @property
    def date(self) -> datetime.datetime:
        return _from_epoch_millis(self.timestamp)


def _from_epoch_millis(timestamp: int) -> datetime.datetime:
    return datetime.datetime.fromtimestamp(timestamp / 1000, tz=datetime.UTC)


class SessionIndexEntry(StrictModel):
    """Indexed metadata for one session. Replaced wholesale on every rebuild."""

    session_id: str
    project_path: str
    slug: str
    git_branch: str | None = None
    first_message: str | None = None
    summaries: tuple[str, ...] = ()
    last_activity_at: datetime.datetime


class SessionSearchResult(StrictModel):
    """A session matching a query, with the highest-priority field that matched."""

    session_id: str
    project_path: str
    slug: str
    git_branch: str | None = None
    first_message: str | None = None
    summaries: tuple[str, ...] = ()
    last_activity_at: datetime.datetime
    matched_field: SearchMatchField
    matched_text: str

    @classmethod
    def from_entry(
        cls, entry: SessionIndexEntry, matched_field: SearchMatchField, matched_text: str
    ) -> SessionSearchResult:
        return cls(
            session_id=entry.session_id,
            project_path=entry.project_path,
            slug=entry.slug,
            git_branch=entry.git_branch,
            first_message=entry.first_message,
            summaries=tuple(entry.summaries),
            last_activity_at=entry.last_activity_at,
            matched_field=matched_field,
            matched_text=matched_text,
        )

    @property
    def repository_name(self) -> str:
        """Last component of the project path."""
        return PurePosixPath(self.project_path).name
