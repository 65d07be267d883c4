"""Shared fixtures for agenthub tests."""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from agenthub.paths import transcript_path


class RecordingSink:
    """ReplySink that keeps every line it is sent."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    async def send(self, line: str) -> None:
        self.lines.append(line)

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.lines]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


def jsonl(records: Iterable[Mapping[str, Any]]) -> str:
    return ''.join(json.dumps(record) + '\n' for record in records)


class CorpusBuilder:
    """Writes a Claude data directory (history log plus transcripts) under tmp_path."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.history: list[dict[str, Any]] = []

    @property
    def history_path(self) -> Path:
        return self.data_dir / 'history.jsonl'

    def add_prompt(self, session_id: str, project: str, display: str, timestamp: int) -> None:
        self.history.append({'display': display, 'timestamp': timestamp, 'project': project, 'sessionId': session_id})

    def write_history(self, mtime: float | None = None) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.history_path.write_text(jsonl(self.history), encoding='utf-8')
        if mtime is not None:
            self.set_history_mtime(mtime)

    def set_history_mtime(self, mtime: float) -> None:
        os.utime(self.history_path, (mtime, mtime))

    def write_transcript(self, project: str, session_id: str, records: Sequence[Mapping[str, Any]]) -> Path:
        path = transcript_path(self.data_dir, project, session_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(jsonl(records), encoding='utf-8')
        return path


@pytest.fixture
def corpus(tmp_path: Path) -> CorpusBuilder:
    return CorpusBuilder(tmp_path / '.claude')
