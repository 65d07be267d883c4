"""
Local filesystem corpus source.

Implements CorpusSource over a Claude data directory:

    <data dir>/history.jsonl
    <data dir>/projects/<encoded project path>/<session id>.jsonl
"""

from __future__ import annotations

import pathlib
from collections.abc import Iterable, Iterator

from agenthub.paths import transcript_path


class ClaudeDataDirectory:
    """Corpus source reading the agent's data directory."""

    def __init__(self, data_dir: pathlib.Path) -> None:
        """
        Args:
            data_dir: Root of the data directory (usually ~/.claude). It may not
                exist yet; the index is simply empty until it does.
        """
        self.data_dir = data_dir

    @property
    def history_path(self) -> pathlib.Path:
        return self.data_dir / 'history.jsonl'

    def history_mtime(self) -> float | None:
        try:
            return self.history_path.stat().st_mtime
        except OSError:
            return None

    def read_history(self) -> Iterable[str] | None:
        if not self.history_path.is_file():
            return None
        return _iter_lines(self.history_path)

    def read_transcript(self, project_path: str, session_id: str) -> Iterable[str] | None:
        path = transcript_path(self.data_dir, project_path, session_id)
        if not path.is_file():
            return None
        return _iter_lines(path)


def _iter_lines(path: pathlib.Path) -> Iterator[str]:
    # Undecodable bytes are replaced so one corrupt line cannot hide the rest
    with open(path, encoding='utf-8', errors='replace') as f:
        yield from f
