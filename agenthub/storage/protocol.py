"""
Corpus source protocol for the session search index.

Defines the read-only view of the agent's data directory that the index
consumes. The index never touches the filesystem directly, so tests can hand
it an in-memory corpus.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable


@runtime_checkable
class CorpusSource(Protocol):
    """Protocol for history/transcript corpus backends."""

    def history_mtime(self) -> float | None:
        """
        Modification time of the history log.

        Returns:
            Seconds since the epoch, or None if the log does not exist
        """
        ...

    def read_history(self) -> Iterable[str] | None:
        """
        Lines of the history log, in file order.

        Returns:
            Line iterator, or None if the log does not exist

        Raises:
            OSError: If the log exists but cannot be read
        """
        ...

    def read_transcript(self, project_path: str, session_id: str) -> Iterable[str] | None:
        """
        Lines of one session transcript, in file order.

        Args:
            project_path: Project path as recorded in the history log
            session_id: Session identifier

        Returns:
            Line iterator, or None if no transcript exists for the session

        Raises:
            OSError: If the transcript exists but cannot be read
        """
        ...
