"""
In-memory search index over historical agent sessions.

Sources:
- history log: one {sessionId, project, display, timestamp} line per prompt
- transcripts: one JSONL file per session, read for `slug`, `gitBranch` and
  {"type": "summary"} records

Build:
1. Parse the history log once and group entries by sessionId
2. Per session, scan its transcript (stopping early once everything is known)
3. Swap the finished map in as one immutable snapshot

The index rebuilds lazily: a query first checks whether the history log's
modification time still matches the one recorded at the last build. Unreadable
sources never abort a build. A missing log is an empty index, and a missing
transcript is a placeholder entry.

Usage:
    index = SessionSearchIndex(ClaudeDataDirectory(settings.CLAUDE_DATA_DIR))
    for result in index.search('auth'):
        print(result.slug, result.matched_field, result.matched_text)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType

import pydantic

from agenthub.config import settings
from agenthub.exceptions import InvalidJsonError
from agenthub.schemas.json_value import JsonValue
from agenthub.schemas.search import HistoryEntry, SessionIndexEntry, SessionSearchResult
from agenthub.storage.protocol import CorpusSource

__all__ = ['SessionSearchIndex', 'default_slug']

logger = logging.getLogger(__name__)

SLUG_PREFIX_LENGTH = 8


def default_slug(session_id: str) -> str:
    """Placeholder slug for sessions whose transcript names none."""
    return session_id[:SLUG_PREFIX_LENGTH]


class SessionSearchIndex:
    """
    Queryable index of sessions keyed by session id.

    Builds are serialized by a lock. Readers take the current snapshot
    reference and never observe a half-built map.
    """

    def __init__(self, source: CorpusSource, *, summary_scan_limit: int | None = None) -> None:
        self._source = source
        self._summary_scan_limit = summary_scan_limit or settings.SUMMARY_SCAN_LIMIT
        self._lock = threading.Lock()
        self._entries: Mapping[str, SessionIndexEntry] = MappingProxyType({})
        self._built = False
        self._history_mtime: float | None = None

    @property
    def indexed_session_count(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Mapping[str, SessionIndexEntry]:
        """Current snapshot (read-only)."""
        return self._entries

    # ==========================================================================
    # Query
    # ==========================================================================

    def search(self, query: str, filter_path: str | None = None) -> Sequence[SessionSearchResult]:
        """
        Find sessions matching query (case-insensitive substring).

        Fields are checked in priority order: slug, project path, git branch,
        summaries (first match), first message. Each session appears at most
        once, under its highest-priority match.

        Args:
            query: Text to look for; empty returns no results
            filter_path: Only sessions whose project path starts with this

        Returns:
            Results, most recently active first (ties by session id)
        """
        self.rebuild_if_stale()

        if not query:
            return []

        needle = query.lower()
        results = []
        for entry in self._entries.values():
            if filter_path is not None and not entry.project_path.startswith(filter_path):
                continue
            result = _match_entry(entry, needle)
            if result is not None:
                results.append(result)

        # Two stable sorts: id ascending, then activity descending
        results.sort(key=lambda r: r.session_id)
        results.sort(key=lambda r: r.last_activity_at, reverse=True)
        return results

    # ==========================================================================
    # Build
    # ==========================================================================

    def is_stale(self) -> bool:
        """True if never built or the history log changed (or vanished) since."""
        return not self._built or self._source.history_mtime() != self._history_mtime

    def rebuild_if_stale(self) -> bool:
        """
        Rebuild only when stale.

        Returns:
            True if a rebuild ran
        """
        with self._lock:
            if not self.is_stale():
                return False
            self._build()
            return True

    def rebuild(self) -> None:
        """Rebuild unconditionally."""
        with self._lock:
            self._build()

    def _build(self) -> None:
        # Recorded before reading so a write during the build triggers another one
        mtime = self._source.history_mtime()

        sessions: dict[str, list[HistoryEntry]] = {}
        for entry in self._read_history():
            if entry.sessionId is not None:
                sessions.setdefault(entry.sessionId, []).append(entry)

        entries = {}
        for session_id, history in sessions.items():
            entries[session_id] = self._build_entry(session_id, history)

        self._entries = MappingProxyType(entries)
        self._history_mtime = mtime
        self._built = True
        logger.info('Indexed %d sessions', len(entries))

    def _read_history(self) -> Iterable[HistoryEntry]:
        try:
            lines = self._source.read_history()
            if lines is None:
                return []
            return [entry for line in lines if (entry := _parse_history_line(line)) is not None]
        except OSError as e:
            logger.warning('Failed to read history log: %s', e)
            return []

    def _build_entry(self, session_id: str, history: Sequence[HistoryEntry]) -> SessionIndexEntry:
        project_path = history[0].project
        earliest = min(history, key=lambda h: h.timestamp)
        latest = max(history, key=lambda h: h.timestamp)

        slug, git_branch, summaries = self._scan_transcript(project_path, session_id)

        return SessionIndexEntry(
            session_id=session_id,
            project_path=project_path,
            slug=slug,
            git_branch=git_branch,
            first_message=earliest.display,
            summaries=summaries,
            last_activity_at=latest.date,
        )

    def _scan_transcript(self, project_path: str, session_id: str) -> tuple[str, str | None, tuple[str, ...]]:
        """First slug, first non-empty gitBranch, and summaries in file order."""
        slug: str | None = None
        git_branch: str | None = None
        summaries: list[str] = []

        try:
            lines = self._source.read_transcript(project_path, session_id)
            for line in lines or ():
                record = _parse_object(line)
                if record is None:
                    continue
                if slug is None and isinstance(record.get('slug'), str):
                    slug = record['slug']
                if git_branch is None and isinstance(record.get('gitBranch'), str) and record['gitBranch']:
                    git_branch = record['gitBranch']
                if record.get('type') == 'summary' and isinstance(record.get('summary'), str):
                    summaries.append(record['summary'])
                if slug is not None and git_branch is not None and len(summaries) >= self._summary_scan_limit:
                    break
        except OSError as e:
            logger.warning('Failed to read transcript for session %s: %s', session_id, e)
            return default_slug(session_id), None, ()

        return slug if slug is not None else default_slug(session_id), git_branch, tuple(summaries)


def _parse_object(line: str) -> dict | None:
    if not line.strip():
        return None
    try:
        payload = JsonValue.from_json(line).root
    except InvalidJsonError:
        return None
    return payload if isinstance(payload, dict) else None


def _parse_history_line(line: str) -> HistoryEntry | None:
    record = _parse_object(line)
    if record is None:
        return None
    try:
        return HistoryEntry.model_validate(record)
    except pydantic.ValidationError:
        return None


def _match_entry(entry: SessionIndexEntry, needle: str) -> SessionSearchResult | None:
    if needle in entry.slug.lower():
        return SessionSearchResult.from_entry(entry, 'slug', entry.slug)
    if needle in entry.project_path.lower():
        return SessionSearchResult.from_entry(entry, 'path', entry.project_path)
    if entry.git_branch is not None and needle in entry.git_branch.lower():
        return SessionSearchResult.from_entry(entry, 'gitBranch', entry.git_branch)
    for summary in entry.summaries:
        if needle in summary.lower():
            return SessionSearchResult.from_entry(entry, 'summary', summary)
    if entry.first_message is not None and needle in entry.first_message.lower():
        return SessionSearchResult.from_entry(entry, 'firstMessage', entry.first_message)
    return None
