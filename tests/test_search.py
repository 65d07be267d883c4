"""Tests for the session search index."""

from __future__ import annotations

import datetime
import json
import threading
from collections.abc import Iterable
from pathlib import Path

import pytest

from agenthub.paths import encode_project_path, transcript_path
from agenthub.services.search import SessionSearchIndex
from agenthub.storage.local import ClaudeDataDirectory
from agenthub.storage.protocol import CorpusSource
from conftest import CorpusBuilder

AUTH_SESSION = 'a1b2c3d4-0000-4000-8000-000000000001'
BUG_SESSION = 'e5f6a7b8-0000-4000-8000-000000000002'
QUIET_SESSION = '99999999-0000-4000-8000-000000000003'

WEBAPP = '/Users/dev/src/webapp'
API = '/Users/dev/src/api'


def build_auth_corpus(corpus: CorpusBuilder) -> None:
    corpus.add_prompt(AUTH_SESSION, WEBAPP, 'Rework the login form', 1_700_000_300_000)
    corpus.add_prompt(BUG_SESSION, API, 'Why do tokens expire early?', 1_700_000_100_000)
    corpus.add_prompt(QUIET_SESSION, API, 'Tidy the README', 1_700_000_200_000)
    corpus.write_history(mtime=1_700_000_000)

    corpus.write_transcript(WEBAPP, AUTH_SESSION, [{'type': 'user', 'slug': 'fix-auth-flow', 'gitBranch': 'main'}])
    corpus.write_transcript(
        API,
        BUG_SESSION,
        [
            {'type': 'summary', 'summary': 'Investigated token expiry', 'leafUuid': 'x'},
            {'type': 'summary', 'summary': 'Fixed authentication bug', 'leafUuid': 'y'},
            {'type': 'user', 'slug': 'brave-singing-crab', 'gitBranch': 'bugfix/tokens'},
        ],
    )
    corpus.write_transcript(API, QUIET_SESSION, [{'type': 'user', 'slug': 'tidy-readme', 'gitBranch': 'docs'}])


def make_index(corpus: CorpusBuilder, **kwargs: object) -> SessionSearchIndex:
    return SessionSearchIndex(ClaudeDataDirectory(corpus.data_dir), **kwargs)


def test_auth_query_matches_slug_then_summary(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)

    results = make_index(corpus).search('auth')

    assert [r.session_id for r in results] == [AUTH_SESSION, BUG_SESSION]
    assert results[0].last_activity_at > results[1].last_activity_at
    assert (results[0].matched_field, results[0].matched_text) == ('slug', 'fix-auth-flow')
    assert (results[1].matched_field, results[1].matched_text) == ('summary', 'Fixed authentication bug')


@pytest.mark.parametrize(
    ('query', 'field', 'text'),
    [
        ('WEBAPP', 'path', WEBAPP),
        ('bugfix/', 'gitBranch', 'bugfix/tokens'),
        ('expiry', 'summary', 'Investigated token expiry'),
        ('expire early', 'firstMessage', 'Why do tokens expire early?'),
    ],
)
def test_match_fields(corpus: CorpusBuilder, query: str, field: str, text: str) -> None:
    build_auth_corpus(corpus)

    (result,) = make_index(corpus).search(query)

    assert (result.matched_field, result.matched_text) == (field, text)


def test_one_result_per_session_under_highest_priority_field(corpus: CorpusBuilder) -> None:
    corpus.add_prompt(AUTH_SESSION, '/Users/dev/src/docs-site', 'update docs', 1_700_000_000_000)
    corpus.write_history()
    corpus.write_transcript(
        '/Users/dev/src/docs-site',
        AUTH_SESSION,
        [{'slug': 'docs-refresh', 'gitBranch': 'docs/new'}, {'type': 'summary', 'summary': 'docs cleanup'}],
    )

    (result,) = make_index(corpus).search('docs')

    assert result.matched_field == 'slug'


def test_empty_query_returns_nothing(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)
    assert make_index(corpus).search('') == []


def test_filter_path_keeps_matching_prefix(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)
    index = make_index(corpus)

    results = index.search('/Users/dev', filter_path=API)

    assert [r.session_id for r in results] == [QUIET_SESSION, BUG_SESSION]
    assert all(r.repository_name == 'api' for r in results)


def test_ties_break_by_session_id(corpus: CorpusBuilder) -> None:
    for session_id in ('cccccccc-1', 'aaaaaaaa-1', 'bbbbbbbb-1'):
        corpus.add_prompt(session_id, WEBAPP, 'same time', 1_700_000_000_000)
    corpus.write_history()

    results = make_index(corpus).search('same time')

    assert [r.session_id for r in results] == ['aaaaaaaa-1', 'bbbbbbbb-1', 'cccccccc-1']


def test_session_without_transcript_gets_placeholder(corpus: CorpusBuilder) -> None:
    session_id = '0123456789abcdef'
    corpus.add_prompt(session_id, WEBAPP, 'orphan prompt', 1_700_000_000_000)
    corpus.write_history()

    (result,) = make_index(corpus).search('orphan')

    assert result.slug == '01234567'
    assert result.git_branch is None
    assert result.summaries == ()


def test_entry_aggregates_history(corpus: CorpusBuilder) -> None:
    corpus.add_prompt(AUTH_SESSION, WEBAPP, 'second prompt', 1_700_000_200_000)
    corpus.add_prompt(AUTH_SESSION, WEBAPP, 'first prompt', 1_700_000_100_000)
    corpus.add_prompt(AUTH_SESSION, WEBAPP, 'third prompt', 1_700_000_300_000)
    corpus.write_history()

    index = make_index(corpus)
    index.rebuild()
    entry = index.entries[AUTH_SESSION]

    assert entry.first_message == 'first prompt'
    assert entry.project_path == WEBAPP
    assert entry.last_activity_at == datetime.datetime.fromtimestamp(1_700_000_300, tz=datetime.UTC)


def test_history_skips_blank_malformed_and_sessionless_lines(corpus: CorpusBuilder) -> None:
    corpus.data_dir.mkdir(parents=True)
    corpus.history_path.write_text(
        '\n'.join(
            [
                '',
                'not json',
                '[1, 2]',
                json.dumps({'display': '/help', 'timestamp': 1_700_000_000_000, 'project': WEBAPP}),
                json.dumps({'sessionId': 'missing-timestamp', 'project': WEBAPP}),
                json.dumps({'display': 'kept', 'timestamp': 1_700_000_000_000, 'project': WEBAPP, 'sessionId': 'ok-1'}),
            ]
        ),
        encoding='utf-8',
    )

    index = make_index(corpus)
    index.rebuild()

    assert list(index.entries) == ['ok-1']


def test_out_of_range_timestamp_does_not_abort_build(corpus: CorpusBuilder) -> None:
    corpus.add_prompt('far-future', '/p', 'broken clock', 100_000_000_000_000_000)
    corpus.add_prompt('ok-1', WEBAPP, 'fine prompt', 1_700_000_000_000)
    corpus.write_history()

    results = make_index(corpus).search('prompt')

    assert [r.session_id for r in results] == ['ok-1']


def test_transcript_for_dotted_project_path(corpus: CorpusBuilder) -> None:
    project = '/Users/me/My.app'
    corpus.add_prompt('dot-1', project, 'hello', 1_700_000_000_000)
    corpus.write_history()
    transcript = corpus.data_dir / 'projects' / '-Users-me-My.app' / 'dot-1.jsonl'
    transcript.parent.mkdir(parents=True)
    transcript.write_text(json.dumps({'slug': 'dotted-slug', 'gitBranch': 'main'}) + '\n', encoding='utf-8')

    index = make_index(corpus)
    index.rebuild()

    assert index.entries['dot-1'].slug == 'dotted-slug'
    assert index.entries['dot-1'].git_branch == 'main'


def test_transcript_takes_first_slug_and_first_nonempty_branch(corpus: CorpusBuilder) -> None:
    corpus.add_prompt(AUTH_SESSION, WEBAPP, 'hi', 1_700_000_000_000)
    corpus.write_history()
    path = corpus.write_transcript(
        WEBAPP,
        AUTH_SESSION,
        [
            {'type': 'user', 'slug': None, 'gitBranch': ''},
            {'type': 'user', 'slug': 'first-slug', 'gitBranch': 'feature/a'},
            {'type': 'user', 'slug': 'later-slug', 'gitBranch': 'feature/b'},
        ],
    )
    with path.open('a', encoding='utf-8') as f:
        f.write('{garbage\n')

    index = make_index(corpus)
    index.rebuild()
    entry = index.entries[AUTH_SESSION]

    assert (entry.slug, entry.git_branch) == ('first-slug', 'feature/a')


def test_transcript_scan_collects_summaries_in_order_up_to_limit(corpus: CorpusBuilder) -> None:
    corpus.add_prompt(AUTH_SESSION, WEBAPP, 'hi', 1_700_000_000_000)
    corpus.write_history()
    summaries = [{'type': 'summary', 'summary': f'summary {i}'} for i in range(5)]
    corpus.write_transcript(WEBAPP, AUTH_SESSION, [{'slug': 's', 'gitBranch': 'b'}, *summaries])

    index = make_index(corpus, summary_scan_limit=3)
    index.rebuild()

    assert index.entries[AUTH_SESSION].summaries == ('summary 0', 'summary 1', 'summary 2')


def test_transcript_scan_continues_until_slug_and_branch_known(corpus: CorpusBuilder) -> None:
    corpus.add_prompt(AUTH_SESSION, WEBAPP, 'hi', 1_700_000_000_000)
    corpus.write_history()
    summaries = [{'type': 'summary', 'summary': f'summary {i}'} for i in range(3)]
    corpus.write_transcript(WEBAPP, AUTH_SESSION, [*summaries, {'slug': 'late-slug', 'gitBranch': 'late'}])

    index = make_index(corpus, summary_scan_limit=1)
    index.rebuild()
    entry = index.entries[AUTH_SESSION]

    assert entry.slug == 'late-slug'
    assert len(entry.summaries) == 3


def test_missing_history_is_an_empty_index(corpus: CorpusBuilder) -> None:
    index = make_index(corpus)
    assert index.search('anything') == []
    assert index.indexed_session_count == 0


# ==============================================================================
# Staleness
# ==============================================================================


class CountingSource:
    """CorpusSource over another source that counts history reads."""

    def __init__(self, inner: CorpusSource) -> None:
        self.inner = inner
        self.history_reads = 0
        self.transcript_reads = 0

    def history_mtime(self) -> float | None:
        return self.inner.history_mtime()

    def read_history(self) -> Iterable[str] | None:
        self.history_reads += 1
        return self.inner.read_history()

    def read_transcript(self, project_path: str, session_id: str) -> Iterable[str] | None:
        self.transcript_reads += 1
        return self.inner.read_transcript(project_path, session_id)


def test_unchanged_history_is_not_rebuilt(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)
    source = CountingSource(ClaudeDataDirectory(corpus.data_dir))
    index = SessionSearchIndex(source)

    assert index.rebuild_if_stale() is True
    assert index.rebuild_if_stale() is False
    index.search('auth')
    index.search('tidy')

    assert source.history_reads == 1
    assert source.transcript_reads == 3


def test_touching_history_forces_rebuild(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)
    source = CountingSource(ClaudeDataDirectory(corpus.data_dir))
    index = SessionSearchIndex(source)
    index.search('auth')

    corpus.add_prompt('new-session-1', WEBAPP, 'brand new auth idea', 1_700_000_900_000)
    corpus.write_history(mtime=1_700_000_500)
    results = index.search('auth')

    assert source.history_reads == 2
    assert results[0].session_id == 'new-session-1'


def test_vanished_history_is_stale(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)
    index = make_index(corpus)
    index.rebuild()

    corpus.history_path.unlink()

    assert index.rebuild_if_stale() is True
    assert index.indexed_session_count == 0


def test_explicit_rebuild_always_runs(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)
    source = CountingSource(ClaudeDataDirectory(corpus.data_dir))
    index = SessionSearchIndex(source)

    index.rebuild()
    index.rebuild()

    assert source.history_reads == 2


class GatedSource:
    """CorpusSource whose transcript reads block while armed, holding a build open."""

    def __init__(self, inner: CorpusSource) -> None:
        self.inner = inner
        self.armed = False
        self.entered = threading.Event()
        self.release = threading.Event()

    def history_mtime(self) -> float | None:
        return self.inner.history_mtime()

    def read_history(self) -> Iterable[str] | None:
        return self.inner.read_history()

    def read_transcript(self, project_path: str, session_id: str) -> Iterable[str] | None:
        if self.armed:
            self.entered.set()
            self.release.wait(timeout=5)
        return self.inner.read_transcript(project_path, session_id)


def test_readers_never_see_a_partial_build(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)
    source = GatedSource(ClaudeDataDirectory(corpus.data_dir))
    index = SessionSearchIndex(source)
    index.rebuild()
    before = dict(index.entries)

    corpus.add_prompt('new-session-1', WEBAPP, 'fresh prompt', 1_700_000_900_000)
    corpus.write_history(mtime=1_700_000_500)
    source.armed = True

    builder = threading.Thread(target=index.rebuild)
    builder.start()
    assert source.entered.wait(timeout=5)

    during = index.entries
    assert dict(during) == before
    assert index.indexed_session_count == 3

    searched: list[list[str]] = []
    reader = threading.Thread(target=lambda: searched.append([r.session_id for r in index.search('fresh')]))
    reader.start()

    source.release.set()
    builder.join(timeout=5)
    reader.join(timeout=5)

    assert set(index.entries) == set(before) | {'new-session-1'}
    assert dict(during) == before
    assert searched == [['new-session-1']]


def test_snapshot_is_read_only(corpus: CorpusBuilder) -> None:
    build_auth_corpus(corpus)
    index = make_index(corpus)
    index.rebuild()

    with pytest.raises(TypeError):
        index.entries['x'] = index.entries[AUTH_SESSION]  # type: ignore[index]


# ==============================================================================
# Paths
# ==============================================================================


def test_transcript_path_encoding(tmp_path: Path) -> None:
    assert encode_project_path('/Users/dev/My Project.app/~tmp') == '-Users-dev-My Project.app-~tmp'
    assert transcript_path(tmp_path, '/a/b', 'abc') == tmp_path / 'projects' / '-a-b' / 'abc.jsonl'
