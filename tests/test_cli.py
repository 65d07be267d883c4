"""Tests for the agenthub command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from agenthub.cli.main import app
from conftest import CorpusBuilder

STREAMS_DIR = Path(__file__).parent.parent / 'fixtures' / 'streams'

runner = CliRunner()


def test_decode_summarizes_each_event() -> None:
    result = runner.invoke(app, ['decode', str(STREAMS_DIR / 'plan_turn.jsonl')])

    assert result.exit_code == 0, result.output
    assert 'control_request req-1 subtype=can_use_tool' in result.stdout
    assert '6 decoded, 0 unknown' in result.stdout


def test_decode_counts_unknown_lines() -> None:
    result = runner.invoke(app, ['decode', str(STREAMS_DIR / 'forward_compat.jsonl')])

    assert result.exit_code == 0, result.output
    assert '5 decoded, 1 unknown' in result.stdout


def test_decode_missing_file() -> None:
    result = runner.invoke(app, ['decode', 'does-not-exist.jsonl'])
    assert result.exit_code == 1


def test_replay_sends_control_responses() -> None:
    result = runner.invoke(app, ['replay', str(STREAMS_DIR / 'plan_turn.jsonl'), '--deny'])

    assert result.exit_code == 0, result.output
    responses = [json.loads(line) for line in result.stdout.splitlines() if line.startswith('{')]
    assert [r['response']['request_id'] for r in responses] == ['req-1']
    assert responses[0]['response']['response'] == {'behavior': 'deny', 'message': 'Denied by replay'}


def test_extract_plan_prints_plan(tmp_path: Path) -> None:
    session = {'description': 'Login', 'branchName': 'feat/login', 'prompt': 'Go'}
    text = tmp_path / 'reply.txt'
    session = {"description": "Login", "branchName": "feat/login", "prompt": "Go"}
    text.write_text(f'Plan:\n{{"modulePath": "src/auth", "sessions": [{json.dumps(session)}]}}\n')

    result = runner.invoke(app, ['extract-plan', str(text)])

    assert result.exit_code == 0, result.output
    plan = json.loads(result.stdout)
    assert plan['modulePath'] == 'src/auth'
    assert plan['sessions'][0]['sessionType'] == 'parallel'


def test_extract_plan_without_plan(tmp_path: Path) -> None:
    text = tmp_path / 'reply.txt'
    text.write_text('Nothing to orchestrate here.')

    result = runner.invoke(app, ['extract-plan', str(text)])

    assert result.exit_code == 1


def test_search(corpus: CorpusBuilder) -> None:
    corpus.add_prompt('5e55-1', '/Users/dev/src/webapp', 'Fix the login redirect', 1_700_000_000_000)
    corpus.write_history()
    corpus.write_transcript('/Users/dev/src/webapp', '5e55-1', [{'slug': 'login-redirect', 'gitBranch': 'main'}])

    result = runner.invoke(app, ['search', 'login', '--data-dir', str(corpus.data_dir)])

    assert result.exit_code == 0, result.output
    assert 'login-redirect' in result.stdout
    assert 'slug: login-redirect' in result.stdout


def test_search_without_matches(corpus: CorpusBuilder) -> None:
    result = runner.invoke(app, ['search', 'nothing', '--data-dir', str(corpus.data_dir)])

    assert result.exit_code == 0, result.output
    assert 'No sessions match' in result.stdout
