#!/usr/bin/env python3
"""
Command-line interface for agenthub.

Inspect recorded agent feeds, replay them through the control handshake,
pull orchestration plans out of text, and search past sessions.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from collections.abc import AsyncIterator
from pathlib import Path

import typer

from agenthub.cli.logger import CLILogger
from agenthub.config import settings
from agenthub.exceptions import AgentHubError
from agenthub.schemas.control import PermissionDecision
from agenthub.schemas.events import (
    AssistantEvent,
    ControlRequestEvent,
    ProtocolEvent,
    ResultEvent,
    SystemEvent,
    ToolResultEvent,
    UnknownEvent,
    UserEvent,
)
from agenthub.schemas.plan import OrchestrationPlan
from agenthub.services.control import PendingControlRequest
from agenthub.services.decoder import EventDecoder, encode_event
from agenthub.services.plan_extractor import extract_plan
from agenthub.services.search import SessionSearchIndex
from agenthub.services.stream import SessionStream
from agenthub.storage.local import ClaudeDataDirectory

app = typer.Typer(
    name='agenthub',
    help='Decode, replay and search Claude Code agent sessions',
    add_completion=False,
)

SUMMARY_WIDTH = 80


@app.callback()
def configure(debug: bool = typer.Option(False, '--debug', help='Show library log messages')) -> None:
    """Decode, replay and search Claude Code agent sessions."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.ERROR, format='%(levelname)s %(name)s: %(message)s')


@app.command()
def decode(
    file: Path = typer.Argument(..., help='Recorded stream-json feed (one JSON object per line)'),
    json_output: bool = typer.Option(False, '--json', help='Print re-encoded wire JSON instead of summaries'),
) -> None:
    """Decode a recorded feed and print one line per event."""
    _require_file(file)
    decoder = EventDecoder()
    with file.open(encoding='utf-8', errors='replace') as f:
        for line in f:
            event = decoder.decode(line.rstrip('\n'))
            typer.echo(encode_event(event) if json_output else describe_event(event))

    if not json_output:
        typer.echo()
        typer.echo(f'{decoder.decoded_count} decoded, {decoder.unknown_count} unknown')


@app.command()
def replay(
    file: Path = typer.Argument(..., help='Recorded stream-json feed'),
    approve: bool = typer.Option(True, '--approve/--deny', help='Answer tool requests with allow or deny'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Drive a session stream over a recorded feed and print the control responses it sends."""
    _require_file(file)
    asyncio.run(_replay_async(file, approve, verbose))


@app.command('extract-plan')
def extract_plan_command(
    file: Path = typer.Argument(..., help='Text file containing assistant output'),
) -> None:
    """Print the orchestration plan found in a text file, or exit 1."""
    _require_file(file)
    plan = extract_plan(file.read_text(encoding='utf-8', errors='replace'))
    if plan is None:
        typer.secho('No orchestration plan found', fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(1)
    typer.echo(plan.model_dump_json(indent=2))


@app.command()
def search(
    query: str = typer.Argument(..., help='Case-insensitive text to look for'),
    project: str | None = typer.Option(None, '--project', '-p', help='Only sessions under this project path'),
    data_dir: Path | None = typer.Option(None, '--data-dir', help='Claude data directory (default: CLAUDE_DATA_DIR)'),
) -> None:
    """Search past sessions by slug, path, branch, summary or first message."""
    index = SessionSearchIndex(ClaudeDataDirectory(data_dir or settings.CLAUDE_DATA_DIR))
    results = index.search(query, filter_path=project)

    if not results:
        typer.echo(f'No sessions match {query!r} ({index.indexed_session_count} indexed)')
        return

    for result in results:
        typer.secho(f'{result.slug}  ', fg=typer.colors.CYAN, nl=False)
        typer.echo(f'{result.repository_name}  {result.last_activity_at:%Y-%m-%d %H:%M}  {result.session_id}')
        typer.echo(f'  {result.matched_field}: {_truncate(result.matched_text)}')


# ==============================================================================
# Helpers
# ==============================================================================


def describe_event(event: ProtocolEvent) -> str:
    """One-line human-readable summary of an event."""
    match event:
        case SystemEvent():
            return f'system/{event.subtype or "-"} session={event.session_id or "-"} model={event.model or "-"}'
        case AssistantEvent():
            tools = ', '.join(block.name for block in event.message.tool_use_blocks)
            text = _truncate(event.message.text_content)
            return f'assistant text={text!r}' + (f' tools=[{tools}]' if tools else '')
        case UserEvent():
            content = event.message.content
            count = 0 if content is None else 1 if isinstance(content, str) else len(content)
            return f'user blocks={count}'
        case ToolResultEvent():
            return f'tool_result {event.tool_use_id} error={bool(event.is_error)}'
        case ControlRequestEvent():
            subtype = getattr(event.request, 'subtype', None)
            return f'control_request {event.request_id} subtype={subtype}'
        case ResultEvent():
            return f'result/{event.subtype or "-"} error={bool(event.is_error)} text={_truncate(event.text)!r}'
        case UnknownEvent():
            return f'unknown type={event.wire_type or "-"} reason={event.reason}'


def _truncate(text: str, width: int = SUMMARY_WIDTH) -> str:
    text = ' '.join(text.split())
    return text if len(text) <= width else text[: width - 1] + '…'


def _require_file(path: Path) -> None:
    if not path.is_file():
        typer.secho(f'Error: File not found: {path}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


class EchoSink:
    """ReplySink that prints each control response instead of writing to a process."""

    async def send(self, line: str) -> None:
        typer.echo(line)


async def _read_lines(path: Path) -> AsyncIterator[str]:
    with path.open(encoding='utf-8', errors='replace') as f:
        for line in f:
            yield line.rstrip('\n')


async def _replay_async(file: Path, approve: bool, verbose: bool) -> None:
    """Async implementation of replay command."""
    logger = CLILogger(verbose=verbose)

    async def decide(pending: PendingControlRequest) -> PermissionDecision:
        await logger.info(f'Control request {pending.request_id} for {pending.tool_name or "hook callback"}')
        return PermissionDecision.allow() if approve else PermissionDecision.deny('Denied by replay')

    async def report_plan(plan: OrchestrationPlan) -> None:
        await logger.info(f'Orchestration plan for {plan.modulePath}: {", ".join(plan.branch_names)}')

    stream = SessionStream(
        _read_lines(file),
        EchoSink(),
        permission_handler=decide,
        on_plan=report_plan,
        logger=logger,
        strict=False,
    )

    try:
        async for _event in stream.events():
            pass
    except AgentHubError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except Exception as e:
        await logger.error(f'Replay failed: {e}')
        if verbose:
            traceback.print_exc()
        raise typer.Exit(1)

    if stream.plan is not None:
        plan = stream.plan
        typer.secho(f'Plan: {plan.modulePath} ({len(plan.sessions)} sessions)', fg=typer.colors.GREEN, err=True)


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
