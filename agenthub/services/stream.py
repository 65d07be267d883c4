"""
Cooperative pipeline over one running agent session.

SessionStream consumes the agent's stdout line by line, in wire order:

    line ──► EventDecoder ──► control_request? ──► ControlProtocol ──► reply sink
                         └──► assistant/result text ──► PlanExtractor ──► on_plan (once)

Suspension points are reading the next line and awaiting a tool-approval
decision. Nothing else blocks.

Terminal outcomes (each fires completion exactly once):
- end of stream
- StreamTimeoutError: no first line before first_event_timeout
- AgentAuthenticationError: the agent reported authentication_failed
- cancel(): outstanding requests are denied once and the source is closed

Usage:
    process = await asyncio.create_subprocess_exec(*argv, stdin=PIPE, stdout=PIPE)
    stream = SessionStream(
        split_lines(process.stdout),
        StreamWriterSink(process.stdin),
        permission_handler=ask_user,
        on_plan=launch_sessions,
    )
    async for event in stream.events():
        render(event)
"""

from __future__ import annotations

import asyncio
import codecs
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import TypeAlias

from agenthub.config import settings
from agenthub.exceptions import AgentAuthenticationError, StreamTimeoutError
from agenthub.protocols import LoggerProtocol, NullLogger, ReplySink
from agenthub.schemas.control import ControlResponse, PermissionDecision
from agenthub.schemas.events import (
    AssistantEvent,
    ControlRequestEvent,
    ProtocolEvent,
    ResultEvent,
    SystemEvent,
    TextBlock,
    UnknownEvent,
)
from agenthub.schemas.plan import OrchestrationPlan
from agenthub.services.control import ControlProtocol, PendingControlRequest
from agenthub.services.decoder import EventDecoder
from agenthub.services.plan_extractor import PlanExtractor

__all__ = ['PermissionHandler', 'SessionStream', 'StreamWriterSink', 'split_lines']

AUTHENTICATION_FAILED = 'authentication_failed'
MESSAGE_SEPARATOR = '\n\n'

PermissionHandler: TypeAlias = Callable[[PendingControlRequest], Awaitable[PermissionDecision]]
PlanCallback: TypeAlias = Callable[[OrchestrationPlan], Awaitable[None]]
CompletionCallback: TypeAlias = Callable[[], Awaitable[None]]


# ==============================================================================
# Adapters
# ==============================================================================


async def split_lines(chunks: AsyncIterable[str | bytes]) -> AsyncIterator[str]:
    """
    Reassemble lines from arbitrarily split chunks.

    A partial trailing line is held until its newline arrives (or the source
    ends). Bytes are decoded as UTF-8 with replacement, including multi-byte
    characters split across chunks.
    """
    decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
    buffer = ''
    async for chunk in chunks:
        buffer += decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        *lines, buffer = buffer.split('\n')
        for line in lines:
            yield line.removesuffix('\r')
    buffer += decoder.decode(b'', final=True)
    if buffer:
        yield buffer.removesuffix('\r')


class StreamWriterSink:
    """ReplySink writing newline-terminated responses to an asyncio stream (the agent's stdin)."""

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer

    async def send(self, line: str) -> None:
        self._writer.write((line + '\n').encode('utf-8'))
        await self._writer.drain()


# ==============================================================================
# Session Stream
# ==============================================================================


class SessionStream:
    """
    Decodes one agent session and routes its control requests and plans.

    Args:
        lines: Line source (agent stdout, already split)
        replies: Reply channel for control responses (agent stdin)
        permission_handler: Awaited for each control request; without one,
            requests stay pending until respond() is called
        on_plan: Called with the first orchestration plan of the session
        on_complete: Called once when the stream ends for any reason
        logger: Async logger for session-level messages
        first_event_timeout: Seconds to wait for the first line (defaults to
            FIRST_EVENT_TIMEOUT_SECONDS; 0 waits forever)
        strict: Control-protocol strictness (defaults to STRICT_CONTROL_PROTOCOL)
    """

    def __init__(
        self,
        lines: AsyncIterable[str],
        replies: ReplySink,
        *,
        permission_handler: PermissionHandler | None = None,
        on_plan: PlanCallback | None = None,
        on_complete: CompletionCallback | None = None,
        logger: LoggerProtocol | None = None,
        first_event_timeout: float | None = None,
        strict: bool | None = None,
    ) -> None:
        self._lines = lines
        self._control = ControlProtocol(replies, strict=strict)
        self._decoder = EventDecoder()
        self._extractor = PlanExtractor()
        self._permission_handler = permission_handler
        self._on_plan = on_plan
        self._on_complete = on_complete
        self._logger = logger or NullLogger()
        if first_event_timeout is None:
            first_event_timeout = settings.FIRST_EVENT_TIMEOUT_SECONDS
        self._first_event_timeout = first_event_timeout or None

        self._session_id: str | None = None
        self._result: ResultEvent | None = None
        self._started = False
        self._cancelled = False
        self._finished = False
        self._source_closed = False
        self._read_task: asyncio.Future[str] | None = None
        self.done = asyncio.Event()

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def session_id(self) -> str | None:
        """Session id announced by the agent's system/init event."""
        return self._session_id

    @property
    def plan(self) -> OrchestrationPlan | None:
        return self._extractor.plan

    @property
    def result(self) -> ResultEvent | None:
        """Final result event, once received."""
        return self._result

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def control(self) -> ControlProtocol:
        return self._control

    # ==========================================================================
    # Consumption
    # ==========================================================================

    async def events(self) -> AsyncIterator[ProtocolEvent]:
        """
        Yield decoded events in wire order.

        Raises:
            StreamTimeoutError: No first line within first_event_timeout
            AgentAuthenticationError: The agent is not logged in
            RuntimeError: If iterated more than once
        """
        if self._started:
            raise RuntimeError('SessionStream.events() can only be iterated once')
        self._started = True
        self._extractor.begin_turn()

        iterator = aiter(self._lines)
        first = True
        try:
            while not self._cancelled:
                try:
                    line = await self._next_line(iterator, self._first_event_timeout if first else None)
                except StopAsyncIteration:
                    break
                except asyncio.CancelledError:
                    if self._cancelled:
                        break
                    raise
                first = False

                event = self._decoder.decode(line)
                await self._handle(event)
                yield event
        finally:
            await self._close_source()
            await self._finish()

    async def _next_line(self, iterator: AsyncIterator[str], timeout: float | None) -> str:
        self._read_task = asyncio.ensure_future(anext(iterator))
        try:
            if timeout is None:
                return await self._read_task
            try:
                return await asyncio.wait_for(self._read_task, timeout)
            except TimeoutError:
                await self._logger.error(f'No output from agent within {timeout:g}s')
                raise StreamTimeoutError(timeout) from None
        finally:
            self._read_task = None

    async def _handle(self, event: ProtocolEvent) -> None:
        match event:
            case SystemEvent(subtype='init', session_id=session_id) if session_id:
                self._session_id = session_id
                await self._logger.info(f'Session started: {session_id}')
            case AssistantEvent():
                if event.error == AUTHENTICATION_FAILED:
                    raise AgentAuthenticationError()
                for block_text in (text for text in _assistant_texts(event) if text):
                    await self._feed_text(block_text)
            case ResultEvent():
                self._result = event
                if event.text:
                    await self._feed_text(event.text)
            case ControlRequestEvent():
                await self._handle_control_request(event)
            case UnknownEvent(reason=reason) if reason != 'empty':
                await self._logger.warning(f'Skipped undecodable line: {reason}')

    async def _feed_text(self, text: str) -> None:
        separator = MESSAGE_SEPARATOR if self._extractor.text else ''
        plan = self._extractor.feed(separator + text)
        if plan is not None and self._on_plan is not None:
            await self._on_plan(plan)

    async def _handle_control_request(self, event: ControlRequestEvent) -> None:
        pending = await self._control.receive(event)
        if pending is None or self._permission_handler is None:
            return
        decision = await self._permission_handler(pending)
        # The session may have been cancelled while the user was deciding
        if self._control.is_pending(pending.request_id):
            await self._control.resolve(pending.request_id, decision)

    # ==========================================================================
    # Control
    # ==========================================================================

    async def respond(self, request_id: str, decision: PermissionDecision) -> ControlResponse | None:
        """Resolve a pending control request (when no permission_handler is installed)."""
        return await self._control.resolve(request_id, decision)

    async def cancel(self, message: str = 'Session cancelled') -> None:
        """Stop consumption, deny outstanding requests, and close the source. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        await self._logger.info(f'Cancelling session {self._session_id or "(not started)"}')
        await self._control.cancel_all(message)

        if self._read_task is not None:
            # events() closes the source once its pending read unwinds
            self._read_task.cancel()
        elif not self._started or self._finished:
            await self._close_source()
            await self._finish()

    async def _close_source(self) -> None:
        if self._source_closed:
            return
        self._source_closed = True
        aclose = getattr(self._lines, 'aclose', None)
        if aclose is not None:
            await aclose()

    async def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self.done.set()
        if self._on_complete is not None:
            await self._on_complete()


def _assistant_texts(event: AssistantEvent) -> list[str]:
    return [block.text for block in event.message.content if isinstance(block, TextBlock)]
