"""
Shared exceptions for agenthub.

Exception Hierarchy:
    AgentHubError (base)
    ├── InvalidJsonError (malformed JSON handed to JsonValue.from_json)
    ├── ControlProtocolError (misuse of the tool-approval handshake)
    │   ├── UnknownControlRequestError (resolve of an unknown/resolved request id)
    │   └── DuplicateControlRequestError (request id reused while still pending)
    └── SessionStreamError (terminal failures of a running agent stream)
        ├── StreamTimeoutError (no output before the first-event deadline)
        └── AgentAuthenticationError (agent reported authentication_failed)

Line decode failures and plan decode failures are NOT exceptions: they
surface as UnknownEvent and "no plan" respectively.
"""

from __future__ import annotations


class AgentHubError(Exception):
    """Base exception for all agenthub errors."""


class InvalidJsonError(AgentHubError, ValueError):
    """Raised when text handed to the JSON value model is not valid JSON."""


class ControlProtocolError(AgentHubError):
    """Base exception for control-protocol programming errors."""


class UnknownControlRequestError(ControlProtocolError):
    """Raised when resolving a request id that is not pending."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(
            f"Control request '{request_id}' is not pending. "
            f'It was never received or has already been resolved.'
        )


class DuplicateControlRequestError(ControlProtocolError):
    """Raised when a control request arrives with an id that is still pending."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Control request '{request_id}' is already pending.")


class SessionStreamError(AgentHubError):
    """Base exception for terminal agent stream failures."""


class StreamTimeoutError(SessionStreamError):
    """Raised when the agent produces no output before the deadline."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f'No output from agent within {timeout:g}s')


class AgentAuthenticationError(SessionStreamError):
    """Raised when the agent reports that it is not authenticated."""

    def __init__(self) -> None:
        super().__init__('Authentication failed. Run `claude /login` in a terminal to authenticate.')
