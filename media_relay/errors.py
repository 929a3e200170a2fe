"""
Exceptions raised by the relay.

Only ConnectionEstablishmentError and DuplicateToolError ever leave the relay;
the rest are caught where they occur and turned into log lines or failed tool
results so that a single bad event never ends a call.
"""

from typing import Optional


class RelayError(Exception):
    default_detail = "Relay error"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class ConnectionEstablishmentError(RelayError):
    """The OpenAI Realtime connection could not be dialed or upgraded."""

    default_detail = "Failed to connect to OpenAI Realtime API"


class RealtimeConnectionError(RelayError):
    """The OpenAI Realtime connection dropped abnormally after it was open."""

    default_detail = "OpenAI Realtime connection lost"


class MalformedEventError(RelayError):
    """An inbound event body could not be parsed or has the wrong shape."""

    default_detail = "Malformed event payload"


class UnknownToolError(RelayError):
    default_detail = "Unknown tool"


class ToolExecutionError(RelayError):
    default_detail = "Tool execution failed"


class DuplicateToolError(RelayError):
    default_detail = "Tool already registered"
