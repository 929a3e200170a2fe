"""
Call session state for the Twilio to OpenAI Realtime relay.

This module provides the CallSession model which tracks the state owned by a
single phone call: the Twilio stream identifier, the readiness of both
connections, and the tool invocations that are still in flight. One instance
exists per call and is only ever touched by that call's relay state machine.
"""

import uuid
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class RelayState(str, Enum):
    """Lifecycle of one relayed call."""
    INITIALIZING = "initializing"
    AWAITING_AI_SESSION = "awaiting_ai_session"
    ACTIVE = "active"
    TOOL_PENDING = "tool_pending"
    CLOSING = "closing"
    CLOSED = "closed"


class TelephonyConnectionState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class AiConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CONFIGURED = "configured"
    CLOSED = "closed"
    FAILED = "failed"


class PendingToolCall(BaseModel):
    """A function call requested by the model whose result has not been delivered yet."""
    call_id: str
    name: str
    arguments: str = ""
    item_id: Optional[str] = None


class CallSession(BaseModel):
    """
    State of one relayed call.

    Attributes:
        session_id: Identifier created when the Twilio connection is accepted
        stream_sid: Twilio media stream identifier, unset until the start event
        telephony_state: Whether the Twilio connection is still open
        ai_state: Readiness of the OpenAI Realtime connection
        pending_tool_calls: In-flight tool invocations keyed by call id
    """
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    stream_sid: Optional[str] = None
    telephony_state: TelephonyConnectionState = TelephonyConnectionState.OPEN
    ai_state: AiConnectionState = AiConnectionState.CONNECTING
    pending_tool_calls: Dict[str, PendingToolCall] = Field(default_factory=dict)

    def add_pending_tool_call(self, call: PendingToolCall) -> None:
        """Track a tool call until its result has been sent to the model."""
        self.pending_tool_calls[call.call_id] = call

    def pop_pending_tool_call(self, call_id: str) -> Optional[PendingToolCall]:
        """Remove and return a pending tool call, or None if it is unknown."""
        return self.pending_tool_calls.pop(call_id, None)

    @property
    def ai_connection_open(self) -> bool:
        return self.ai_state in (AiConnectionState.OPEN, AiConnectionState.CONFIGURED)
