"""
Models module for data structures and state in the media relay.

This module provides the schemas of both wire protocols and the state kept for
each call.

Key components:
- twilio_schemas: Pydantic models for Twilio Media Streams messages.
- openai_schemas: Pydantic models for OpenAI Realtime client and server events.
- call_session: CallSession and the connection/lifecycle state enums.
- relay_events: Events consumed and commands produced by the relay state machine.

Usage examples:
```python
from media_relay.models.twilio_schemas import StartMessage

message = StartMessage(event="start", start={"streamSid": "MZ123"})
print(message.start.streamSid)
```
"""

from media_relay.models.call_session import (
    AiConnectionState,
    CallSession,
    PendingToolCall,
    RelayState,
    TelephonyConnectionState,
)
from media_relay.models.openai_schemas import (
    ConversationItemCreateEvent,
    FunctionCallArgumentsDoneEvent,
    FunctionTool,
    ResponseCreateEvent,
    SessionConfig,
    SessionUpdateEvent,
)
from media_relay.models.twilio_schemas import (
    MediaMessage,
    OutboundMediaMessage,
    StartMessage,
)
