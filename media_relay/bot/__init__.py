"""
Bot module relaying Twilio phone calls to the OpenAI Realtime API.

This module contains the per-call relay: the connection to OpenAI, the
translation between the two event protocols, the state machine that decides
what each side is sent, and the session runner that ties them together.

Key components:
- realtime_api: connect_realtime() and RealtimeConnection, the WebSocket to the
  OpenAI Realtime API exposed as a stream of JSON events.
- translator: Pure functions mapping Twilio and OpenAI wire events to relay
  events and back.
- relay_state: RelayStateMachine, the per-call lifecycle and tool-call protocol.
- relay_session: RelaySession, which pumps both sockets through one ordered queue.
- twilio_realtime_bridge: TwilioRealtimeBridge, which starts a session per call
  and tracks the active ones.

Usage examples:
```python
from media_relay.bot import bridge

async def media_stream(websocket):
    relay = await bridge.start(websocket)
    await bridge.wait_closed(relay.session_id)
```
"""

from media_relay.bot.realtime_api import RealtimeConnection, connect_realtime
from media_relay.bot.relay_session import RelaySession
from media_relay.bot.relay_state import RelayStateMachine
from media_relay.bot.twilio_realtime_bridge import TwilioRealtimeBridge, bridge

__all__ = [
    "RealtimeConnection",
    "RelaySession",
    "RelayStateMachine",
    "TwilioRealtimeBridge",
    "bridge",
    "connect_realtime",
]
