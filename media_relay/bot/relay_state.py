"""
State machine for one relayed call.

The machine consumes RelayEvents one at a time and answers each with the list
of RelayCommands the session runner must carry out. It performs no I/O, so
every transition is atomic and can be exercised without sockets.

Lifecycle::

    INITIALIZING -> AWAITING_AI_SESSION -> ACTIVE <-> TOOL_PENDING -> CLOSING -> CLOSED

Handshake: once the AI connection is open the runner waits a short settling
delay and delivers ConfigurationDue, which sends the first session.update.
When the Realtime API answers with session.created the configuration is sent
again and the greeting response is requested. It has not been confirmed that
the protocol requires the repeat send. session.created is not held back by the
settling delay, so when it arrives first the initial session.update goes out
before the delay has elapsed.
"""

import logging
from typing import Callable, Dict, List, Optional, Set

from media_relay.config.constants import GREETING_INSTRUCTIONS, LOGGER_NAME, RESUME_INSTRUCTIONS
from media_relay.models.call_session import (
    AiConnectionState,
    CallSession,
    PendingToolCall,
    RelayState,
    TelephonyConnectionState,
)
from media_relay.models.relay_events import (
    AiAudioDelta,
    AiConnectionClosed,
    AiConnectionOpened,
    AiFunctionCallDone,
    AiSessionCreated,
    AiSessionUpdated,
    CloseAiConnection,
    CloseTelephonyConnection,
    ConfigurationDue,
    ForwardAudioToAi,
    ForwardAudioToTelephony,
    InvokeTool,
    RelayCommand,
    RelayEvent,
    SendResponseCreate,
    SendSessionConfiguration,
    SendToolResult,
    ShutdownRequested,
    TelephonyClosed,
    TelephonyMedia,
    TelephonyStreamStarted,
    ToolCompleted,
)

logger = logging.getLogger(LOGGER_NAME)

Commands = List[RelayCommand]


class RelayStateMachine:
    """
    Decides what each side of a call is sent in response to each event.

    Args:
        session: The call's state; a fresh CallSession when omitted
        greeting_instructions: Instructions for the first response after session.created
        resume_instructions: Instructions for the response that follows a tool result
    """

    def __init__(
        self,
        session: Optional[CallSession] = None,
        greeting_instructions: str = GREETING_INSTRUCTIONS,
        resume_instructions: str = RESUME_INSTRUCTIONS,
    ):
        self.session = session or CallSession()
        self.state = RelayState.INITIALIZING
        self.greeting_instructions = greeting_instructions
        self.resume_instructions = resume_instructions
        self._dispatched_call_ids: Set[str] = set()
        self._dropped_audio_frames = 0

        self.handlers: Dict[type, Callable[[RelayEvent], Commands]] = {
            AiConnectionOpened: self._on_ai_connection_opened,
            ConfigurationDue: self._on_configuration_due,
            AiSessionCreated: self._on_ai_session_created,
            AiSessionUpdated: self._on_ai_session_updated,
            AiAudioDelta: self._on_ai_audio_delta,
            AiFunctionCallDone: self._on_function_call_done,
            ToolCompleted: self._on_tool_completed,
            TelephonyStreamStarted: self._on_stream_started,
            TelephonyMedia: self._on_telephony_media,
            TelephonyClosed: self._on_telephony_closed,
            AiConnectionClosed: self._on_ai_connection_closed,
            ShutdownRequested: self._on_shutdown_requested,
        }

    @property
    def closed(self) -> bool:
        return self.state == RelayState.CLOSED

    @property
    def dropped_audio_frames(self) -> int:
        """AI audio frames discarded because no stream_sid was known yet."""
        return self._dropped_audio_frames

    def handle(self, event: RelayEvent) -> Commands:
        """
        Apply one event and return the commands it produces, in send order.

        Nothing is ever returned once the machine is CLOSED.
        """
        if self.closed:
            logger.debug(f"Session {self.session.session_id} closed, ignoring {type(event).__name__}")
            return []
        handler = self.handlers.get(type(event))
        if handler is None:
            logger.warning(f"No handler for relay event: {type(event).__name__}")
            return []
        return handler(event)

    def _transition(self, state: RelayState) -> None:
        if state != self.state:
            logger.debug(f"Session {self.session.session_id}: {self.state.value} -> {state.value}")
            self.state = state

    # Handshake
    def _on_ai_connection_opened(self, event: AiConnectionOpened) -> Commands:
        if self.state != RelayState.INITIALIZING:
            return []
        self.session.ai_state = AiConnectionState.OPEN
        self._transition(RelayState.AWAITING_AI_SESSION)
        return []

    def _on_configuration_due(self, event: ConfigurationDue) -> Commands:
        if not self.session.ai_connection_open:
            return []
        self.session.ai_state = AiConnectionState.CONFIGURED
        return [SendSessionConfiguration()]

    def _on_ai_session_created(self, event: AiSessionCreated) -> Commands:
        if not self.session.ai_connection_open:
            return []
        self.session.ai_state = AiConnectionState.CONFIGURED
        if self.state == RelayState.AWAITING_AI_SESSION:
            self._transition(RelayState.ACTIVE)
        return [
            SendSessionConfiguration(),
            SendResponseCreate(instructions=self.greeting_instructions),
        ]

    def _on_ai_session_updated(self, event: AiSessionUpdated) -> Commands:
        return []

    # Audio
    def _on_stream_started(self, event: TelephonyStreamStarted) -> Commands:
        logger.info(f"Incoming stream has started: {event.stream_sid}")
        self.session.stream_sid = event.stream_sid
        return []

    def _on_telephony_media(self, event: TelephonyMedia) -> Commands:
        if self.session.ai_state != AiConnectionState.CONFIGURED:
            return []
        return [ForwardAudioToAi(payload=event.payload)]

    def _on_ai_audio_delta(self, event: AiAudioDelta) -> Commands:
        if self.session.stream_sid is None:
            self._dropped_audio_frames += 1
            logger.debug("Dropping audio delta received before the stream started")
            return []
        return [ForwardAudioToTelephony(stream_sid=self.session.stream_sid, payload=event.delta)]

    # Tools
    def _on_function_call_done(self, event: AiFunctionCallDone) -> Commands:
        if event.call_id in self._dispatched_call_ids:
            logger.warning(f"Ignoring duplicate function call: {event.call_id}")
            return []
        self._dispatched_call_ids.add(event.call_id)
        self.session.add_pending_tool_call(
            PendingToolCall(
                call_id=event.call_id,
                name=event.name,
                arguments=event.arguments,
                item_id=event.item_id,
            )
        )
        logger.info(f"Function call requested: {event.name} ({event.call_id})")
        if self.state == RelayState.ACTIVE:
            self._transition(RelayState.TOOL_PENDING)
        return [InvokeTool(call_id=event.call_id, name=event.name, arguments=event.arguments)]

    def _on_tool_completed(self, event: ToolCompleted) -> Commands:
        call = self.session.pop_pending_tool_call(event.call_id)
        if call is None:
            logger.warning(f"Result for unknown function call discarded: {event.call_id}")
            return []
        if self.state == RelayState.TOOL_PENDING and not self.session.pending_tool_calls:
            self._transition(RelayState.ACTIVE)
        return [
            SendToolResult(
                call_id=call.call_id,
                item_id=call.item_id,
                output=event.result.to_output(),
                resume_instructions=self.resume_instructions,
            )
        ]

    # Teardown
    def _on_telephony_closed(self, event: TelephonyClosed) -> Commands:
        logger.info("Client disconnected.")
        self.session.telephony_state = TelephonyConnectionState.CLOSED
        return self._close()

    def _on_ai_connection_closed(self, event: AiConnectionClosed) -> Commands:
        logger.info("Disconnected from the OpenAI Realtime API")
        self.session.ai_state = AiConnectionState.FAILED if event.failed else AiConnectionState.CLOSED
        return self._close()

    def _on_shutdown_requested(self, event: ShutdownRequested) -> Commands:
        logger.info(f"Shutting down relay session {self.session.session_id}")
        return self._close()

    def _close(self) -> Commands:
        self._transition(RelayState.CLOSING)
        commands: Commands = []
        if self.session.ai_connection_open:
            commands.append(CloseAiConnection())
            self.session.ai_state = AiConnectionState.CLOSED
        if self.session.telephony_state == TelephonyConnectionState.OPEN:
            commands.append(CloseTelephonyConnection())
            self.session.telephony_state = TelephonyConnectionState.CLOSED
        if self.session.pending_tool_calls:
            logger.info(
                f"Discarding {len(self.session.pending_tool_calls)} pending tool call(s) "
                f"for session {self.session.session_id}"
            )
            self.session.pending_tool_calls.clear()
        self._transition(RelayState.CLOSED)
        return commands
