"""
Translation between Twilio Media Streams events and OpenAI Realtime events.

Every function here is pure: inbound raw messages are parsed into RelayEvents,
and the data the state machine decides to send is rendered into the JSON
payloads each side expects. Audio payloads are passed through exactly as
received; they are base64 text on both sides and are never decoded here.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from media_relay.config.constants import (
    LOG_EVENT_TYPES,
    LOGGER_NAME,
    MESSAGE_TYPE_AUDIO_DELTA,
    MESSAGE_TYPE_ERROR,
    MESSAGE_TYPE_FUNCTION_CALL_DONE,
    MESSAGE_TYPE_SESSION_CREATED,
    MESSAGE_TYPE_SESSION_UPDATED,
    TWILIO_EVENT_MEDIA,
    TWILIO_EVENT_START,
)
from media_relay.errors import MalformedEventError
from media_relay.models.openai_schemas import (
    AudioDeltaEvent,
    ConversationItemCreateEvent,
    ErrorEvent,
    FunctionCallArgumentsDoneEvent,
    FunctionCallOutputItem,
    InputAudioBufferAppendEvent,
    ResponseConfig,
    ResponseCreateEvent,
    SessionConfig,
    SessionUpdateEvent,
)
from media_relay.models.relay_events import (
    AiAudioDelta,
    AiFunctionCallDone,
    AiSessionCreated,
    AiSessionUpdated,
    RelayEvent,
    TelephonyMedia,
    TelephonyStreamStarted,
)
from media_relay.models.twilio_schemas import (
    MediaMessage,
    OutboundMedia,
    OutboundMediaMessage,
    StartMessage,
)

logger = logging.getLogger(LOGGER_NAME)

RawMessage = Union[str, bytes]
EventParser = Callable[[Dict[str, Any]], Optional[RelayEvent]]


def _load(raw: RawMessage) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedEventError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedEventError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _validate(model: type, data: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedEventError(f"Invalid {model.__name__}: {e}") from e


# Twilio -> relay
def _parse_start(data: Dict[str, Any]) -> RelayEvent:
    message = _validate(StartMessage, data)
    return TelephonyStreamStarted(stream_sid=message.start.streamSid)


def _parse_media(data: Dict[str, Any]) -> RelayEvent:
    message = _validate(MediaMessage, data)
    return TelephonyMedia(payload=message.media.payload)


TELEPHONY_PARSERS: Dict[str, EventParser] = {
    TWILIO_EVENT_START: _parse_start,
    TWILIO_EVENT_MEDIA: _parse_media,
}


def parse_telephony_message(raw: RawMessage) -> Optional[RelayEvent]:
    """
    Parse a message received on the Twilio media stream.

    Returns:
        The corresponding RelayEvent, or None for event kinds the relay ignores

    Raises:
        MalformedEventError: If the message is not JSON or has the wrong shape
    """
    data = _load(raw)
    kind = data.get("event")
    parser = TELEPHONY_PARSERS.get(kind)
    if parser is None:
        logger.info(f"Received non-media event: {kind}")
        return None
    return parser(data)


# OpenAI -> relay
def _parse_session_created(data: Dict[str, Any]) -> RelayEvent:
    return AiSessionCreated()


def _parse_session_updated(data: Dict[str, Any]) -> RelayEvent:
    logger.info("Session updated successfully")
    return AiSessionUpdated()


def _parse_function_call_done(data: Dict[str, Any]) -> RelayEvent:
    message = _validate(FunctionCallArgumentsDoneEvent, data)
    return AiFunctionCallDone(
        call_id=message.call_id,
        name=message.name,
        arguments=message.arguments,
        item_id=message.item_id,
    )


def _parse_audio_delta(data: Dict[str, Any]) -> Optional[RelayEvent]:
    if not data.get("delta"):
        return None
    message = _validate(AudioDeltaEvent, data)
    return AiAudioDelta(delta=message.delta)


def _parse_error(data: Dict[str, Any]) -> None:
    message = _validate(ErrorEvent, data)
    logger.error(f"Received error from OpenAI: {message.error}")
    return None


REALTIME_PARSERS: Dict[str, EventParser] = {
    MESSAGE_TYPE_SESSION_CREATED: _parse_session_created,
    MESSAGE_TYPE_SESSION_UPDATED: _parse_session_updated,
    MESSAGE_TYPE_FUNCTION_CALL_DONE: _parse_function_call_done,
    MESSAGE_TYPE_AUDIO_DELTA: _parse_audio_delta,
    MESSAGE_TYPE_ERROR: _parse_error,
}


def parse_realtime_message(raw: RawMessage) -> Optional[RelayEvent]:
    """
    Parse a server event received from the OpenAI Realtime API.

    Returns:
        The corresponding RelayEvent, or None for event types the relay does not act on

    Raises:
        MalformedEventError: If the message is not JSON or has the wrong shape
    """
    data = _load(raw)
    event_type = data.get("type")
    if event_type in LOG_EVENT_TYPES:
        logger.info(f"Received event: {event_type}")
    parser = REALTIME_PARSERS.get(event_type)
    if parser is None:
        return None
    return parser(data)


# relay -> wire
def _dump(event: BaseModel) -> Dict[str, Any]:
    return event.model_dump(exclude_none=True)


def telephony_media_event(stream_sid: str, payload: str) -> Dict[str, Any]:
    return _dump(OutboundMediaMessage(streamSid=stream_sid, media=OutboundMedia(payload=payload)))


def input_audio_append_event(payload: str) -> Dict[str, Any]:
    return _dump(InputAudioBufferAppendEvent(audio=payload))


def session_update_event(session_config: SessionConfig) -> Dict[str, Any]:
    return _dump(SessionUpdateEvent(session=session_config))


def response_create_event(session_config: SessionConfig, instructions: str) -> Dict[str, Any]:
    """Build a response.create that reuses the session's voice, tools and audio format."""
    response = ResponseConfig(
        tools=session_config.tools,
        output_audio_format=session_config.output_audio_format,
        voice=session_config.voice,
        instructions=instructions,
        modalities=session_config.modalities,
        temperature=session_config.temperature,
    )
    return _dump(ResponseCreateEvent(response=response))


def function_call_output_event(call_id: str, item_id: Optional[str], output: str) -> Dict[str, Any]:
    return _dump(
        ConversationItemCreateEvent(
            previous_item_id=item_id,
            item=FunctionCallOutputItem(call_id=call_id, output=output),
        )
    )
