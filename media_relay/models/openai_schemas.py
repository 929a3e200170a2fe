"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the messages exchanged with the OpenAI Realtime API,
including both the client events the relay sends and the server events it consumes.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from media_relay.config.constants import (
    AUDIO_FORMAT_G711_ULAW,
    DEFAULT_TEMPERATURE,
    DEFAULT_VOICE,
    RESPONSE_MODALITIES,
    SYSTEM_MESSAGE,
    TURN_DETECTION_SERVER_VAD,
)


class FunctionTool(BaseModel):
    """A callable action declared to the model."""
    type: Literal["function"] = "function"
    name: str
    description: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


class TurnDetection(BaseModel):
    """Policy the model uses to decide when the caller has finished speaking."""
    type: str = TURN_DETECTION_SERVER_VAD


class SessionConfig(BaseModel):
    """Session settings sent with every session.update."""
    tools: List[FunctionTool] = Field(default_factory=list)
    turn_detection: TurnDetection = Field(default_factory=TurnDetection)
    input_audio_format: str = AUDIO_FORMAT_G711_ULAW
    output_audio_format: str = AUDIO_FORMAT_G711_ULAW
    voice: str = DEFAULT_VOICE
    instructions: str = SYSTEM_MESSAGE
    modalities: List[str] = Field(default_factory=lambda: list(RESPONSE_MODALITIES))
    temperature: float = DEFAULT_TEMPERATURE


class ResponseConfig(BaseModel):
    """Per-response overrides sent with response.create."""
    tools: List[FunctionTool] = Field(default_factory=list)
    output_audio_format: str = AUDIO_FORMAT_G711_ULAW
    voice: str = DEFAULT_VOICE
    instructions: str
    modalities: List[str] = Field(default_factory=lambda: list(RESPONSE_MODALITIES))
    temperature: float = DEFAULT_TEMPERATURE


# Client events
class SessionUpdateEvent(BaseModel):
    type: Literal["session.update"] = "session.update"
    session: SessionConfig


class ResponseCreateEvent(BaseModel):
    type: Literal["response.create"] = "response.create"
    response: ResponseConfig


class FunctionCallOutputItem(BaseModel):
    """Conversation item carrying a tool result back to the model."""
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str


class ConversationItemCreateEvent(BaseModel):
    type: Literal["conversation.item.create"] = "conversation.item.create"
    previous_item_id: Optional[str] = None
    item: FunctionCallOutputItem


class InputAudioBufferAppendEvent(BaseModel):
    type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"
    audio: str


# Server events
class RealtimeServerEvent(BaseModel):
    """Base model for events received from the Realtime API."""
    type: str
    event_id: Optional[str] = None


class FunctionCallArgumentsDoneEvent(RealtimeServerEvent):
    """The model finished streaming the arguments of a function call."""
    type: Literal["response.function_call_arguments.done"]
    call_id: str
    name: str
    arguments: str = ""
    item_id: Optional[str] = None
    response_id: Optional[str] = None


class AudioDeltaEvent(RealtimeServerEvent):
    """A chunk of synthesized audio, base64-encoded in the output format."""
    type: Literal["response.audio.delta"]
    delta: str
    item_id: Optional[str] = None
    response_id: Optional[str] = None


class ErrorEvent(RealtimeServerEvent):
    """Error reported by the Realtime API."""
    type: Literal["error"]
    error: Dict[str, Any] = Field(default_factory=dict)
