"""
Pydantic models for Twilio Media Streams message schemas.

This module defines structured data models for the messages exchanged over the
Twilio Media Streams WebSocket, providing type validation and documentation.
Audio payloads are base64 mu-law and are carried as opaque strings: they are
never decoded or re-encoded here.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# Base Models
class TwilioBaseMessage(BaseModel):
    """Base model for all Twilio Media Streams messages."""

    event: str = Field(..., description="Message event identifier")
    streamSid: Optional[str] = Field(None, description="Media stream identifier")


# Inbound Messages
class StartMetadata(BaseModel):
    """Metadata carried by the start message."""

    streamSid: str = Field(..., description="Unique identifier of the media stream")
    callSid: Optional[str] = Field(None, description="Twilio Call SID")
    accountSid: Optional[str] = None
    tracks: List[str] = Field(default_factory=list)
    customParameters: Dict[str, str] = Field(default_factory=dict)


class StartMessage(TwilioBaseMessage):
    """Model for the start message sent once the stream is set up."""

    event: Literal["start"]
    start: StartMetadata


class MediaPayload(BaseModel):
    """Audio carried by a media message."""

    payload: str = Field(..., description="Base64-encoded audio data")
    track: Optional[str] = None
    chunk: Optional[str] = None
    timestamp: Optional[str] = None


class MediaMessage(TwilioBaseMessage):
    """Model for an inbound media message with caller audio."""

    event: Literal["media"]
    media: MediaPayload


# Outbound Messages
class OutboundMedia(BaseModel):
    payload: str = Field(..., description="Base64-encoded audio data")


class OutboundMediaMessage(BaseModel):
    """Model for a media message sent back to Twilio for playback."""

    event: Literal["media"] = "media"
    streamSid: str = Field(..., description="Stream the audio belongs to")
    media: OutboundMedia
