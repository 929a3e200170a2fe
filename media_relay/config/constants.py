"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol names, default model settings and the
fixed prompts sent to the OpenAI Realtime API.
"""

# Logger name used throughout the application
LOGGER_NAME = "media_relay"

# Default OpenAI model and voice settings for the Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-10-01"
DEFAULT_VOICE = "alloy"
DEFAULT_TEMPERATURE = 0.8
REALTIME_API_URL = "wss://api.openai.com/v1/realtime"

# Twilio Media Streams carry 8kHz mu-law, which the Realtime API accepts as-is
AUDIO_FORMAT_G711_ULAW = "g711_ulaw"
RESPONSE_MODALITIES = ["text", "audio"]
TURN_DETECTION_SERVER_VAD = "server_vad"

# Wait after the AI socket opens before the first session.update
CONFIG_SETTLE_DELAY = 0.25  # seconds

SYSTEM_MESSAGE = (
    "You are a helpful and bubbly AI assistant who loves to chat about anything "
    "the user is interested about and is prepared to offer them facts. You have a "
    "penchant for dad jokes, owl jokes, and rickrolling – subtly. Always stay "
    "positive, but work in a joke when appropriate."
)
GREETING_INSTRUCTIONS = 'Say: "Hi. How can I help you?" using an English accent'
RESUME_INSTRUCTIONS = "Respond to the user"

# Twilio Media Streams event names
TWILIO_EVENT_START = "start"
TWILIO_EVENT_MEDIA = "media"

# OpenAI Realtime server events
MESSAGE_TYPE_SESSION_CREATED = "session.created"
MESSAGE_TYPE_SESSION_UPDATED = "session.updated"
MESSAGE_TYPE_FUNCTION_CALL_DONE = "response.function_call_arguments.done"
MESSAGE_TYPE_AUDIO_DELTA = "response.audio.delta"
MESSAGE_TYPE_ERROR = "error"

# Server events worth a log line; everything else passes through silently
LOG_EVENT_TYPES = [
    "response.content.done",
    "rate_limits.updated",
    "response.done",
    "input_audio_buffer.committed",
    "input_audio_buffer.speech_stopped",
    "input_audio_buffer.speech_started",
    "session.created",
]
