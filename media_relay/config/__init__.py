"""
Configuration module for the media relay.

This module provides centralized configuration for the application: protocol
constants shared by the Twilio and OpenAI sides, the fixed prompts, and the
logging setup.

Key components:
- constants: Event type names, audio format, default model/voice settings and
  the diagnostic allow-list of Realtime events.
- logging_config: Console and rotating-file logging under one named logger.

Usage examples:
```python
from media_relay.config.constants import LOGGER_NAME, DEFAULT_REALTIME_MODEL
from media_relay.config.logging_config import configure_logging

logger = configure_logging()
logger.info("Application started")
```
"""
