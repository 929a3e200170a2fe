"""
WebSocket connection manager for Twilio Media Streams.

This module hands each inbound media stream WebSocket to the relay bridge and
keeps the endpoint open until the relay session has finished. The bridge
accepts the WebSocket only once the OpenAI Realtime connection is up; when it
is not, the WebSocket is closed before acceptance and the endpoint returns.
"""

import logging
from typing import Optional

from fastapi import WebSocket

from media_relay.bot.twilio_realtime_bridge import TwilioRealtimeBridge
from media_relay.bot.twilio_realtime_bridge import bridge as default_bridge
from media_relay.config.constants import LOGGER_NAME
from media_relay.errors import ConnectionEstablishmentError

logger = logging.getLogger(LOGGER_NAME)


class WebSocketManager:
    """Routes Twilio media stream connections into relay sessions.

    Args:
        bridge: The bridge that owns relay sessions, the process-wide one by default
    """

    def __init__(self, bridge: Optional[TwilioRealtimeBridge] = None):
        self.bridge = bridge or default_bridge

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a media stream WebSocket throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection, not yet accepted

        This method:
        1. Starts a relay session, which dials OpenAI and accepts the WebSocket
        2. Waits until either side of the call disconnects
        """
        logger.info("Client connected to media stream")
        try:
            relay = await self.bridge.start(websocket)
        except ConnectionEstablishmentError as e:
            logger.error(f"Could not start relay session: {e}")
            return

        await self.bridge.wait_closed(relay.session_id)
        logger.info(f"Media stream closed for session {relay.session_id}")
