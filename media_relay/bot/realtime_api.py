"""
Connection to the OpenAI Realtime API over WebSocket.

connect_realtime() dials the endpoint and performs the WebSocket upgrade; the
returned RealtimeConnection exposes the socket as a duplex stream of JSON
events. A dropped connection is not retried: losing the AI side ends the call.
"""

import asyncio
import json
import logging
import os
import socket
import time
from typing import Any, AsyncIterator, Dict, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake

from media_relay.config.constants import DEFAULT_REALTIME_MODEL, LOGGER_NAME, REALTIME_API_URL
from media_relay.errors import ConnectionEstablishmentError, RealtimeConnectionError

logger = logging.getLogger(LOGGER_NAME)

# Get OpenAI settings from environment variables
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_REALTIME_MODEL = os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL)

CONNECTION_TIMEOUT = 30  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32  # Small queue to prevent buffering
WS_PING_INTERVAL = 5  # 5 seconds between pings
WS_PING_TIMEOUT = 10


class RealtimeConnection:
    """
    An open WebSocket to the OpenAI Realtime API carrying JSON events.
    """
    def __init__(self, ws, model: str):
        self.ws = ws
        self.model = model
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_event(self, event: Dict[str, Any]) -> None:
        """
        Serialize and send one client event.

        Raises:
            RealtimeConnectionError: If the connection is already closed
        """
        if self._closed:
            raise RealtimeConnectionError("Cannot send - connection is closed")
        try:
            await self.ws.send(json.dumps(event))
        except ConnectionClosed as e:
            self._closed = True
            raise RealtimeConnectionError(f"Connection closed while sending: {e}") from e

    async def messages(self) -> AsyncIterator[Union[str, bytes]]:
        """
        Yield raw server messages until the connection closes.

        Ends normally on a clean close.

        Raises:
            RealtimeConnectionError: If the connection drops abnormally
        """
        try:
            async for message in self.ws:
                yield message
        except ConnectionClosedError as e:
            logger.warning(f"OpenAI Realtime connection closed unexpectedly: {e}")
            raise RealtimeConnectionError(str(e)) from e
        finally:
            self._closed = True

    async def close(self, code: int = 1000, reason: str = "Ended") -> None:
        """Close the WebSocket gracefully; closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        logger.info("Closing OpenAI Realtime connection")
        await self.ws.close(code, reason)


def _optimize_socket(ws) -> None:
    """Disable Nagle's algorithm on the underlying TCP socket when it is reachable."""
    transport = getattr(ws, "transport", None)
    sock = transport.get_extra_info("socket") if transport is not None else None
    if sock is None:
        return
    try:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        logger.debug("Optimized OpenAI socket: TCP_NODELAY enabled for low latency")
    except OSError as e:
        logger.warning(f"Could not optimize OpenAI socket: {e}")


async def connect_realtime(
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    timeout: float = CONNECTION_TIMEOUT,
) -> RealtimeConnection:
    """
    Dial the OpenAI Realtime endpoint and complete the WebSocket upgrade.

    Args:
        api_key: OpenAI API key, defaults to OPENAI_API_KEY
        model: Realtime model name, defaults to OPENAI_REALTIME_MODEL
        timeout: Seconds allowed for the dial and upgrade

    Returns:
        RealtimeConnection: The open connection

    Raises:
        ConnectionEstablishmentError: If no API key is configured or the dial/upgrade fails
    """
    api_key = api_key or OPENAI_API_KEY
    model = model or OPENAI_REALTIME_MODEL
    if not api_key:
        logger.error("OPENAI_API_KEY environment variable not set")
        raise ConnectionEstablishmentError("OPENAI_API_KEY environment variable not set")

    url = f"{REALTIME_API_URL}?model={model}"
    headers = {
        "Authorization": f"Bearer {api_key}",
        "OpenAI-Beta": "realtime=v1",
    }

    logger.info(f"Connecting to OpenAI Realtime API with model: {model}")
    connection_start = time.time()
    try:
        ws = await asyncio.wait_for(
            websockets.connect(
                url,
                max_size=WS_MAX_SIZE,
                max_queue=WS_MAX_QUEUE,
                ping_interval=WS_PING_INTERVAL,
                ping_timeout=WS_PING_TIMEOUT,
                compression=None,  # Disable compression for lower latency
                additional_headers=headers,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        logger.error(f"Timeout while connecting to OpenAI Realtime API (after {timeout}s)")
        raise ConnectionEstablishmentError(f"Timed out after {timeout}s") from e
    except (InvalidHandshake, OSError) as e:
        logger.error(f"Failed to connect to OpenAI Realtime API: {e}")
        raise ConnectionEstablishmentError(f"Failed to connect to OpenAI WebSocket: {e}") from e

    logger.debug(f"WebSocket connection established in {time.time() - connection_start:.2f} seconds")
    _optimize_socket(ws)
    logger.info("Connected to the OpenAI Realtime API")
    return RealtimeConnection(ws, model)
