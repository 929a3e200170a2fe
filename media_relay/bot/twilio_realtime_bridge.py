"""
Bridge module for connecting Twilio Media Streams with the OpenAI Realtime API.

This module owns every active relay session in the process. For each inbound
media stream it dials the OpenAI Realtime API, accepts the Twilio WebSocket and
starts a RelaySession that pumps audio both ways and runs tool calls.
"""

import asyncio
import logging
import os
from typing import Awaitable, Callable, Dict

from fastapi import WebSocket

from media_relay.bot.realtime_api import RealtimeConnection, connect_realtime
from media_relay.bot.relay_session import RelaySession
from media_relay.config.constants import (
    CONFIG_SETTLE_DELAY,
    DEFAULT_TEMPERATURE,
    DEFAULT_VOICE,
    LOGGER_NAME,
    SYSTEM_MESSAGE,
)
from media_relay.errors import ConnectionEstablishmentError
from media_relay.models.call_session import CallSession
from media_relay.models.openai_schemas import SessionConfig
from media_relay.models.relay_events import ShutdownRequested
from media_relay.tools import build_default_registry
from media_relay.tools.registry import ToolRegistry

logger = logging.getLogger(LOGGER_NAME)

OPENAI_REALTIME_VOICE = os.getenv("OPENAI_REALTIME_VOICE", DEFAULT_VOICE)
OPENAI_REALTIME_TEMPERATURE = float(os.getenv("OPENAI_REALTIME_TEMPERATURE", str(DEFAULT_TEMPERATURE)))

SHUTDOWN_TIMEOUT = 5  # seconds

ConnectionFactory = Callable[[], Awaitable[RealtimeConnection]]


def build_session_config(registry: ToolRegistry) -> SessionConfig:
    """Session settings announced to the Realtime API, including every registered tool."""
    return SessionConfig(
        tools=registry.declarations(),
        voice=OPENAI_REALTIME_VOICE,
        instructions=SYSTEM_MESSAGE,
        temperature=OPENAI_REALTIME_TEMPERATURE,
    )


class TwilioRealtimeBridge:
    """
    Bridge between Twilio Media Streams and the OpenAI Realtime API.

    This class handles:
    - Establishing one OpenAI Realtime connection per call
    - Running the per-call relay session until either side hangs up
    - Tracking how many calls are active
    """

    def __init__(
        self,
        registry: ToolRegistry,
        connection_factory: ConnectionFactory = connect_realtime,
        settle_delay: float = CONFIG_SETTLE_DELAY,
    ):
        self.registry = registry
        self.connection_factory = connection_factory
        self.settle_delay = settle_delay
        self.session_config = build_session_config(registry)
        self.sessions: Dict[str, RelaySession] = {}
        self.session_tasks: Dict[str, asyncio.Task] = {}

    @property
    def active_connections(self) -> int:
        """Number of calls currently relayed; reported by the health check only."""
        return len(self.sessions)

    async def start(self, websocket: WebSocket) -> RelaySession:
        """
        Start relaying a call arriving on an un-accepted Twilio WebSocket.

        The OpenAI connection is established first. If that fails the Twilio
        WebSocket is closed without being accepted, so the caller receives a
        plain HTTP rejection instead of an upgrade.

        Args:
            websocket: The Twilio media stream WebSocket, not yet accepted

        Returns:
            RelaySession: The running session

        Raises:
            ConnectionEstablishmentError: If the OpenAI Realtime connection cannot be opened
        """
        session = CallSession()
        try:
            ai_connection = await self.connection_factory()
        except ConnectionEstablishmentError:
            logger.error(f"Rejecting media stream for session {session.session_id}")
            await websocket.close(code=1011)
            raise

        await websocket.accept()
        relay = RelaySession(
            websocket,
            ai_connection,
            self.registry,
            self.session_config,
            settle_delay=self.settle_delay,
            session=session,
        )
        self.sessions[relay.session_id] = relay
        self.session_tasks[relay.session_id] = asyncio.create_task(self._run(relay))
        logger.info(f"Started relay session {relay.session_id} ({self.active_connections} active)")
        return relay

    async def _run(self, relay: RelaySession) -> None:
        try:
            await relay.run()
        except Exception as e:
            logger.error(f"Error relaying call {relay.session_id}: {e}", exc_info=True)
            raise
        finally:
            self.sessions.pop(relay.session_id, None)
            self.session_tasks.pop(relay.session_id, None)
            logger.info(f"Relay session {relay.session_id} ended ({self.active_connections} active)")

    async def wait_closed(self, session_id: str) -> None:
        """Wait until the given session has finished; returns at once if it is unknown."""
        task = self.session_tasks.get(session_id)
        if task is not None:
            await task

    async def close_session(self, session_id: str, timeout: float = SHUTDOWN_TIMEOUT) -> None:
        """
        End a session through its state machine, closing both connections.

        Tool invocations still running are cancelled. If the session does not
        finish within the timeout its pump is cancelled.

        Args:
            session_id: The relay session identifier
            timeout: Seconds to wait for the session to finish
        """
        relay = self.sessions.get(session_id)
        task = self.session_tasks.get(session_id)
        if relay is None or task is None:
            return
        await relay.events.put(ShutdownRequested())
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Relay session {session_id} did not close within {timeout}s, cancelled")
        except Exception as e:
            logger.warning(f"Relay session {session_id} ended with an error during shutdown: {e}")
        for tool_task in list(relay.tool_tasks):
            tool_task.cancel()
        logger.info(f"Closed relay session: {session_id}")

    async def close_all(self) -> None:
        """Close every active session, used when the server shuts down."""
        for session_id in list(self.session_tasks):
            await self.close_session(session_id)


# Create a singleton instance of the bridge
bridge = TwilioRealtimeBridge(build_default_registry())
