"""
Runtime for one relayed call.

A RelaySession owns the Twilio WebSocket, the OpenAI Realtime connection and
the call's RelayStateMachine. Three producers feed a single asyncio.Queue:

- the Twilio reader, which parses media stream messages,
- the Realtime reader, which parses server events,
- the settle timer, which signals when the first configuration may be sent.

One consumer loop takes events off the queue in order, hands them to the state
machine and executes the commands it returns before taking the next event, so
no two transitions ever interleave. Tool invocations run as separate tasks and
report back through the same queue; a result that arrives after the call has
closed is dropped.
"""

import asyncio
import json
import logging
from typing import List, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from media_relay.bot.realtime_api import RealtimeConnection
from media_relay.bot.relay_state import RelayStateMachine
from media_relay.bot.translator import (
    function_call_output_event,
    input_audio_append_event,
    parse_realtime_message,
    parse_telephony_message,
    response_create_event,
    session_update_event,
    telephony_media_event,
)
from media_relay.config.constants import CONFIG_SETTLE_DELAY, LOGGER_NAME
from media_relay.errors import MalformedEventError, RealtimeConnectionError
from media_relay.models.call_session import CallSession
from media_relay.models.openai_schemas import SessionConfig
from media_relay.models.relay_events import (
    AiConnectionClosed,
    AiConnectionOpened,
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
    TelephonyClosed,
    ToolCompleted,
)
from media_relay.tools.registry import ToolRegistry

logger = logging.getLogger(LOGGER_NAME)


class RelaySession:
    """
    Pumps events between a Twilio media stream and an OpenAI Realtime connection.

    Args:
        websocket: The accepted Twilio media stream WebSocket
        ai_connection: The open OpenAI Realtime connection
        registry: Tools the model may call
        session_config: Settings sent with every session.update
        settle_delay: Seconds to wait after the AI connection opened before configuring it
        session: Call state, a fresh CallSession when omitted
    """

    def __init__(
        self,
        websocket: WebSocket,
        ai_connection: RealtimeConnection,
        registry: ToolRegistry,
        session_config: SessionConfig,
        settle_delay: float = CONFIG_SETTLE_DELAY,
        session: Optional[CallSession] = None,
    ):
        self.websocket = websocket
        self.ai_connection = ai_connection
        self.registry = registry
        self.session_config = session_config
        self.settle_delay = settle_delay
        self.machine = RelayStateMachine(session)
        self.events: asyncio.Queue = asyncio.Queue()
        self.tool_tasks: Set[asyncio.Task] = set()
        self._readers: List[asyncio.Task] = []

    @property
    def session_id(self) -> str:
        return self.machine.session.session_id

    @property
    def closed(self) -> bool:
        return self.machine.closed

    async def run(self) -> None:
        """Relay the call until either side disconnects."""
        logger.info(f"Relay session started: {self.session_id}")
        await self._apply(AiConnectionOpened())
        self._readers = [
            asyncio.create_task(self._read_telephony()),
            asyncio.create_task(self._read_realtime()),
            asyncio.create_task(self._settle()),
        ]
        try:
            while not self.machine.closed:
                event = await self.events.get()
                await self._apply(event)
        finally:
            for task in self._readers:
                task.cancel()
            await asyncio.gather(*self._readers, return_exceptions=True)
            logger.info(f"Relay session closed: {self.session_id}")

    async def _apply(self, event: RelayEvent) -> None:
        for command in self.machine.handle(event):
            await self._execute(command)

    # Producers
    async def _settle(self) -> None:
        await asyncio.sleep(self.settle_delay)
        await self.events.put(ConfigurationDue())

    async def _read_telephony(self) -> None:
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
                raw = message.get("text")
                if raw is None:
                    logger.error("Error parsing message: binary frame on media stream dropped")
                    continue
                try:
                    event = parse_telephony_message(raw)
                except MalformedEventError as e:
                    logger.error(f"Error parsing message: {e}")
                    continue
                if event is not None:
                    await self.events.put(event)
        except WebSocketDisconnect:
            logger.debug(f"Twilio media stream disconnected: {self.session_id}")
        except RuntimeError as e:
            logger.error(f"Error in Twilio media stream: {e}")
        finally:
            await self.events.put(TelephonyClosed())

    async def _read_realtime(self) -> None:
        failed = False
        try:
            async for raw in self.ai_connection.messages():
                try:
                    event = parse_realtime_message(raw)
                except MalformedEventError as e:
                    logger.error(f"Error processing OpenAI message: {e}")
                    continue
                if event is not None:
                    await self.events.put(event)
        except RealtimeConnectionError as e:
            logger.error(f"Error in the OpenAI WebSocket: {e}")
            failed = True
        finally:
            await self.events.put(AiConnectionClosed(failed=failed))

    async def _run_tool(self, command: InvokeTool) -> None:
        result = await self.registry.invoke(command.name, command.arguments)
        if self.machine.closed:
            logger.info(f"Call closed before tool {command.name} finished, result discarded")
            return
        await self.events.put(ToolCompleted(call_id=command.call_id, result=result))

    # Command execution
    async def _execute(self, command: RelayCommand) -> None:
        try:
            if isinstance(command, ForwardAudioToAi):
                await self.ai_connection.send_event(input_audio_append_event(command.payload))
            elif isinstance(command, ForwardAudioToTelephony):
                await self.websocket.send_text(
                    json.dumps(telephony_media_event(command.stream_sid, command.payload))
                )
            elif isinstance(command, SendSessionConfiguration):
                logger.info("Sending session update")
                await self.ai_connection.send_event(session_update_event(self.session_config))
            elif isinstance(command, SendResponseCreate):
                await self.ai_connection.send_event(
                    response_create_event(self.session_config, command.instructions)
                )
            elif isinstance(command, InvokeTool):
                task = asyncio.create_task(self._run_tool(command))
                self.tool_tasks.add(task)
                task.add_done_callback(self.tool_tasks.discard)
            elif isinstance(command, SendToolResult):
                await self.ai_connection.send_event(
                    function_call_output_event(command.call_id, command.item_id, command.output)
                )
                await self.ai_connection.send_event(
                    response_create_event(self.session_config, command.resume_instructions)
                )
            elif isinstance(command, CloseAiConnection):
                await self.ai_connection.close(1000, "Ended")
            elif isinstance(command, CloseTelephonyConnection):
                await self.websocket.close(code=1000, reason="Relay is closing WebSocket")
            else:
                logger.warning(f"Unhandled relay command: {type(command).__name__}")
        except (RealtimeConnectionError, WebSocketDisconnect, RuntimeError, OSError) as e:
            # The reader that owns the broken side reports the close
            logger.warning(f"Could not execute {type(command).__name__}: {e}")
