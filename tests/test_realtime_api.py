import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from websockets.exceptions import ConnectionClosedError, InvalidHandshake

from media_relay.bot.realtime_api import RealtimeConnection, connect_realtime
from media_relay.errors import ConnectionEstablishmentError, RealtimeConnectionError


class ScriptedSocket:
    """Async-iterable stand-in for a websockets client connection."""

    def __init__(self, messages=(), error=None):
        self.messages = list(messages)
        self.error = error
        self.send = AsyncMock()
        self.close = AsyncMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        if self.error is not None:
            raise self.error


@pytest.mark.asyncio
async def test_connect_sends_auth_and_beta_headers():
    ws = MagicMock()
    with patch("media_relay.bot.realtime_api.websockets.connect", new=AsyncMock(return_value=ws)) as mock_connect:
        connection = await connect_realtime(api_key="sk-test", model="gpt-4o-realtime-preview-2024-10-01")

    assert isinstance(connection, RealtimeConnection)
    assert connection.ws is ws
    args, kwargs = mock_connect.call_args
    assert args[0] == "wss://api.openai.com/v1/realtime?model=gpt-4o-realtime-preview-2024-10-01"
    assert kwargs["additional_headers"] == {
        "Authorization": "Bearer sk-test",
        "OpenAI-Beta": "realtime=v1",
    }
    assert kwargs["compression"] is None


@pytest.mark.asyncio
async def test_connect_without_api_key_fails():
    with patch("media_relay.bot.realtime_api.OPENAI_API_KEY", None):
        with pytest.raises(ConnectionEstablishmentError):
            await connect_realtime()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [OSError("Connection refused"), InvalidHandshake("bad upgrade"), asyncio.TimeoutError()],
)
async def test_connect_failure_raises_establishment_error(error):
    with patch("media_relay.bot.realtime_api.websockets.connect", new=AsyncMock(side_effect=error)):
        with pytest.raises(ConnectionEstablishmentError):
            await connect_realtime(api_key="sk-test")


@pytest.mark.asyncio
async def test_send_event_serializes_json():
    ws = ScriptedSocket()
    connection = RealtimeConnection(ws, "model")

    await connection.send_event({"type": "response.create", "response": {"instructions": "hi"}})

    ws.send.assert_awaited_once()
    assert json.loads(ws.send.call_args[0][0]) == {"type": "response.create", "response": {"instructions": "hi"}}


@pytest.mark.asyncio
async def test_send_event_on_dropped_connection():
    ws = ScriptedSocket()
    ws.send.side_effect = ConnectionClosedError(None, None)
    connection = RealtimeConnection(ws, "model")

    with pytest.raises(RealtimeConnectionError):
        await connection.send_event({"type": "session.update"})
    assert connection.closed

    with pytest.raises(RealtimeConnectionError):
        await connection.send_event({"type": "session.update"})


@pytest.mark.asyncio
async def test_messages_end_on_clean_close():
    connection = RealtimeConnection(ScriptedSocket(['{"type": "session.created"}', "{}"]), "model")

    received = [message async for message in connection.messages()]

    assert received == ['{"type": "session.created"}', "{}"]
    assert connection.closed


@pytest.mark.asyncio
async def test_messages_raise_on_abnormal_close():
    ws = ScriptedSocket(["{}"], error=ConnectionClosedError(None, None))
    connection = RealtimeConnection(ws, "model")
    received = []

    with pytest.raises(RealtimeConnectionError):
        async for message in connection.messages():
            received.append(message)

    assert received == ["{}"]
    assert connection.closed


@pytest.mark.asyncio
async def test_close_is_idempotent():
    ws = ScriptedSocket()
    connection = RealtimeConnection(ws, "model")

    await connection.close()
    await connection.close()

    ws.close.assert_awaited_once_with(1000, "Ended")
    assert connection.closed
