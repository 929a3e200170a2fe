import asyncio
import json
import logging

import pytest

from media_relay.errors import RealtimeConnectionError


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class FakeTwilioWebSocket:
    """Stands in for the FastAPI WebSocket Twilio connects on."""

    def __init__(self):
        self.incoming = asyncio.Queue()
        self.sent = []
        self.accepted = False
        self.close_calls = []

    async def accept(self):
        self.accepted = True

    async def receive(self):
        message = await self.incoming.get()
        if message is None:
            return {"type": "websocket.disconnect", "code": 1000}
        if isinstance(message, bytes):
            return {"type": "websocket.receive", "bytes": message}
        return {"type": "websocket.receive", "text": message}

    async def send_text(self, data):
        self.sent.append(json.loads(data))

    async def close(self, code=1000, reason=None):
        self.close_calls.append((code, reason))

    def push(self, message):
        self.incoming.put_nowait(message if isinstance(message, (str, bytes)) else json.dumps(message))

    def disconnect(self):
        self.incoming.put_nowait(None)


class FakeRealtimeConnection:
    """Stands in for RealtimeConnection; server events are pushed by the test."""

    def __init__(self):
        self.incoming = asyncio.Queue()
        self.sent = []
        self.closed = False
        self.close_calls = []

    async def send_event(self, event):
        if self.closed:
            raise RealtimeConnectionError("Cannot send - connection is closed")
        self.sent.append(event)

    async def messages(self):
        while True:
            message = await self.incoming.get()
            if message is None:
                return
            if isinstance(message, Exception):
                raise message
            yield message

    async def close(self, code=1000, reason="Ended"):
        self.close_calls.append((code, reason))
        if not self.closed:
            self.closed = True
            self.incoming.put_nowait(None)

    def push(self, message):
        self.incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def end(self):
        self.incoming.put_nowait(None)

    def fail(self):
        self.incoming.put_nowait(RealtimeConnectionError("connection dropped"))

    def sent_types(self):
        return [event["type"] for event in self.sent]


@pytest.fixture
def twilio_ws():
    return FakeTwilioWebSocket()


@pytest.fixture
def realtime_connection():
    return FakeRealtimeConnection()


@pytest.fixture
def wait_until():
    async def _wait_until(predicate, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met in time")
            await asyncio.sleep(0.01)

    return _wait_until
