import asyncio
import json

import pytest
from pydantic import BaseModel

from media_relay.bot.relay_session import RelaySession
from media_relay.bot.twilio_realtime_bridge import build_session_config
from media_relay.config.constants import GREETING_INSTRUCTIONS, RESUME_INSTRUCTIONS
from media_relay.models.relay_events import TelephonyClosed
from media_relay.tools import build_default_registry
from media_relay.tools.registry import ToolDescriptor, ToolRegistry

SESSION_CREATED = {"type": "session.created", "session": {"id": "sess_1"}}


def function_call(call_id, name="getMetallicaAlbums", arguments='{"limit":2}'):
    return {
        "type": "response.function_call_arguments.done",
        "call_id": call_id,
        "name": name,
        "arguments": arguments,
        "item_id": f"item_{call_id}",
    }


def make_session(twilio_ws, realtime_connection, registry=None, settle_delay=0.0):
    registry = registry or build_default_registry()
    return RelaySession(
        twilio_ws,
        realtime_connection,
        registry,
        build_session_config(registry),
        settle_delay=settle_delay,
    )


@pytest.mark.asyncio
async def test_settle_delay_sends_first_configuration(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection)
    task = asyncio.create_task(relay.run())

    await wait_until(lambda: realtime_connection.sent_types() == ["session.update"])
    session = realtime_connection.sent[0]["session"]
    assert session["input_audio_format"] == "g711_ulaw"
    assert session["tools"][0]["name"] == "getMetallicaAlbums"

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)


@pytest.mark.asyncio
async def test_session_created_sends_configuration_and_greeting(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection, settle_delay=10)
    task = asyncio.create_task(relay.run())

    realtime_connection.push(SESSION_CREATED)
    await wait_until(lambda: len(realtime_connection.sent) == 2)

    assert realtime_connection.sent_types() == ["session.update", "response.create"]
    assert realtime_connection.sent[1]["response"]["instructions"] == GREETING_INSTRUCTIONS

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)


@pytest.mark.asyncio
async def test_caller_audio_forwarded_only_after_configuration(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection, settle_delay=10)
    task = asyncio.create_task(relay.run())

    twilio_ws.push({"event": "media", "media": {"payload": "AAAA"}})
    await wait_until(lambda: twilio_ws.incoming.empty())
    await asyncio.sleep(0.05)
    assert realtime_connection.sent == []

    realtime_connection.push(SESSION_CREATED)
    await wait_until(lambda: "session.update" in realtime_connection.sent_types())
    twilio_ws.push({"event": "media", "media": {"payload": "BBBB"}})
    await wait_until(lambda: "input_audio_buffer.append" in realtime_connection.sent_types())

    appends = [e for e in realtime_connection.sent if e["type"] == "input_audio_buffer.append"]
    assert appends == [{"type": "input_audio_buffer.append", "audio": "BBBB"}]

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)


@pytest.mark.asyncio
async def test_ai_audio_relayed_to_caller(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection)
    task = asyncio.create_task(relay.run())

    twilio_ws.push({"event": "start", "start": {"streamSid": "CA123"}})
    await wait_until(lambda: relay.machine.session.stream_sid == "CA123")
    realtime_connection.push({"type": "response.audio.delta", "delta": "QUJD"})
    await wait_until(lambda: len(twilio_ws.sent) == 1)

    assert twilio_ws.sent == [{"event": "media", "streamSid": "CA123", "media": {"payload": "QUJD"}}]

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)


@pytest.mark.asyncio
async def test_tool_call_result_sent_then_response_resumed(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection, settle_delay=10)
    task = asyncio.create_task(relay.run())

    realtime_connection.push(SESSION_CREATED)
    realtime_connection.push(function_call("c1"))
    await wait_until(lambda: realtime_connection.sent_types()[-2:] == ["conversation.item.create", "response.create"])

    items = [e for e in realtime_connection.sent if e["type"] == "conversation.item.create"]
    assert len(items) == 1
    assert items[0]["previous_item_id"] == "item_c1"
    assert items[0]["item"]["type"] == "function_call_output"
    assert items[0]["item"]["call_id"] == "c1"
    assert len(json.loads(items[0]["item"]["output"])["albums"]) == 2
    assert realtime_connection.sent[-1]["response"]["instructions"] == RESUME_INSTRUCTIONS

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)
    assert realtime_connection.close_calls == [(1000, "Ended")]


@pytest.mark.asyncio
async def test_duplicate_function_call_answered_once(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection, settle_delay=10)
    task = asyncio.create_task(relay.run())

    realtime_connection.push(SESSION_CREATED)
    realtime_connection.push(function_call("c1"))
    realtime_connection.push(function_call("c1"))
    await wait_until(lambda: "conversation.item.create" in realtime_connection.sent_types())
    await asyncio.sleep(0.05)

    assert realtime_connection.sent_types().count("conversation.item.create") == 1

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)


@pytest.mark.asyncio
async def test_unknown_tool_reports_error_to_model(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection, settle_delay=10)
    task = asyncio.create_task(relay.run())

    realtime_connection.push(function_call("c2", name="orderPizza", arguments="{}"))
    await wait_until(lambda: "conversation.item.create" in realtime_connection.sent_types())

    item = next(e for e in realtime_connection.sent if e["type"] == "conversation.item.create")
    assert json.loads(item["item"]["output"]) == {"error": "Unknown tool: orderPizza"}

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)


class GateInput(BaseModel):
    pass


@pytest.mark.asyncio
async def test_ai_close_while_tool_pending_discards_result(twilio_ws, realtime_connection, wait_until):
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_tool(arguments):
        started.set()
        await release.wait()
        return {"done": True}

    registry = ToolRegistry()
    registry.register(ToolDescriptor(name="slow", description="Slow", input_model=GateInput, executor=slow_tool))
    relay = make_session(twilio_ws, realtime_connection, registry=registry, settle_delay=10)
    task = asyncio.create_task(relay.run())

    realtime_connection.push(SESSION_CREATED)
    realtime_connection.push(function_call("c1", name="slow", arguments="{}"))
    await asyncio.wait_for(started.wait(), 2)
    tool_tasks = list(relay.tool_tasks)

    realtime_connection.fail()
    await asyncio.wait_for(task, 2)
    assert relay.closed
    assert relay.machine.session.ai_state == "failed"
    assert twilio_ws.close_calls == [(1000, "Relay is closing WebSocket")]

    sent_before = list(realtime_connection.sent)
    release.set()
    await asyncio.gather(*tool_tasks)

    assert realtime_connection.sent == sent_before
    assert "conversation.item.create" not in realtime_connection.sent_types()
    assert twilio_ws.sent == []


@pytest.mark.asyncio
async def test_malformed_messages_do_not_end_the_call(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection)
    task = asyncio.create_task(relay.run())

    twilio_ws.push("not json")
    twilio_ws.push({"event": "media", "media": {}})
    realtime_connection.push("garbage")
    realtime_connection.push({"type": "response.function_call_arguments.done"})
    twilio_ws.push({"event": "start", "start": {"streamSid": "MZ9"}})
    await wait_until(lambda: relay.machine.session.stream_sid == "MZ9")
    realtime_connection.push({"type": "response.audio.delta", "delta": "QUJD"})
    await wait_until(lambda: len(twilio_ws.sent) == 1)

    assert not relay.closed

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)


@pytest.mark.asyncio
async def test_clean_ai_close_hangs_up_caller(twilio_ws, realtime_connection):
    relay = make_session(twilio_ws, realtime_connection, settle_delay=10)
    task = asyncio.create_task(relay.run())

    realtime_connection.end()
    await asyncio.wait_for(task, 2)

    assert relay.machine.session.ai_state == "closed"
    assert twilio_ws.close_calls == [(1000, "Relay is closing WebSocket")]
    assert realtime_connection.close_calls == []


@pytest.mark.asyncio
async def test_write_failure_is_logged_not_raised(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection)
    realtime_connection.closed = True
    task = asyncio.create_task(relay.run())

    # session.update fails to send; the call only ends when a side disconnects
    await asyncio.sleep(0.05)
    assert not task.done()

    await relay.events.put(TelephonyClosed())
    await asyncio.wait_for(task, 2)
    assert relay.closed


@pytest.mark.asyncio
async def test_binary_frame_dropped_without_ending_call(twilio_ws, realtime_connection, wait_until):
    relay = make_session(twilio_ws, realtime_connection)
    task = asyncio.create_task(relay.run())

    twilio_ws.push(b"\x00\x01garbage")
    twilio_ws.push({"event": "start", "start": {"streamSid": "MZ7"}})
    await wait_until(lambda: relay.machine.session.stream_sid == "MZ7")

    assert not relay.closed
    assert not task.done()
    assert twilio_ws.close_calls == []

    twilio_ws.disconnect()
    await asyncio.wait_for(task, 2)
