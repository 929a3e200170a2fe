"""
Inputs and outputs of the relay state machine.

RelayEvent subclasses are what the two connections (and the session's own
timers and tool tasks) feed into a call's state machine. RelayCommand
subclasses are the only thing the state machine produces; the session runner
turns each one into writes on the right connection, in emission order.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from media_relay.tools.registry import ToolResult


class RelayEvent(BaseModel):
    model_config = ConfigDict(frozen=True)


class AiConnectionOpened(RelayEvent):
    pass


class ConfigurationDue(RelayEvent):
    """The settling delay after the AI connection opened has elapsed."""


class AiSessionCreated(RelayEvent):
    pass


class AiSessionUpdated(RelayEvent):
    pass


class AiAudioDelta(RelayEvent):
    delta: str


class AiFunctionCallDone(RelayEvent):
    call_id: str
    name: str
    arguments: str = ""
    item_id: Optional[str] = None


class AiConnectionClosed(RelayEvent):
    failed: bool = False


class TelephonyStreamStarted(RelayEvent):
    stream_sid: str


class TelephonyMedia(RelayEvent):
    payload: str


class TelephonyClosed(RelayEvent):
    pass


class ShutdownRequested(RelayEvent):
    """The server is stopping; both connections are closed."""


class ToolCompleted(RelayEvent):
    call_id: str
    result: ToolResult


class RelayCommand(BaseModel):
    model_config = ConfigDict(frozen=True)


class SendSessionConfiguration(RelayCommand):
    pass


class SendResponseCreate(RelayCommand):
    instructions: str


class InvokeTool(RelayCommand):
    call_id: str
    name: str
    arguments: str = ""


class SendToolResult(RelayCommand):
    """Inject a function_call_output item and ask the model to resume speaking."""
    call_id: str
    item_id: Optional[str] = None
    output: str
    resume_instructions: str


class ForwardAudioToAi(RelayCommand):
    payload: str


class ForwardAudioToTelephony(RelayCommand):
    stream_sid: str
    payload: str


class CloseAiConnection(RelayCommand):
    pass


class CloseTelephonyConnection(RelayCommand):
    pass
