"""
Registry of tools the OpenAI Realtime model may call during a phone call.

Each tool is declared once at process start with a name, a description, a
pydantic model describing its input, and an executor. The registry is read-only
afterwards and is shared by every call session, so invocations never touch
shared mutable state.

Invocation never raises: unknown tools, arguments that fail validation and
executors that throw all come back as a failed ToolResult, which is still sent
to the model so the conversation can continue instead of hanging.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from media_relay.config.constants import LOGGER_NAME
from media_relay.errors import DuplicateToolError, ToolExecutionError, UnknownToolError
from media_relay.models.openai_schemas import FunctionTool

logger = logging.getLogger(LOGGER_NAME)

ToolExecutor = Callable[[BaseModel], Any]


def _is_async(executor: ToolExecutor) -> bool:
    """True for coroutine functions and for objects with an async __call__."""
    return inspect.iscoroutinefunction(executor) or inspect.iscoroutinefunction(
        getattr(executor, "__call__", None)
    )


class ToolDescriptor(BaseModel):
    """Static declaration of one invocable tool."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    description: str
    input_model: Type[BaseModel]
    executor: ToolExecutor

    def declaration(self) -> FunctionTool:
        """Flatten the tool to the shape the Realtime API expects for callable actions."""
        return FunctionTool(
            name=self.name,
            description=self.description,
            parameters=self.input_model.model_json_schema(),
        )


class ToolResult(BaseModel):
    """Outcome of a tool invocation."""

    name: str
    success: bool
    output: Any = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, name: str, error: Exception) -> "ToolResult":
        return cls(name=name, success=False, error=str(error))

    def to_output(self) -> str:
        """Serialize the result for a function_call_output conversation item."""
        if self.success:
            return json.dumps(self.output, default=str)
        return json.dumps({"error": self.error})


class ToolRegistry:
    """Name-keyed table of tools with schema-validated invocation."""

    def __init__(self):
        self._tools: Dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> None:
        """
        Add a tool to the registry.

        Raises:
            DuplicateToolError: If a tool with the same name is already registered
        """
        if descriptor.name in self._tools:
            raise DuplicateToolError(f"Tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = descriptor
        logger.info(f"Registered tool: {descriptor.name}")

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def declarations(self) -> List[FunctionTool]:
        return [descriptor.declaration() for descriptor in self._tools.values()]

    async def invoke(self, name: str, raw_arguments: Union[str, Dict[str, Any], None]) -> ToolResult:
        """
        Validate the arguments against the tool's input model and run it.

        Args:
            name: Name of the tool requested by the model
            raw_arguments: JSON-encoded argument object as sent by the model, or a dict

        Returns:
            ToolResult: The executor's output on success, a failure result otherwise
        """
        descriptor = self._tools.get(name)
        if descriptor is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return ToolResult.failure(name, UnknownToolError(f"Unknown tool: {name}"))

        try:
            if isinstance(raw_arguments, dict):
                arguments = descriptor.input_model.model_validate(raw_arguments)
            else:
                arguments = descriptor.input_model.model_validate_json(raw_arguments or "{}")
        except ValidationError as e:
            logger.warning(f"Invalid arguments for tool {name}: {e}")
            return ToolResult(name=name, success=False, error=f"Invalid arguments: {e}")

        try:
            if _is_async(descriptor.executor):
                output = await descriptor.executor(arguments)
            else:
                # Keep blocking executors off the event loop shared by all calls
                output = await asyncio.to_thread(descriptor.executor, arguments)
            if inspect.isawaitable(output):
                output = await output
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return ToolResult.failure(name, ToolExecutionError(f"Tool {name} failed: {e}"))

        logger.debug(f"Tool {name} completed")
        return ToolResult(name=name, success=True, output=output)
