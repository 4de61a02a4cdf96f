"""
Execution of the tool calls requested by the remote model.

A batch of tool calls is validated as a whole before any tool runs:
every argument payload must parse to a JSON object, and every name
must resolve to a tool of the pipe. The tools then run concurrently,
and the batch result lists one `tool` message per call, in the order
of the calls. The first failure aborts the batch: the tools still
running are cancelled before the exception propagates.

Coroutine tools run on the event loop. Synchronous tools run in worker
threads (`asyncio.to_thread`), in parallel with each other, so they
must be thread-safe. A cancelled worker thread is not interrupted; it
runs to completion and its result is discarded.
"""

import asyncio
import inspect
import json
from typing import Any

from ..utils import logger as default_logger
from ..utils.logging import LoggerBase
from .errors import MalformedToolArgumentsError
from .messages import Message, ToolCall
from .tools import ToolFunction, ToolRegistry


def parse_arguments(tool_call: ToolCall) -> dict[str, Any]:
    """Parse the JSON arguments of a tool call. Empty text counts as
    no arguments.

    Raises:
        MalformedToolArgumentsError: if the text is not a JSON object
    """
    name = tool_call.function.name
    text = tool_call.function.arguments
    if not text.strip():
        return {}
    try:
        parameters = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedToolArgumentsError(name, text, str(e)) from e
    if not isinstance(parameters, dict):
        raise MalformedToolArgumentsError(
            name, text, "arguments must be a JSON object"
        )
    return parameters


async def _invoke(
    function: ToolFunction, parameters: dict[str, Any]
) -> Any:
    if inspect.iscoroutinefunction(function):
        return await function(parameters)
    # synchronous tools must not block the event loop
    result = await asyncio.to_thread(function, parameters)
    if inspect.isawaitable(result):
        result = await result
    return result


class ToolExecutor:
    """Runs batches of tool calls against a tool registry."""

    def __init__(
        self,
        registry: ToolRegistry,
        logger: LoggerBase = default_logger,
    ):
        self.registry = registry
        self.logger = logger

    async def execute(self, tool_calls: list[ToolCall]) -> list[Message]:
        """
        Execute the tool calls concurrently.

        Args:
            tool_calls: the tool calls of an assistant turn

        Returns:
            one tool message per call, in the order of the calls

        Raises:
            MalformedToolArgumentsError: invalid argument payload
            ToolNotFoundError: a name the pipe does not declare
            Exception: any exception raised by a tool
        """
        prepared: list[tuple[ToolCall, ToolFunction, dict[str, Any]]] = []
        for tool_call in tool_calls:
            parameters = parse_arguments(tool_call)
            function = self.registry.resolve(tool_call.function.name)
            prepared.append((tool_call, function, parameters))

        self.logger.debug(
            "Running tools: "
            + ", ".join(call.function.name for call, _, _ in prepared)
        )
        tasks = [
            asyncio.create_task(_invoke(function, params))
            for _, function, params in prepared
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # wait for the cancelled tools to unwind
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return [
            Message(
                role='tool',
                tool_call_id=tool_call.id,
                name=tool_call.function.name,
                content=json.dumps(result),
            )
            for (tool_call, _, _), result in zip(prepared, results)
        ]
