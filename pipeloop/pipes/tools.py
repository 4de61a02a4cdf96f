"""
Tool definitions and the registry that resolves tool calls to local
functions.

A tool is declared once per pipe by its function specification (name,
description and JSON schema of the parameters), which is sent to the
remote service, and by the local callable `run` that executes it. The
callable receives the parsed arguments as a single dictionary and may
be a plain function or a coroutine function.

**Example**:

    ```python
    from pipeloop.pipes.tools import ToolDefinition, ToolRegistry

    async def get_weather(parameters: dict) -> dict:
        return {"city": parameters["city"], "forecast": "sunny"}

    weather = ToolDefinition(
        function={
            "name": "get_weather",
            "description": "Current weather for a city",
            "parameters": {
                "type": "object",
                "properties": {"city": {"type": "string"}},
                "required": ["city"],
            },
        },
        run=get_weather,
    )
    registry = ToolRegistry([weather])
    ```

A tool may also be created from a typed Python function with a
docstring. The arguments are then passed by keyword:

    ```python
    def get_weather(city: str) -> str:
        "Current weather for a city"
        return "sunny"

    weather = ToolDefinition.from_function(get_weather)
    ```
"""

import inspect
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import DuplicateToolError, ToolNotFoundError

ToolFunction = Callable[[dict[str, Any]], Any]


class FunctionSpec(BaseModel):
    """The function specification of a tool, as sent to the model."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    model_config = ConfigDict(extra='allow')


class ToolDefinition(BaseModel):
    """A tool declared by a pipe: specification and local callable."""

    type: str = "function"
    function: FunctionSpec
    run: ToolFunction | None = Field(default=None, exclude=True)

    model_config = ConfigDict(extra='forbid')

    @property
    def name(self) -> str:
        return self.function.name

    def to_payload(self) -> dict[str, Any]:
        """The wire form of the definition, without the callable."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_function(cls, func: Callable[..., Any]) -> 'ToolDefinition':
        """Create a tool from a function with type annotations and a
        docstring. The parameters schema is derived from the
        signature; the model's arguments are passed by keyword."""
        from langchain_core.utils.function_calling import (
            convert_to_openai_tool,
        )

        spec: dict[str, Any] = convert_to_openai_tool(func)

        if inspect.iscoroutinefunction(func):

            async def run(parameters: dict[str, Any]) -> Any:
                return await func(**parameters)

        else:

            def run(parameters: dict[str, Any]) -> Any:
                return func(**parameters)

        return cls(function=FunctionSpec(**spec['function']), run=run)


class ToolRegistry:
    """Read-only mapping from tool name to tool definition.

    Built once from the tools declared by a pipe. Names must be unique
    within a pipe.

    Raises:
        DuplicateToolError: if two tools share a name
    """

    def __init__(
        self, tools: Iterable[ToolDefinition | dict[str, Any]] | None = None
    ):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            if not isinstance(tool, ToolDefinition):
                tool = ToolDefinition.model_validate(tool)
            if tool.name in self._tools:
                raise DuplicateToolError(tool.name)
            self._tools[tool.name] = tool

    @property
    def has_tools(self) -> bool:
        return bool(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def resolve(self, name: str) -> ToolFunction:
        """The callable of the named tool.

        Raises:
            ToolNotFoundError: if the pipe declares no such tool, or
                the tool has no local callable
        """
        tool = self._tools.get(name)
        if tool is None or tool.run is None:
            raise ToolNotFoundError(name)
        return tool.run

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)
