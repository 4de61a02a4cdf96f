"""
Data structures exchanged with the pipe endpoint.

Conversation messages and tool calls follow the chat completion wire
format. Request-side models ignore unknown fields; response-side models
keep them, so that fields added by the remote service are not lost
when a response is returned to the caller.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)

MessageRole = Literal['system', 'user', 'assistant', 'tool']


def _null_as_default(
    model: type[BaseModel], value: Any, info: ValidationInfo
) -> Any:
    # servers send explicit nulls for fields absent from a delta
    if value is None and info.field_name is not None:
        field = model.model_fields[info.field_name]
        return field.get_default(call_default_factory=True)
    return value


class FunctionCall(BaseModel):
    """Name and JSON-encoded arguments of a requested function. In
    streamed deltas, either field may hold only a fragment."""

    name: str = ""
    arguments: str = ""

    @field_validator('name', 'arguments', mode='before')
    @classmethod
    def null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        return _null_as_default(cls, value, info)


class ToolCall(BaseModel):
    """A tool call requested by the remote model.

    In streamed responses the same model carries partial deltas; the
    `index` field identifies the call a delta contributes to.
    """

    id: str = ""
    type: str | None = "function"
    function: FunctionCall = Field(default_factory=FunctionCall)
    index: int | None = None

    @field_validator('id', 'function', mode='before')
    @classmethod
    def null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        return _null_as_default(cls, value, info)


class Message(BaseModel):
    """A message in a chat conversation."""

    role: MessageRole
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = Field(
        default=None,
        description="ID of the tool call this message responds to",
    )
    name: str | None = None

    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_payload(self) -> dict[str, Any]:
        """The wire form. An assistant turn requesting tools keeps its
        content, as null when there is none."""
        data = self.model_dump(exclude_none=True)
        if self.tool_calls:
            data['content'] = self.content
        return data


class Variable(BaseModel):
    """A prompt template variable."""

    name: str
    value: str


class RunOptions(BaseModel):
    """Per-invocation parameters of `Pipe.run`.

    Attributes:
        messages: the conversation to submit
        variables: values for the pipe's prompt template
        thread_id: continuation token of a server-side thread
        stream: request an incrementally delivered response
        run_tools: execute tool calls automatically (default True)
        tools: an explicit tool subset sent to the server; giving it
            disables automatic tool execution
        name: run the pipe with this name instead of the pipe's own
        api_key: pipe API key for this call only
        llm_key: model provider key for this call only
        raw_response: attach the response headers to the result
    """

    messages: list[Message] = Field(default_factory=list)
    variables: list[Variable] = Field(default_factory=list)
    thread_id: str | None = None
    stream: bool = False
    run_tools: bool = True
    tools: list[Any] | None = None
    name: str | None = None
    api_key: str | None = None
    llm_key: str | None = None
    raw_response: bool = False

    model_config = ConfigDict(extra='ignore')


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class Choice(BaseModel):
    index: int = 0
    message: Message
    logprobs: Any | None = None
    finish_reason: str | None = None


class RawResponseInfo(BaseModel):
    headers: dict[str, str] = Field(default_factory=dict)


class RunResponse(BaseModel):
    """A complete (non-streamed) response of the pipe endpoint.

    `max_calls_reached` is set when the orchestrator stopped because
    the call budget ran out while the model was still requesting tools.
    """

    completion: str | None = None
    thread_id: str | None = None
    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = Field(default_factory=Usage)
    system_fingerprint: str | None = None
    raw_response: RawResponseInfo | None = None
    max_calls_reached: bool = False

    model_config = ConfigDict(extra='allow')

    @field_validator(
        'id', 'object', 'created', 'model', 'choices', mode='before'
    )
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _null_as_default(cls, value, info)

    @property
    def message(self) -> Message | None:
        """The message of the first choice, if any."""
        if not self.choices:
            return None
        return self.choices[0].message


class Delta(BaseModel):
    role: MessageRole | None = None
    content: str | None = None
    tool_calls: list[ToolCall] | None = None


class ChoiceStream(BaseModel):
    index: int = 0
    delta: Delta = Field(default_factory=Delta)
    logprobs: Any | None = None
    finish_reason: str | None = None

    @field_validator('index', 'delta', mode='before')
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _null_as_default(cls, value, info)


class ChunkStream(BaseModel):
    """One raw incremental unit of a streamed response. Null fields of
    the unit read as their defaults."""

    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[ChoiceStream] = Field(default_factory=list)

    model_config = ConfigDict(extra='allow')

    @field_validator(
        'id', 'object', 'created', 'model', 'choices', mode='before'
    )
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _null_as_default(cls, value, info)


@dataclass
class RunResponseStream:
    """A streamed response. `stream` is single-pass and finite."""

    stream: AsyncIterator[ChunkStream]
    thread_id: str | None = None
    raw_response: RawResponseInfo | None = None
    max_calls_reached: bool = False
