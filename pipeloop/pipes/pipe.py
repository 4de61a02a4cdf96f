"""
The pipe orchestrator.

A `Pipe` runs a conversation against the pipe endpoint and, when the
remote model asks for tools declared by the pipe, executes them
locally and resubmits their results, turn after turn, until the model
answers without tool calls or the call budget (`max_calls`) is spent.

Both kinds of responses are handled:

    - complete responses: the first choice's message is inspected for
      tool calls
    - streamed responses: the stream is split with `tee`; one side is
      read to the end to collect tool calls, the other side is kept
      intact and returned to the caller

Tool results are folded into the conversation in one of two ways,
selected by the `history_mode` option of the pipe:

    - "full": the whole history (prior messages, the assistant turn
      requesting tools, the tool results) is resent at every turn
    - "incremental": only the new tool results are sent, and the
      server continues the conversation from its thread

**Example**:

    ```python
    from pipeloop import Pipe, PipeOptions, RunOptions, ToolDefinition

    async def get_weather(parameters: dict) -> dict:
        return {"forecast": "sunny", "city": parameters["city"]}

    pipe = Pipe(PipeOptions(
        name="weather-bot",
        model="openai:gpt-4o-mini",
        tools=[ToolDefinition(
            function={"name": "get_weather", "parameters": {...}},
            run=get_weather,
        )],
    ))
    response = await pipe.run(RunOptions(
        messages=[{"role": "user", "content": "Weather in Paris?"}],
    ))
    print(response.completion)
    ```

Expected behaviour:
    Tool failures (unknown tool, malformed arguments, exceptions raised
    by tools) and transport failures propagate to the caller of `run`.
    No request is retried.
"""

from dataclasses import replace
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field

from ..config.config import Settings
from ..utils import logger as default_logger
from ..utils.logging import LoggerBase
from .executor import ToolExecutor
from .messages import (
    Message,
    RunOptions,
    RunResponse,
    RunResponseStream,
    ToolCall,
)
from .providers import (
    get_llm_api_key,
    get_model_provider,
    provider_capabilities,
)
from .request import PipeRequest
from .stream import get_tools_from_stream, tee
from .tools import ToolDefinition, ToolRegistry

RUN_ENDPOINT = "/v1/pipes/run"

HistoryMode = Literal['full', 'incremental']

PipeResponse = RunResponse | RunResponseStream | None


class RequestDispatcher(Protocol):
    """The transport used by a pipe (see PipeRequest)."""

    async def post(
        self,
        endpoint: str,
        body: dict[str, Any],
        *,
        stream: bool = False,
        raw_response: bool = False,
    ) -> PipeResponse: ...

    def with_credentials(
        self, api_key: str | None = None, llm_key: str | None = None
    ) -> 'RequestDispatcher': ...


class PipeOptions(BaseModel):
    """
    Definition of a pipe and of how it is run.

    Attributes:
        name: the pipe name
        description: a description of the pipe
        model: model specification of the form 'provider:model'
        tools: the tools the model may call
        max_calls: bound on resubmissions after tool calls
            (defaults to the settings)
        prod: run against the production endpoint (defaults to the
            settings)
        api_key: pipe API key (defaults to the settings)
        history_mode: 'full' or 'incremental' resend of the
            conversation (defaults to 'incremental' in production,
            'full' otherwise)

    Other fields of the pipe definition (prompt messages, model
    parameters) are accepted and sent to a local server as given.
    """

    name: str
    description: str = ""
    model: str = "openai:gpt-4o-mini"
    tools: list[ToolDefinition] = Field(default_factory=list)
    max_calls: int | None = Field(default=None, ge=1)
    prod: bool | None = None
    api_key: str | None = None
    history_mode: HistoryMode | None = None

    model_config = ConfigDict(extra='allow')

    def definition(self, name: str | None = None) -> dict[str, Any]:
        """The pipe definition sent to a local server."""
        data = self.model_dump(
            exclude={'tools', 'max_calls', 'prod', 'api_key', 'history_mode'},
            exclude_none=True,
        )
        if name:
            data['name'] = name
        data['tools'] = [tool.to_payload() for tool in self.tools]
        return data


class Pipe:
    """
    Runs a pipe, executing the tools requested by the remote model.

    Every call to `run` is independent: the conversation history of a
    run is owned by that call only.

    Args:
        options: the pipe definition (a PipeOptions or its dictionary)
        settings: configuration (defaults to Settings())
        dispatcher: the transport (defaults to a PipeRequest on the
            configured endpoint)
        logger: logger for warnings and debug messages

    Raises:
        DuplicateToolError: if two tools of the pipe share a name
        ValueError: if the model provider is unknown
    """

    def __init__(
        self,
        options: PipeOptions | dict[str, Any],
        *,
        settings: Settings | None = None,
        dispatcher: RequestDispatcher | None = None,
        logger: LoggerBase = default_logger,
    ):
        if not isinstance(options, PipeOptions):
            options = PipeOptions.model_validate(options)
        if settings is None:
            settings = Settings()

        self.options = options
        self.logger = logger
        self.prod: bool = (
            options.prod if options.prod is not None else settings.prod
        )
        self.max_calls: int = options.max_calls or settings.max_calls
        self.history_mode: HistoryMode = options.history_mode or (
            'incremental' if self.prod else 'full'
        )
        self.provider = get_model_provider(options.model)
        self.registry = ToolRegistry(options.tools)
        self.executor = ToolExecutor(self.registry, logger)
        self.dispatcher: RequestDispatcher = dispatcher or PipeRequest(
            settings.get_base_url(self.prod),
            options.api_key or settings.api_key,
            timeout=settings.timeout,
            check_local_server=not self.prod,
            logger=logger,
        )

    @property
    def has_tools(self) -> bool:
        return self.registry.has_tools

    def _stream_flag(self, requested: bool) -> bool:
        if not (requested and self.has_tools):
            return requested
        if provider_capabilities[self.provider].streaming_with_tools:
            return True
        self.logger.warning(
            f"Streaming is not yet supported in {self.provider} models "
            "when tools are present in the pipe. Falling back to "
            "non-streaming mode."
        )
        return False

    def _messages_to_send(
        self,
        messages: list[Message],
        response_message: Message,
        tool_results: list[Message],
    ) -> list[Message]:
        if self.history_mode == 'incremental':
            return tool_results
        return [*messages, response_message, *tool_results]

    def _body(
        self,
        options: RunOptions,
        messages: list[Message],
        thread_id: str | None,
        stream: bool,
    ) -> dict[str, Any]:
        name = options.name or self.options.name
        body: dict[str, Any] = {
            'name': name,
            'messages': [message.to_payload() for message in messages],
            'variables': [v.model_dump() for v in options.variables],
            'stream': stream,
        }
        if thread_id:
            body['threadId'] = thread_id
        if options.tools:
            body['tools'] = [
                t.to_payload() if isinstance(t, ToolDefinition) else t
                for t in options.tools
            ]
        if not self.prod:
            body['pipe'] = self.options.definition(name)
            body['llmApiKey'] = get_llm_api_key(self.provider)
        return body

    async def _dispatch(
        self,
        dispatcher: RequestDispatcher,
        options: RunOptions,
        messages: list[Message],
        thread_id: str | None,
        stream: bool,
    ) -> PipeResponse:
        body = self._body(options, messages, thread_id, stream)
        return await dispatcher.post(
            RUN_ENDPOINT,
            body,
            stream=stream,
            raw_response=options.raw_response,
        )

    def _max_calls_reached(
        self, response: RunResponse | RunResponseStream
    ) -> RunResponse | RunResponseStream:
        self.logger.warning(
            f"Reached maximum number of calls ({self.max_calls}). "
            "Returning last response."
        )
        if isinstance(response, RunResponseStream):
            return replace(response, max_calls_reached=True)
        return response.model_copy(update={'max_calls_reached': True})

    async def run(
        self, options: RunOptions | dict[str, Any] | None = None
    ) -> PipeResponse:
        """
        Run the pipe.

        Args:
            options: the run options (a RunOptions or its dictionary)

        Returns:
            a RunResponse, or a RunResponseStream if streaming was
            requested and is supported; None if no local server is
            running in development mode.
        """
        if options is None:
            options = RunOptions()
        elif not isinstance(options, RunOptions):
            options = RunOptions.model_validate(options)

        dispatcher = self.dispatcher
        if options.api_key or options.llm_key:
            dispatcher = dispatcher.with_credentials(
                options.api_key, options.llm_key
            )

        stream = self._stream_flag(options.stream)
        run_tools = options.run_tools and not options.tools

        response = await self._dispatch(
            dispatcher, options, options.messages, options.thread_id, stream
        )
        if response is None or not run_tools:
            return response

        if isinstance(response, RunResponseStream):
            return await self._run_stream(dispatcher, options, response)
        return await self._run_generate(dispatcher, options, response)

    async def _run_generate(
        self,
        dispatcher: RequestDispatcher,
        options: RunOptions,
        response: RunResponse,
    ) -> PipeResponse:
        messages = list(options.messages)
        thread_id = options.thread_id
        current = response
        call_count = 0

        while True:
            message = current.message
            if message is None or not message.has_tool_calls():
                return current
            if call_count >= self.max_calls:
                return self._max_calls_reached(current)

            tool_results = await self.executor.execute(
                message.tool_calls or []
            )
            messages = self._messages_to_send(
                messages, message, tool_results
            )
            thread_id = current.thread_id or thread_id

            next_response = await self._dispatch(
                dispatcher, options, messages, thread_id, False
            )
            if not isinstance(next_response, RunResponse):
                return next_response
            current = next_response
            call_count += 1

    async def _run_stream(
        self,
        dispatcher: RequestDispatcher,
        options: RunOptions,
        response: RunResponseStream,
    ) -> PipeResponse:
        messages = list(options.messages)
        thread_id = options.thread_id
        current = response
        call_count = 0

        while True:
            inspect_side, caller_side = tee(current.stream)
            tool_calls: list[ToolCall] = await get_tools_from_stream(
                inspect_side
            )
            current = replace(current, stream=caller_side)
            if not tool_calls:
                return current
            if call_count >= self.max_calls:
                return self._max_calls_reached(current)

            tool_results = await self.executor.execute(tool_calls)
            response_message = Message(
                role='assistant', content=None, tool_calls=tool_calls
            )
            messages = self._messages_to_send(
                messages, response_message, tool_results
            )
            thread_id = current.thread_id or thread_id

            next_response = await self._dispatch(
                dispatcher, options, messages, thread_id, True
            )
            if not isinstance(next_response, RunResponseStream):
                return next_response
            current = next_response
            call_count += 1


async def generate_text(
    pipe: Pipe, options: RunOptions | dict[str, Any] | None = None
) -> PipeResponse:
    """Run the pipe for a complete response."""
    if options is None:
        options = RunOptions()
    elif not isinstance(options, RunOptions):
        options = RunOptions.model_validate(options)
    return await pipe.run(options.model_copy(update={'stream': False}))


async def stream_text(
    pipe: Pipe, options: RunOptions | dict[str, Any] | None = None
) -> PipeResponse:
    """Run the pipe for a streamed response. The response is complete
    instead if the model provider cannot stream with tools."""
    if options is None:
        options = RunOptions()
    elif not isinstance(options, RunOptions):
        options = RunOptions.model_validate(options)
    return await pipe.run(options.model_copy(update={'stream': True}))
