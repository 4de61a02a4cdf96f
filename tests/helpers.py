"""Shared fakes for the pipe tests"""

import copy
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

from pipeloop.pipes.messages import (
    ChunkStream,
    Message,
    RunResponse,
    RunResponseStream,
    ToolCall,
)


def make_tool_call(
    call_id: str, name: str, arguments: dict[str, Any] | str
) -> ToolCall:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return ToolCall.model_validate(
        {
            'id': call_id,
            'type': 'function',
            'function': {'name': name, 'arguments': arguments},
        }
    )


def make_response(
    content: str | None = None,
    tool_calls: list[ToolCall] | None = None,
    thread_id: str | None = "thread-1",
) -> RunResponse:
    message = Message(
        role='assistant', content=content, tool_calls=tool_calls
    )
    return RunResponse.model_validate(
        {
            'completion': content or "",
            'thread_id': thread_id,
            'id': "chatcmpl-1",
            'object': "chat.completion",
            'created': 1700000000,
            'model': "gpt-4o-mini",
            'choices': [
                {
                    'index': 0,
                    'message': message.model_dump(),
                    'finish_reason': (
                        "tool_calls" if tool_calls else "stop"
                    ),
                }
            ],
            'usage': {
                'prompt_tokens': 10,
                'completion_tokens': 5,
                'total_tokens': 15,
            },
        }
    )


def content_chunk(text: str) -> ChunkStream:
    return ChunkStream.model_validate(
        {
            'id': "chunk",
            'object': "chat.completion.chunk",
            'choices': [{'index': 0, 'delta': {'content': text}}],
        }
    )


def tool_call_chunk(
    index: int | None,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str = "",
) -> ChunkStream:
    fragment: dict[str, Any] = {'function': {'arguments': arguments}}
    if index is not None:
        fragment['index'] = index
    if call_id is not None:
        fragment['id'] = call_id
    if name is not None:
        fragment['function']['name'] = name
    return ChunkStream.model_validate(
        {
            'id': "chunk",
            'object': "chat.completion.chunk",
            'choices': [{'index': 0, 'delta': {'tool_calls': [fragment]}}],
        }
    )


def finish_chunk(reason: str = "stop") -> ChunkStream:
    return ChunkStream.model_validate(
        {
            'id': "chunk",
            'object': "chat.completion.chunk",
            'choices': [{'index': 0, 'delta': {}, 'finish_reason': reason}],
        }
    )


async def iterate(items: list[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


async def collect(stream: AsyncIterator[Any]) -> list[Any]:
    return [item async for item in stream]


def make_stream_response(
    chunks: list[ChunkStream], thread_id: str | None = "thread-1"
) -> RunResponseStream:
    return RunResponseStream(stream=iterate(chunks), thread_id=thread_id)


Response = RunResponse | RunResponseStream | None


class FakeDispatcher:
    """Returns queued responses and records the requests it gets.

    Responses may be given as a list, consumed in order, or as a
    factory called for every request.
    """

    def __init__(
        self,
        responses: list[Response] | None = None,
        factory: Callable[[], Response] | None = None,
    ):
        self.responses = list(responses or [])
        self.factory = factory
        self.calls: list[dict[str, Any]] = []
        self.credentials: list[tuple[str | None, str | None]] = []

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [call['body'] for call in self.calls]

    async def post(
        self,
        endpoint: str,
        body: dict[str, Any],
        *,
        stream: bool = False,
        raw_response: bool = False,
    ) -> Response:
        self.calls.append(
            {
                'endpoint': endpoint,
                'body': copy.deepcopy(body),
                'stream': stream,
                'raw_response': raw_response,
            }
        )
        if self.factory is not None:
            return self.factory()
        if not self.responses:
            raise AssertionError("Unexpected request")
        return self.responses.pop(0)

    def with_credentials(
        self, api_key: str | None = None, llm_key: str | None = None
    ) -> 'FakeDispatcher':
        self.credentials.append((api_key, llm_key))
        return self
