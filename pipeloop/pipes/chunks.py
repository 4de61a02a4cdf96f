"""
Classification of the raw units of a streamed response.

A streamed pipe response is a sequence of `ChunkStream` units. Each
unit carries, in its first choice, either a fragment of text content,
a fragment of a tool call, or neither (role announcements, the final
unit with the finish reason). `process_chunk` maps a unit to one of
three tagged variants:

    - `ContentChunk`: the unit has text content
    - `ToolCallChunk`: the unit has a tool-call delta
    - `UnknownChunk`: anything else; the raw unit is kept

Content takes precedence when both are present, and only the first
tool-call delta of a unit is surfaced.

**Example**:

    ```python
    from pipeloop.pipes.chunks import process_chunk, is_content

    response = await pipe.run(RunOptions(messages=..., stream=True))
    async for raw_chunk in response.stream:
        chunk = process_chunk(raw_chunk)
        if is_content(chunk):
            print(chunk.content, end="")
    ```
"""

import sys
from collections.abc import AsyncIterable, Mapping
from typing import Any, Literal, TypeGuard

from pydantic import BaseModel, ConfigDict, ValidationError

from .messages import ChunkStream, Delta, ToolCall


class ContentChunk(BaseModel):
    type: Literal['content'] = 'content'
    content: str


class ToolCallChunk(BaseModel):
    type: Literal['toolCall'] = 'toolCall'
    tool_call: ToolCall


class UnknownChunk(BaseModel):
    type: Literal['unknown'] = 'unknown'
    raw_chunk: Any

    model_config = ConfigDict(arbitrary_types_allowed=True)


Chunk = ContentChunk | ToolCallChunk | UnknownChunk


def _first_delta(raw_chunk: Any) -> Delta | None:
    if not isinstance(raw_chunk, ChunkStream):
        if not isinstance(raw_chunk, Mapping):
            return None
        try:
            raw_chunk = ChunkStream.model_validate(raw_chunk)
        except ValidationError:
            return None
    if not raw_chunk.choices:
        return None
    return raw_chunk.choices[0].delta


def process_chunk(raw_chunk: ChunkStream | Mapping[str, Any]) -> Chunk:
    """
    Classify a raw unit of a streamed response.

    Args:
        raw_chunk: the unit, as a ChunkStream or its dictionary form

    Returns:
        the classified chunk. Units that are not valid stream units
        are unknown. The unknown variant holds the object
        that was passed in.
    """
    delta = _first_delta(raw_chunk)
    if delta is not None:
        if delta.content:
            return ContentChunk(content=delta.content)
        if delta.tool_calls:
            # one tool-call delta per unit is surfaced
            return ToolCallChunk(tool_call=delta.tool_calls[0])
    return UnknownChunk(raw_chunk=raw_chunk)


def is_content(chunk: Chunk) -> TypeGuard[ContentChunk]:
    return chunk.type == 'content'


def is_tool_call(chunk: Chunk) -> TypeGuard[ToolCallChunk]:
    return chunk.type == 'toolCall'


def is_unknown(chunk: Chunk) -> TypeGuard[UnknownChunk]:
    return chunk.type == 'unknown'


def get_text_content(raw_chunk: ChunkStream | Mapping[str, Any]) -> str:
    """The text content of a raw unit, or an empty string."""
    delta = _first_delta(raw_chunk)
    if delta is None:
        return ""
    return delta.content or ""


def get_text_delta(raw_chunk: ChunkStream) -> str:
    """The text delta of a raw unit, or an empty string."""
    return get_text_content(raw_chunk)


async def print_stream_to_stdout(
    stream: AsyncIterable[ChunkStream],
) -> None:
    """Write the text content of a streamed response to stdout."""
    async for raw_chunk in stream:
        sys.stdout.write(get_text_content(raw_chunk))
        sys.stdout.flush()
