"""
Non-destructive inspection of streamed responses.

A streamed response may be consumed only once, but the orchestrator
needs to read it to find out whether the model requested tools while
keeping it intact for the caller. `tee` splits the stream into
independent cursors that each see every unit, in order. Units pulled
from the source are buffered for the cursors that have not read them
yet, so that a cursor that is read to the end never waits on another.

**Example**:

    ```python
    from pipeloop.pipes.stream import tee, get_tools_from_stream

    inspect_side, caller_side = tee(response.stream)
    tool_calls = await get_tools_from_stream(inspect_side)
    # caller_side still yields every unit of the response
    ```
"""

import asyncio
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator
from typing import Generic, TypeVar

from .messages import ChunkStream, FunctionCall, ToolCall

T = TypeVar('T')


class StreamTee(Generic[T]):
    """One producer, `n` consumer cursors.

    Pulling from the source is serialized by a lock; the unit pulled
    is appended to the buffer of every cursor. Exhaustion of the source
    and exceptions raised by it are delivered to all cursors. The
    source is closed once all cursors are closed or exhausted.
    """

    def __init__(self, source: AsyncIterable[T], n: int = 2):
        if n < 1:
            raise ValueError("A tee needs at least one cursor")
        self._source = source
        self._iterator = aiter(source)
        self._buffers: list[deque[T]] = [deque() for _ in range(n)]
        self._lock = asyncio.Lock()
        self._done = False
        self._error: Exception | None = None
        self._active = n
        self.cursors: tuple[AsyncIterator[T], ...] = tuple(
            self._cursor(buffer) for buffer in self._buffers
        )

    async def _pull(self) -> None:
        try:
            item = await anext(self._iterator)
        except StopAsyncIteration:
            self._done = True
            return
        except Exception as e:
            self._done = True
            self._error = e
            return
        for buffer in self._buffers:
            buffer.append(item)

    async def _cursor(self, buffer: deque[T]) -> AsyncIterator[T]:
        try:
            while True:
                if not buffer and not self._done:
                    async with self._lock:
                        # another cursor may have pulled meanwhile
                        if not buffer and not self._done:
                            await self._pull()
                if buffer:
                    yield buffer.popleft()
                elif self._done:
                    if self._error is not None:
                        raise self._error
                    return
        finally:
            buffer.clear()
            self._active -= 1
            if self._active == 0:
                await self._close_source()

    async def _close_source(self) -> None:
        aclose = getattr(self._iterator, 'aclose', None)
        if aclose is not None:
            await aclose()


def tee(source: AsyncIterable[T], n: int = 2) -> tuple[AsyncIterator[T], ...]:
    """Split an asynchronous stream into `n` independent cursors."""
    return StreamTee(source, n).cursors


async def get_tools_from_stream(
    stream: AsyncIterable[ChunkStream],
) -> list[ToolCall]:
    """
    Read a streamed response to the end and assemble the tool calls it
    requests.

    Tool-call deltas are merged by their index: the id and the function
    name are taken from the first fragment that carries them, and the
    argument text is the concatenation of all fragments. The stream is
    always drained, since tool-call deltas may follow content.

    Returns:
        the complete tool calls, ordered by index, or an empty list
    """
    calls: dict[int, ToolCall] = {}
    last: int | None = None

    async for raw_chunk in stream:
        if not raw_chunk.choices:
            continue
        for fragment in raw_chunk.choices[0].delta.tool_calls or []:
            index = fragment.index
            if index is None:
                # no index: a new id opens a new call
                starts_new = last is None or bool(
                    fragment.id and calls[last].id
                    and fragment.id != calls[last].id
                )
                index = (max(calls) + 1 if calls else 0) if starts_new else last
            call = calls.setdefault(index, ToolCall(function=FunctionCall()))
            if fragment.id and not call.id:
                call.id = fragment.id
            if fragment.type:
                call.type = fragment.type
            if fragment.function.name and not call.function.name:
                call.function.name = fragment.function.name
            call.function.arguments += fragment.function.arguments
            last = index

    return [calls[index] for index in sorted(calls)]
