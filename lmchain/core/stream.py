"""
Chunk streams: the lazy, cancellable sequences of partial results
returned by the `astream`/`stream` member functions of units.

A `ChunkStream` wraps an asynchronous iterator. It may be consumed
once, either asynchronously

    ```python
    async for chunk in unit.astream(value):
        ...
    ```

or synchronously, in which case a private event loop drives the
underlying iterator (do not do this from inside a running loop):

    ```python
    for chunk in unit.stream(value):
        ...
    ```

Chunks are delivered in production order. Closing the stream early
(`aclose`, breaking out of a synchronous loop, or cancelling the
consuming task) closes the upstream iterators, so that no remote call
keeps running after the consumer has gone.

The chunks of one stream concatenate to the complete result with
`concat_chunks`.
"""

import asyncio
from collections.abc import (
    AsyncIterator,
    Iterable,
    Iterator,
    Mapping,
)
from typing import Any, Generic, TypeVar

from langchain_core.messages import BaseMessageChunk

T = TypeVar('T')

_MISSING: Any = object()


def add_chunks(left: Any, right: Any) -> Any:
    """Concatenates two chunks.

    Strings, bytes, lists, tuples and message chunks are added;
    mappings are merged key by key, concatenating the values of keys
    present in both; for all other values the later chunk replaces the
    earlier one.
    """
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        merged: dict[Any, Any] = dict(left)  # type: ignore
        for key, value in right.items():  # type: ignore
            if key in merged:
                merged[key] = add_chunks(merged[key], value)
            else:
                merged[key] = value
        return merged
    if isinstance(left, BaseMessageChunk) and isinstance(
        right, BaseMessageChunk
    ):
        return left + right
    for kind in (str, bytes, list, tuple):
        if isinstance(left, kind) and isinstance(right, kind):
            return left + right  # type: ignore
    return right


def concat_chunks(chunks: Iterable[T], default: Any = _MISSING) -> T:
    """Concatenates a sequence of chunks in order.

    Raises:
        ValueError: if chunks is empty and no default is given.
    """
    result: Any = _MISSING
    for chunk in chunks:
        result = chunk if result is _MISSING else add_chunks(result, chunk)
    if result is _MISSING:
        if default is _MISSING:
            raise ValueError("Cannot concatenate an empty chunk sequence")
        return default
    return result


def _chunk_to_bytes(chunk: Any, encoding: str) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    content = getattr(chunk, "content", chunk)
    if not isinstance(content, str):
        content = str(content)
    return content.encode(encoding)


class ChunkStream(Generic[T]):
    """A finite, non-restartable, lazy sequence of chunks.

    Once exhausted, failed or closed the stream yields nothing more.
    An exception raised by the source terminates the stream and is
    propagated to the consumer.
    """

    def __init__(
        self, source: AsyncIterator[T], name: str = "stream"
    ) -> None:
        self._source = source
        self.name = name
        self._done = False
        self.chunks_delivered = 0

    @property
    def done(self) -> bool:
        return self._done

    def __aiter__(self) -> 'ChunkStream[T]':
        return self

    async def __anext__(self) -> T:
        if self._done:
            raise StopAsyncIteration
        try:
            chunk: T = await self._source.__anext__()
        except BaseException:
            # StopAsyncIteration, errors, and cancellation are terminal
            self._done = True
            raise
        self.chunks_delivered += 1
        return chunk

    async def aclose(self) -> None:
        """Stops the stream and closes the source iterator."""
        self._done = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    async def collect(self, default: Any = _MISSING) -> T:
        """Consumes the stream and returns the concatenated chunks."""
        chunks: list[T] = [chunk async for chunk in self]
        return concat_chunks(chunks, default)

    async def aiter_bytes(
        self, encoding: str = "utf-8"
    ) -> AsyncIterator[bytes]:
        """Encodes the chunks as bytes, for use as a response body."""
        try:
            async for chunk in self:
                yield _chunk_to_bytes(chunk, encoding)
        finally:
            await self.aclose()

    def __iter__(self) -> Iterator[T]:
        return _iterate_sync(self)

    def iter_bytes(self, encoding: str = "utf-8") -> Iterator[bytes]:
        """Synchronous version of aiter_bytes."""
        for chunk in self:
            yield _chunk_to_bytes(chunk, encoding)

    def __repr__(self) -> str:
        state = "done" if self._done else "open"
        return (
            f"ChunkStream({self.name!r}, {state}, "
            f"delivered={self.chunks_delivered})"
        )


def _check_no_running_loop() -> None:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return
    raise RuntimeError(
        "Synchronous invocation inside a running event loop: "
        "use the asynchronous interface (ainvoke/astream) instead."
    )


def _iterate_sync(stream: ChunkStream[T]) -> Iterator[T]:
    _check_no_running_loop()
    loop = asyncio.new_event_loop()
    try:
        while True:
            try:
                chunk = loop.run_until_complete(stream.__anext__())
            except StopAsyncIteration:
                break
            yield chunk
    finally:
        try:
            loop.run_until_complete(stream.aclose())
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()


def run_sync(coroutine: Any) -> Any:
    """Runs a coroutine to completion in a fresh event loop."""
    try:
        _check_no_running_loop()
    except RuntimeError:
        coroutine.close()
        raise
    return asyncio.run(coroutine)
