from collections.abc import AsyncIterable, AsyncIterator
from typing import IO, Protocol, TypeGuard, cast

import anyio
from typing_extensions import Self


class AsyncBytesReader(Protocol):
    """Protocol defining the minimal async file-like interface for body streams.

    Response bodies arrive either as async iterables of chunks (network, origin)
    or as synchronous binary files (local storage). Both are consumed through an
    awaitable read() that:
    - Returns bytes (binary mode)
    - Accepts a size parameter for the maximum number of bytes to read
    - Returns fewer bytes only when the source is exhausted

    Also supports async context manager protocol for usage ensuring proper resource
    cleanup.
    """

    async def read(self, size: int) -> bytes: ...
    async def aclose(self) -> None: ...
    async def __aenter__(self) -> Self: ...
    async def __aexit__(self, *args: object) -> None: ...


def _is_async_iterable(
    io_or_iter: IO[bytes] | AsyncIterable[bytes],
) -> TypeGuard[AsyncIterable[bytes]]:
    return hasattr(io_or_iter, "__aiter__")


def adapt_to_reader(io_or_iter: IO[bytes] | AsyncIterable[bytes]) -> AsyncBytesReader:
    """Adapt a byte source to an async file-like interface.

    Use as async context manager to ensure cleanup of underlying async iterators.
    """
    return (
        _BytesIterableReader(io_or_iter)
        if _is_async_iterable(io_or_iter)
        else _BytesIOReader(cast(IO[bytes], io_or_iter))
    )


async def aiter_chunks(
    reader: AsyncBytesReader, chunk_size: int = 65536
) -> AsyncIterator[bytes]:
    """Yield successive chunks from a reader until it is exhausted."""
    while True:
        chunk = await reader.read(chunk_size)
        if not chunk:
            return
        yield chunk


async def peek_bytes(
    body: AsyncIterable[bytes], size: int
) -> tuple[bytes, AsyncIterable[bytes]]:
    """Read up to size leading bytes of body without consuming it.

    Returns:
        Tuple of (prefix, replay) where replay yields the complete original
        body, prefix included. The original iterable must not be used again;
        ``replay.aclose()`` releases it without reading the rest.
    """
    reader = _BytesIterableReader(body)
    prefix = await reader.read(size)
    return (prefix, _ReplayStream(prefix, reader))


class _ReplayStream(AsyncIterable[bytes]):
    """Peeked prefix followed by the rest of the underlying body."""

    def __init__(self, prefix: bytes, reader: "_BytesIterableReader") -> None:
        self._prefix = prefix
        self._reader = reader

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async with self._reader:
            if self._prefix:
                yield self._prefix
            async for chunk in self._reader.aiter_remaining():
                yield chunk

    async def aclose(self) -> None:
        await self._reader.aclose()


class _BytesIOReader(AsyncBytesReader):
    """Wrapper to make synchronous I/O operations async-compatible.

    Local files are read with strictly synchronous standard library I/O. To avoid
    blocking the event loop, this wrapper uses anyio.to_thread to run blocking
    reads in a thread pool while maintaining async/await compatibility.

    The internal lock ensures thread-safe access to the underlying synchronous I/O object.
    """

    def __init__(self, sync_io: IO[bytes]):
        self._sync_io = sync_io
        self._lock = anyio.Lock()

    async def read(self, size: int) -> bytes:
        async with self._lock:
            return await anyio.to_thread.run_sync(self._sync_io.read, size)

    async def aclose(self) -> None:
        pass  # caller owns the IO[bytes]

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


class _BytesIterableReader(AsyncBytesReader):
    """AsyncBytesReader implementation that reads from an AsyncIterable[bytes]."""

    def __init__(self, async_iterable: AsyncIterable[bytes]):
        self._async_iter: AsyncIterator[bytes] = aiter(async_iterable)
        self._current_chunk: bytes = b""
        self._offset = 0

    async def read(self, size: int) -> bytes:
        if size < 0:
            raise ValueError("size must be non-negative")
        if size == 0:
            return b""

        chunks_to_return: list[bytes] = []
        total = 0

        while total < size:
            # Get more data from current chunk if available
            available = len(self._current_chunk) - self._offset
            if available > 0:
                bytes_to_take = min(size - total, available)
                chunks_to_return.append(
                    self._current_chunk[self._offset : self._offset + bytes_to_take]
                )
                self._offset += bytes_to_take
                total += bytes_to_take
            else:
                # Current chunk exhausted, fetch next
                try:
                    self._current_chunk = await anext(self._async_iter)
                    self._offset = 0
                except StopAsyncIteration:
                    break  # No more data

        return b"".join(chunks_to_return)

    async def aiter_remaining(self) -> AsyncIterator[bytes]:
        """Yield everything not yet returned by read(), chunk by chunk."""
        remainder = self._current_chunk[self._offset :]
        self._current_chunk = b""
        self._offset = 0
        if remainder:
            yield remainder
        async for chunk in self._async_iter:
            yield chunk

    async def aclose(self) -> None:
        if hasattr(self._async_iter, "aclose"):
            await self._async_iter.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
