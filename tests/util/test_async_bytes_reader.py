from io import BytesIO
from typing import AsyncIterator

import pytest

from lfs_gateway._util.async_bytes_reader import (
    adapt_to_reader,
    aiter_chunks,
    peek_bytes,
)


async def bytes_iterator(data: bytes, chunk_size: int) -> AsyncIterator[bytes]:
    """Create an async iterator that yields bytes in chunks."""
    for i in range(0, len(data), chunk_size):
        yield data[i : i + chunk_size]


@pytest.mark.parametrize(
    "data,read_sizes,expected_results",
    [
        # Simple read
        (b"hello world", [11], [b"hello world"]),
        # Multiple reads
        (b"hello world", [5, 6], [b"hello", b" world"]),
        # Read more than available
        (b"hello", [10], [b"hello"]),
        # Multiple reads with last one exceeding data
        (b"hello world", [5, 10], [b"hello", b" world"]),
        # Read zero bytes
        (b"hello", [0, 5], [b"", b"hello"]),
        # Multiple small reads
        (b"abcdefghij", [1, 2, 3, 4], [b"a", b"bc", b"def", b"ghij"]),
        # Empty data
        (b"", [10], [b""]),
        # Single byte reads
        (b"abc", [1, 1, 1], [b"a", b"b", b"c"]),
        # Read after exhaustion
        (b"hi", [2, 5], [b"hi", b""]),
    ],
)
async def test_io_bytes_reader(
    data: bytes, read_sizes: list[int], expected_results: list[bytes]
) -> None:
    """Test adapt_to_reader with IO[bytes] input."""
    io = BytesIO(data)
    async with adapt_to_reader(io) as reader:
        for size, expected in zip(read_sizes, expected_results, strict=True):
            result = await reader.read(size)
            assert result == expected


@pytest.mark.parametrize(
    "data,chunk_size,read_sizes,expected_results",
    [
        # Simple read with single chunk
        (b"hello world", 11, [11], [b"hello world"]),
        # Multiple reads with single chunk
        (b"hello world", 11, [5, 6], [b"hello", b" world"]),
        # Multiple reads with multiple chunks
        (b"hello world", 3, [5, 6], [b"hello", b" world"]),
        # Read more than available
        (b"hello", 2, [10], [b"hello"]),
        # Multiple reads with last one exceeding data
        (b"hello world", 4, [5, 10], [b"hello", b" world"]),
        # Read zero bytes
        (b"hello", 2, [0, 5], [b"", b"hello"]),
        # Multiple small reads with small chunks
        (b"abcdefghij", 2, [1, 2, 3, 4], [b"a", b"bc", b"def", b"ghij"]),
        # Empty data
        (b"", 10, [10], [b""]),
        # Single byte reads with single byte chunks
        (b"abc", 1, [1, 1, 1], [b"a", b"b", b"c"]),
        # Read after exhaustion
        (b"hi", 1, [2, 5], [b"hi", b""]),
        # Large read size with small chunks (buffering test)
        (b"0123456789", 2, [10], [b"0123456789"]),
        # Read spanning multiple chunks
        (b"abcdefghij", 3, [7], [b"abcdefg"]),
    ],
)
async def test_async_iterator_reader(
    data: bytes, chunk_size: int, read_sizes: list[int], expected_results: list[bytes]
) -> None:
    """Test adapt_to_reader with AsyncIterator[bytes] input."""
    async_iter = bytes_iterator(data, chunk_size)
    async with adapt_to_reader(async_iter) as reader:
        for size, expected in zip(read_sizes, expected_results, strict=True):
            result = await reader.read(size)
            assert result == expected


@pytest.mark.parametrize(
    "data,chunk_size,read_size",
    [
        (b"hello world", 3, 5),  # Partial read of chunked data
        (b"abcdefghij", 2, 4),  # Read across chunk boundaries
        (b"test", 1, 2),  # Small chunks, partial read
    ],
)
async def test_aclose_is_idempotent(
    data: bytes, chunk_size: int, read_size: int
) -> None:
    """Test that aclose() can be called multiple times without error."""
    reader = adapt_to_reader(bytes_iterator(data, chunk_size))
    await reader.read(read_size)
    await reader.aclose()
    await reader.aclose()  # Should not raise


@pytest.mark.parametrize(
    "source_type,data",
    [
        ("io", b"hello"),
        ("iterable", b"hello"),
    ],
)
async def test_negative_read_size_raises(source_type: str, data: bytes) -> None:
    """Test that negative read size raises ValueError for async iterables."""
    source = bytes_iterator(data, 5) if source_type == "iterable" else BytesIO(data)
    async with adapt_to_reader(source) as reader:
        if source_type == "iterable":
            with pytest.raises(ValueError, match="non-negative"):
                await reader.read(-1)
        else:
            # IO[bytes] delegates to underlying read(), behavior varies
            await reader.read(-1)  # Should not raise for IO


@pytest.mark.parametrize(
    "data,chunk_size,peek_size,expected_prefix",
    [
        # Prefix inside the first chunk
        (b"hello world", 8, 5, b"hello"),
        # Prefix spanning chunks, ending mid-chunk
        (b"hello world", 3, 5, b"hello"),
        # Prefix on a chunk boundary
        (b"hello world", 5, 5, b"hello"),
        # Body shorter than the peek size
        (b"hi", 1, 256, b"hi"),
        # Empty body
        (b"", 4, 256, b""),
    ],
)
async def test_peek_bytes_replays_whole_body(
    data: bytes, chunk_size: int, peek_size: int, expected_prefix: bytes
) -> None:
    """peek_bytes returns the prefix and a stream that still yields everything."""
    prefix, replay = await peek_bytes(bytes_iterator(data, chunk_size), peek_size)

    assert prefix == expected_prefix
    assert b"".join([chunk async for chunk in replay]) == data


async def test_peek_bytes_reads_lazily() -> None:
    """Only the chunks needed for the prefix are pulled from the source."""
    pulled: list[bytes] = []

    async def source() -> AsyncIterator[bytes]:
        for chunk in [b"abc", b"def", b"ghi"]:
            pulled.append(chunk)
            yield chunk

    prefix, replay = await peek_bytes(source(), 4)

    assert prefix == b"abcd"
    assert pulled == [b"abc", b"def"]
    assert [chunk async for chunk in replay] == [b"abcd", b"ef", b"ghi"]


async def test_peek_bytes_replay_aclose_releases_source() -> None:
    """Closing the replay without reading it closes the source iterator."""
    closed: list[bool] = []

    async def source() -> AsyncIterator[bytes]:
        try:
            for chunk in [b"abc", b"def", b"ghi"]:
                yield chunk
        finally:
            closed.append(True)

    prefix, replay = await peek_bytes(source(), 4)
    await replay.aclose()  # type: ignore[attr-defined]

    assert prefix == b"abcd"
    assert closed == [True]


async def test_aiter_chunks_from_io() -> None:
    async with adapt_to_reader(BytesIO(b"0123456789")) as reader:
        chunks = [chunk async for chunk in aiter_chunks(reader, 4)]

    assert chunks == [b"0123", b"4567", b"89"]
