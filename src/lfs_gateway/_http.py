"""Minimal HTTP request/response model shared by the gateway and its platform."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass, field

import httpx

ALLOW_METHODS = "GET, HEAD, OPTIONS"


class ByteStream(AsyncIterable[bytes]):
    """Re-iterable async body backed by in-memory bytes."""

    def __init__(self, content: bytes) -> None:
        self._content = content

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._content:
            yield self._content


@dataclass
class GatewayRequest:
    """Inbound (or outbound) HTTP request."""

    method: str
    url: httpx.URL
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: bytes | None = None

    def copy_with(self, *, method: str) -> GatewayRequest:
        return GatewayRequest(
            method=method,
            url=self.url,
            headers=self.headers.copy(),
            content=self.content,
        )


@dataclass
class GatewayResponse:
    """HTTP response whose body is an async byte stream.

    A ``stream`` of ``None`` means the response has no body at all, which is
    distinct from an empty body.
    """

    status_code: int = 200
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    stream: AsyncIterable[bytes] | None = None

    @classmethod
    def from_bytes(
        cls,
        content: bytes,
        status_code: int = 200,
        headers: httpx.Headers | dict[str, str] | None = None,
    ) -> GatewayResponse:
        return cls(
            status_code=status_code,
            headers=httpx.Headers(headers),
            stream=ByteStream(content),
        )

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    async def aread(self) -> bytes:
        """Read the whole body, leaving it readable again afterwards."""
        if self.stream is None:
            return b""
        if isinstance(self.stream, ByteStream):
            return b"".join([chunk async for chunk in self.stream])
        content = b"".join([chunk async for chunk in self.stream])
        self.stream = ByteStream(content)
        return content

    async def aclose(self) -> None:
        """Release the body stream without reading it."""
        aclose = getattr(self.stream, "aclose", None)
        if aclose is not None:
            await aclose()

    def copy_with(
        self, *, headers: httpx.Headers | None = None, drop_body: bool = False
    ) -> GatewayResponse:
        return GatewayResponse(
            status_code=self.status_code,
            headers=headers if headers is not None else self.headers.copy(),
            stream=None if drop_body else self.stream,
        )


def empty_response(
    status_code: int, headers: dict[str, str] | None = None
) -> GatewayResponse:
    return GatewayResponse(status_code=status_code, headers=httpx.Headers(headers))


def with_headers(
    response: GatewayResponse, new_headers: Iterable[tuple[str, str | None]]
) -> GatewayResponse:
    """Copy response, setting headers or removing those whose value is None."""
    updates = list(new_headers)
    if not updates:
        return response

    headers = response.headers.copy()
    for name, value in updates:
        if value is None:
            if name in headers:
                del headers[name]
        else:
            headers[name] = value
    return response.copy_with(headers=headers)


def with_headers_from_source(
    response: GatewayResponse, source: GatewayResponse, names: Iterable[str]
) -> GatewayResponse:
    """Overlay the named headers of source onto response."""
    return with_headers(response, [(name, source.headers.get(name)) for name in names])
