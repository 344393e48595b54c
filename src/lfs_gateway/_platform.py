"""Capabilities the gateway core consumes from its hosting environment.

The core never talks to a cache, a storage bucket, a task scheduler or the
network directly. A host provides them through these protocols (see
``lfs_gateway.local`` for a filesystem/in-process implementation).
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Awaitable, Callable, Mapping
from dataclasses import dataclass, field

import httpx
from typing_extensions import Protocol

from ._http import GatewayRequest, GatewayResponse

Origin = Callable[[GatewayRequest], Awaitable[GatewayResponse]]
"""Static content origin: serves the (possibly pointer) file for a request."""


@dataclass(frozen=True)
class CacheKey:
    """Identity of a cached storage response."""

    url: str
    method: str
    headers: tuple[tuple[str, str], ...] = ()

    @classmethod
    def for_request(
        cls,
        url: httpx.URL | str,
        request: GatewayRequest,
        vary: tuple[str, ...],
    ) -> CacheKey:
        headers = tuple(
            sorted(
                (name.lower(), request.headers[name])
                for name in vary
                if name in request.headers
            )
        )
        return cls(url=str(url), method=request.method.upper(), headers=headers)


@dataclass
class StoredObject:
    """An object read from content-addressable storage."""

    key: str
    size: int
    http_metadata: Mapping[str, str] = field(default_factory=dict)
    """Native HTTP metadata (Content-Type, Content-Encoding, ...)."""

    etag: str | None = None
    """Quoted strong validator, if storage provides one."""

    body: AsyncIterable[bytes] | None = None
    """Object content; ``None`` for metadata-only (head) lookups."""


class ObjectStorage(Protocol):
    """Content-addressable storage binding: the object id is the lookup key."""

    async def get(self, key: str) -> StoredObject | None: ...

    async def head(self, key: str) -> StoredObject | None: ...


class GatewayPlatform(Protocol):
    """Shared cache, deferred tasks and outbound fetch."""

    async def cache_get(self, key: CacheKey) -> GatewayResponse | None: ...

    async def cache_put(self, key: CacheKey, response: GatewayResponse) -> None: ...

    def defer(self, fn: Callable[[], Awaitable[None]]) -> None:
        """Run fn after (or alongside) the response without delaying it.

        The platform guarantees completion before the request context ends.
        """
        ...

    async def fetch(
        self, request: GatewayRequest, *, cache_ttl: int | None = None
    ) -> GatewayResponse:
        """Perform an outbound request.

        ``cache_ttl`` hints that the response may be cached for that many
        seconds by whatever edge cache the platform has.
        """
        ...
