"""Local implementations of the gateway's platform capabilities.

Lets the gateway run without a hosting platform: the origin is a checked-out
repository directory, storage is a directory of objects named by oid, the
shared cache lives in process memory and outbound requests go through httpx.
"""

import json
import logging
import mimetypes
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any

import anyio
import httpx
from anyio.abc import TaskGroup
from typing_extensions import Self

from ._http import GatewayRequest, GatewayResponse, empty_response
from ._platform import CacheKey, StoredObject
from ._util.async_bytes_reader import adapt_to_reader, aiter_chunks

logger = logging.getLogger(__name__)

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


class LocalPlatform:
    """In-process cache, task group backed deferred tasks and an httpx client.

    Must be used as an async context manager; leaving the context waits for
    all deferred tasks to finish.

    Args:
        client: Client for outbound requests; one is created if omitted.
        max_entries: Bound on the shared cache and on the edge memo, oldest
            entries are evicted first.
    """

    def __init__(
        self, client: httpx.AsyncClient | None = None, max_entries: int = 1024
    ) -> None:
        self._client = client
        self._max_entries = max_entries
        self._responses: dict[CacheKey, GatewayResponse] = {}
        self._edge: dict[tuple[str, str | None], tuple[float, GatewayResponse]] = {}
        self._task_group: TaskGroup | None = None
        self._exit_stack: AsyncExitStack | None = None

    async def __aenter__(self) -> Self:
        async with AsyncExitStack() as stack:
            if self._client is None:
                self._client = await stack.enter_async_context(httpx.AsyncClient())
            self._task_group = await stack.enter_async_context(
                anyio.create_task_group()
            )
            self._exit_stack = stack.pop_all()
        return self

    async def __aexit__(self, *exc_info: object) -> bool | None:
        if self._exit_stack is None:
            raise RuntimeError("LocalPlatform was not entered")
        try:
            return await self._exit_stack.__aexit__(*exc_info)  # type: ignore[arg-type]
        finally:
            self._task_group = None
            self._exit_stack = None

    async def cache_get(self, key: CacheKey) -> GatewayResponse | None:
        cached = self._responses.get(key)
        return cached.copy_with() if cached is not None else None

    async def cache_put(self, key: CacheKey, response: GatewayResponse) -> None:
        content = await response.aread()
        stored = GatewayResponse.from_bytes(
            content, status_code=response.status_code, headers=response.headers
        )
        if response.stream is None:
            stored.stream = None
        self._responses[key] = stored
        _evict_oldest(self._responses, self._max_entries)
        logger.debug("Cached %s %s", key.method, key.url)

    def defer(self, fn: Callable[[], Awaitable[None]]) -> None:
        if self._task_group is None:
            raise RuntimeError("LocalPlatform must be entered before deferring tasks")
        self._task_group.start_soon(fn)

    async def fetch(
        self, request: GatewayRequest, *, cache_ttl: int | None = None
    ) -> GatewayResponse:
        if self._client is None:
            raise RuntimeError("LocalPlatform must be entered before fetching")

        method = request.method.upper()
        edge_key = (str(request.url), request.headers.get("Range"))
        if cache_ttl is not None and method == "GET":
            entry = self._edge.get(edge_key)
            if entry is not None:
                if entry[0] > time.monotonic():
                    return entry[1].copy_with()
                del self._edge[edge_key]

        http_request = self._client.build_request(
            method, request.url, headers=request.headers, content=request.content
        )
        http_response = await self._client.send(http_request, stream=True)
        try:
            # raw bytes, so Content-Encoding/Content-Length stay accurate
            content = b"".join([chunk async for chunk in http_response.aiter_raw()])
        finally:
            await http_response.aclose()

        response = GatewayResponse.from_bytes(
            content,
            status_code=http_response.status_code,
            headers=http_response.headers,
        )
        if method == "HEAD":
            response.stream = None

        if cache_ttl is not None and method == "GET" and response.is_success:
            now = time.monotonic()
            expired = [k for k, (expires, _) in self._edge.items() if expires <= now]
            for key in expired:
                del self._edge[key]
            self._edge[edge_key] = (now + cache_ttl, response)
            _evict_oldest(self._edge, self._max_entries)

        return response.copy_with()


class DirectoryObjectStorage:
    """Content-addressable storage in a directory: object ``<oid>`` at ``root/<oid>``.

    An optional ``<oid>.json`` sidecar holds the object's HTTP metadata
    (e.g. ``{"Content-Type": "image/png"}``).
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    async def get(self, key: str) -> StoredObject | None:
        return await self._lookup(key, with_body=True)

    async def head(self, key: str) -> StoredObject | None:
        return await self._lookup(key, with_body=False)

    async def _lookup(self, key: str, with_body: bool) -> StoredObject | None:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            return None

        path = anyio.Path(self.root / key)
        if not await path.is_file():
            return None

        size = (await path.stat()).st_size
        metadata = {"Content-Type": _DEFAULT_CONTENT_TYPE}
        sidecar = anyio.Path(self.root / f"{key}.json")
        if await sidecar.is_file():
            metadata.update(json.loads(await sidecar.read_text(encoding="utf-8")))
        metadata["Content-Length"] = str(size)

        return StoredObject(
            key=key,
            size=size,
            http_metadata=metadata,
            etag=f'"{key}"',
            body=_iter_file(Path(path)) if with_body else None,
        )


class StaticDirectoryOrigin:
    """Static site origin serving files from a directory.

    Args:
        root: Site root (e.g. a repository checkout without LFS smudging).
        cache_control: Cache-Control sent with every file, if any.
    """

    def __init__(self, root: Path, cache_control: str | None = None) -> None:
        self.root = Path(root)
        self.cache_control = cache_control

    async def __call__(self, request: GatewayRequest) -> GatewayResponse:
        path = await self._file_for(request.url.path)
        if path is None:
            return empty_response(404)

        content_type, _ = mimetypes.guess_type(path.name)
        headers = {
            "Content-Type": content_type or _DEFAULT_CONTENT_TYPE,
            "Content-Length": str((await anyio.Path(path).stat()).st_size),
        }
        if self.cache_control:
            headers["Cache-Control"] = self.cache_control

        return GatewayResponse(
            status_code=200, headers=httpx.Headers(headers), stream=_iter_file(path)
        )

    async def _file_for(self, url_path: str) -> Path | None:
        root = await anyio.Path(self.root).resolve()
        candidate = await (root / url_path.lstrip("/")).resolve()
        if not Path(candidate).is_relative_to(Path(root)):
            return None
        if await candidate.is_dir():
            candidate = candidate / "index.html"
        if not await candidate.is_file():
            return None
        return Path(candidate)


def read_lfs_config(root: Path) -> str | None:
    """Read ``.lfsconfig`` from a repository root, if present."""
    path = Path(root) / ".lfsconfig"
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


async def _iter_file(path: Path) -> AsyncIterator[bytes]:
    with open(path, "rb") as f:
        async with adapt_to_reader(f) as reader:
            async for chunk in aiter_chunks(reader):
                yield chunk


def _evict_oldest(entries: dict[Any, Any], max_entries: int) -> None:
    while len(entries) > max_entries:
        del entries[next(iter(entries))]
