"""LFS object resolution against content-addressable storage.

Objects are looked up by oid directly in the storage binding. Responses are
kept in the platform's shared cache, keyed by the object's public storage URL,
so repeated requests for the same object never reach storage again.
"""

import logging

import httpx

from ._http import GatewayRequest, GatewayResponse, with_headers
from ._platform import CacheKey, GatewayPlatform, ObjectStorage, StoredObject
from .exceptions import LFSObjectNotFoundError, LFSStorageError

logger = logging.getLogger(__name__)

# LFS content is addressed by its hash, so it can never change.
IMMUTABLE_CACHE_CONTROL = "immutable, max-age=31536000"

# Request headers that select a different stored response.
CACHE_VARY_HEADERS = ("Range",)


def extend_path(url: httpx.URL | str, segment: str) -> httpx.URL:
    """Append a path segment to url, replacing at most one trailing slash."""
    url = httpx.URL(url)
    path = url.path[:-1] if url.path.endswith("/") else url.path
    return url.copy_with(path=f"{path}/{segment}")


async def get_object_from_storage(
    platform: GatewayPlatform,
    storage: ObjectStorage,
    storage_url: str,
    oid: str,
    request: GatewayRequest,
) -> GatewayResponse:
    """Serve an LFS object straight from storage, through the shared cache.

    On a cache miss the object is read with ``get`` (or ``head`` for HEAD
    requests) and a copy of the response is written back to the cache by a
    deferred task, with Cache-Control forced to immutable.

    Args:
        platform: Provides the shared cache and deferred task scheduling.
        storage: Content-addressable storage binding.
        storage_url: Public base URL of the storage, used for cache keys.
        oid: Object id (the storage key).
        request: Inbound request; its method selects get or head.

    Returns:
        Response built from the object's HTTP metadata and content.

    Raises:
        LFSObjectNotFoundError: If storage has no object for oid.
        LFSStorageError: If the storage binding fails.
    """
    cache_key = CacheKey.for_request(
        extend_path(storage_url, oid), request, CACHE_VARY_HEADERS
    )
    cached = await platform.cache_get(cache_key)
    if cached is not None:
        logger.debug("Storage cache hit for %s", oid[:12])
        return cached

    logger.debug("Storage cache miss for %s", oid[:12])
    method = request.method.upper()
    try:
        if method == "HEAD":
            stored = await storage.head(oid)
        else:
            stored = await storage.get(oid)
        response = await _object_response(stored) if stored is not None else None
    except Exception as e:
        raise LFSStorageError(f"Failed to read LFS object {oid[:12]}: {e}") from e

    if response is None:
        raise LFSObjectNotFoundError(f"LFS object {oid[:12]} not found in storage")

    cache_response = with_headers(
        response, [("Cache-Control", IMMUTABLE_CACHE_CONTROL)]
    )

    async def _populate_cache() -> None:
        await platform.cache_put(cache_key, cache_response)

    platform.defer(_populate_cache)

    logger.info("Resolved LFS object %s from storage", oid[:12])
    return response


async def _object_response(stored: StoredObject) -> GatewayResponse:
    headers = httpx.Headers(dict(stored.http_metadata))
    headers.setdefault("Content-Length", str(stored.size))
    if stored.etag:
        headers["ETag"] = stored.etag

    if stored.body is None:
        return GatewayResponse(status_code=200, headers=headers)

    # read once, shared by the client response and the cached copy
    chunks = [chunk async for chunk in stored.body]
    return GatewayResponse.from_bytes(b"".join(chunks), headers=headers)
