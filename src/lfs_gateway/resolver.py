"""Request handling with LFS transparent substitution.

Serves requests from the static origin and, when the origin answers with an LFS
pointer file, replaces the response with the real object's content.
"""

import logging

import httpx

from ._cache import get_object_from_storage
from ._client import get_object_from_lfs
from ._http import (
    ALLOW_METHODS,
    GatewayRequest,
    GatewayResponse,
    empty_response,
    with_headers_from_source,
)
from ._platform import GatewayPlatform, ObjectStorage, Origin
from ._pointer import LFSPointer, read_lfs_pointer
from ._settings import GatewaySettings
from .exceptions import LFSError

logger = logging.getLogger(__name__)


class LFSGateway:
    """Gateway in front of a static origin that resolves LFS pointers.

    Args:
        platform: Shared cache, deferred tasks and outbound fetch.
        origin: Serves the repository content (pointer files included).
        lfs_config: Text of the repository's ``.lfsconfig``, if any.
        storage: Content-addressable storage binding for LFS objects.
        settings: Environment level settings.
    """

    def __init__(
        self,
        platform: GatewayPlatform,
        origin: Origin,
        *,
        lfs_config: str | None = None,
        storage: ObjectStorage | None = None,
        settings: GatewaySettings | None = None,
    ) -> None:
        self.platform = platform
        self.origin = origin
        self.lfs_config = lfs_config
        self.storage = storage
        self.settings = settings or GatewaySettings()

    async def handle(self, request: GatewayRequest) -> GatewayResponse:
        """Answer a single request."""
        if request.url.path == self.settings.config_path:
            return empty_response(404)

        method = request.method.upper()
        if method not in ("GET", "HEAD"):
            return empty_response(
                200 if method == "OPTIONS" else 405, {"Allow": ALLOW_METHODS}
            )

        # A HEAD of a pointer file would not return the pointer, so always GET
        # from the origin; the final headers then describe the real object.
        if method == "GET":
            response = await self.origin(request)
        else:
            response = await self.origin(request.copy_with(method="GET"))

        if response.stream is None:
            return response

        pointer = await read_lfs_pointer(response)
        if pointer is None:
            if method == "HEAD":
                await response.aclose()
                return response.copy_with(drop_body=True)
            return response

        await response.aclose()
        logger.debug(
            "LFS pointer at %s (%s:%s)",
            request.url.path,
            pointer.hash_algo,
            pointer.oid[:12],
        )
        try:
            object_response = await self._resolve(pointer, request)
        except LFSError as e:
            logger.warning(
                "Could not resolve LFS object at %s: %s", request.url.path, e
            )
            return _error_response(e)

        return with_headers_from_source(
            object_response, response, self.settings.keep_headers
        )

    async def _resolve(
        self, pointer: LFSPointer, request: GatewayRequest
    ) -> GatewayResponse:
        if self.storage is not None and self.settings.storage_url:
            return await get_object_from_storage(
                self.platform,
                self.storage,
                self.settings.storage_url,
                pointer.oid,
                request,
            )

        return await get_object_from_lfs(
            self.platform, self.lfs_config, pointer, request
        )


def _error_response(error: LFSError) -> GatewayResponse:
    return GatewayResponse.from_bytes(
        f"{error}\n".encode("utf-8"),
        status_code=error.status_code,
        headers=httpx.Headers({"Content-Type": "text/plain; charset=utf-8"}),
    )
