"""Git LFS batch API client.

Negotiates a download action for a single LFS object with the server named by
``lfs.url`` and fetches the object from the returned URL. Credentials embedded
in ``lfs.url`` are sent as Basic authorization, never in the request line.
"""

import base64
import logging

import httpx
from pydantic import BaseModel, Field, StrictBool, ValidationError

from ._cache import extend_path
from ._config import get_lfs_url
from ._http import GatewayRequest, GatewayResponse
from ._platform import GatewayPlatform
from ._pointer import LFSPointer
from .exceptions import LFSBatchError, LFSConfigError, LFSDownloadError

logger = logging.getLogger(__name__)

_LFS_MEDIA_TYPE = "application/vnd.git-lfs+json"

# Object bytes for an oid never change; let the edge keep them for a year.
OBJECT_CACHE_TTL = 31536000


class BatchAction(BaseModel):
    """Download action for a single LFS object. Short-lived, never persisted."""

    href: str
    header: dict[str, str] | None = None
    expires_in: int | None = None
    expires_at: str | None = None


class BatchObjectError(BaseModel):
    code: int | None = None
    message: str = "unknown"


class BatchObject(BaseModel):
    oid: str
    size: int | None = None
    authenticated: StrictBool | None = None
    actions: dict[str, BatchAction] = Field(default_factory=dict)
    error: BatchObjectError | None = None


class BatchResponse(BaseModel):
    transfer: str | None = None
    objects: list[BatchObject] = Field(default_factory=list)


class BatchRequestObject(BaseModel):
    oid: str
    size: int


class BatchRequestPayload(BaseModel):
    operation: str = "download"
    transfers: list[str] = Field(default_factory=lambda: ["basic"])
    objects: list[BatchRequestObject]
    hash_algo: str


def batch_request(lfs_url: str, pointer: LFSPointer) -> GatewayRequest:
    """Build the batch API download request for one object."""
    url = extend_path(lfs_url, "objects/batch")
    headers = httpx.Headers(
        {"Accept": _LFS_MEDIA_TYPE, "Content-Type": _LFS_MEDIA_TYPE}
    )

    if url.username or url.password:
        credentials = f"{url.username}:{url.password}".encode("utf-8")
        token = base64.b64encode(credentials).decode("ascii")
        headers["Authorization"] = f"Basic {token}"
        url = url.copy_with(username="", password="")

    payload = BatchRequestPayload(
        objects=[BatchRequestObject(oid=pointer.oid, size=pointer.size)],
        hash_algo=pointer.hash_algo,
    )
    return GatewayRequest(
        method="POST",
        url=url,
        headers=headers,
        content=payload.model_dump_json().encode("utf-8"),
    )


async def fetch_download_action(
    platform: GatewayPlatform,
    lfs_url: str,
    pointer: LFSPointer,
) -> BatchAction:
    """Get the download action for an LFS object via the batch API.

    Args:
        platform: Performs the outbound request.
        lfs_url: LFS server URL (``lfs.url``), optionally with credentials.
        pointer: The object to request.

    Returns:
        The download action for the requested object.

    Raises:
        LFSBatchError: If the batch API call fails or its response does not
            authorize a basic download of exactly this object.
    """
    try:
        request = batch_request(lfs_url, pointer)
    except httpx.InvalidURL as e:
        raise LFSBatchError(f"Invalid lfs.url: {e}") from e

    try:
        response = await platform.fetch(request)
        content = await response.aread()
    except (httpx.HTTPError, OSError) as e:
        raise LFSBatchError(f"Failed to reach LFS batch API: {e}") from e

    if not response.is_success:
        raise LFSBatchError(f"LFS batch API returned HTTP {response.status_code}")

    content_type = response.headers.get("Content-Type", "")
    if not content_type.startswith(_LFS_MEDIA_TYPE):
        raise LFSBatchError(
            f"LFS batch API returned unexpected content type '{content_type}'"
        )

    try:
        batch = BatchResponse.model_validate_json(content)
    except ValidationError as e:
        raise LFSBatchError(f"Failed to parse LFS batch API response: {e}") from e

    if batch.transfer not in (None, "basic"):
        raise LFSBatchError(
            f"LFS batch API chose unsupported transfer '{batch.transfer}'"
        )

    if not batch.objects:
        raise LFSBatchError(
            f"LFS batch API returned no object for {pointer.oid[:12]}"
        )

    obj = batch.objects[0]
    if obj.error is not None:
        raise LFSBatchError(
            f"LFS object {pointer.oid[:12]}: server error "
            f"{obj.error.code if obj.error.code is not None else '?'}: "
            f"{obj.error.message}"
        )

    if obj.oid != pointer.oid:
        raise LFSBatchError(
            f"LFS batch API answered for {obj.oid[:12]}, expected {pointer.oid[:12]}"
        )

    if obj.authenticated is not True:
        raise LFSBatchError(
            f"LFS object {pointer.oid[:12]}: download not authenticated"
        )

    action = obj.actions.get("download")
    if action is None:
        raise LFSBatchError(f"LFS object {pointer.oid[:12]}: no download action")

    return action


async def get_object_from_lfs(
    platform: GatewayPlatform,
    lfs_config: str | None,
    pointer: LFSPointer,
    request: GatewayRequest,
) -> GatewayResponse:
    """Resolve an LFS object through the LFS server named in ``.lfsconfig``.

    The object is fetched with the inbound request's method. Action headers are
    sent too, but inbound request headers (Range, conditionals, ...) take
    precedence over them.

    Raises:
        LFSConfigError: If no ``lfs.url`` is configured.
        LFSBatchError: If negotiation fails or the download href is invalid.
        LFSDownloadError: If the object cannot be fetched.
    """
    lfs_url = get_lfs_url(lfs_config) if lfs_config is not None else None
    if lfs_url is None:
        raise LFSConfigError(
            "No lfs.url configured and no storage binding available"
        )

    action = await fetch_download_action(platform, lfs_url, pointer)
    try:
        href = httpx.URL(action.href)
    except httpx.InvalidURL as e:
        raise LFSBatchError(
            f"LFS object {pointer.oid[:12]}: invalid download href: {e}"
        ) from e

    object_request = GatewayRequest(
        method=request.method,
        url=href,
        headers=_merge_action_headers(action, request),
    )

    try:
        response = await platform.fetch(object_request, cache_ttl=OBJECT_CACHE_TTL)
    except (httpx.HTTPError, OSError) as e:
        raise LFSDownloadError(
            f"Failed to download LFS object {pointer.oid[:12]}: {e}"
        ) from e

    logger.info(
        "Resolved LFS object %s via batch API (HTTP %d)",
        pointer.oid[:12],
        response.status_code,
    )
    return response


def _merge_action_headers(
    action: BatchAction, request: GatewayRequest
) -> httpx.Headers:
    """Action headers overlaid by the inbound request's headers."""
    request_items = [
        (name, value)
        for name, value in request.headers.multi_items()
        if name.lower() != "host"
    ]
    overridden = {name.lower() for name, _ in request_items}
    action_items = [
        (name, value)
        for name, value in (action.header or {}).items()
        if name.lower() not in overridden
    ]
    return httpx.Headers(action_items + request_items)
