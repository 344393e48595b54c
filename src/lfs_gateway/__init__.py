"""HTTP gateway that transparently serves Git LFS objects for pointer files."""

from ._http import GatewayRequest, GatewayResponse
from ._platform import CacheKey, GatewayPlatform, ObjectStorage, Origin, StoredObject
from ._pointer import LFSPointer
from ._settings import GatewaySettings
from .exceptions import LFSError
from .resolver import LFSGateway

__all__ = [
    "CacheKey",
    "GatewayPlatform",
    "GatewayRequest",
    "GatewayResponse",
    "GatewaySettings",
    "LFSError",
    "LFSGateway",
    "LFSPointer",
    "ObjectStorage",
    "Origin",
    "StoredObject",
]
