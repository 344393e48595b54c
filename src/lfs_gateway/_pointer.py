"""LFS pointer detection and parsing."""

import logging
import re
from dataclasses import dataclass

from ._http import GatewayResponse
from ._util.async_bytes_reader import peek_bytes
from ._util.text import split_first

logger = logging.getLogger(__name__)

LFS_POINTER_VERSION = "version https://git-lfs.github.com/spec/v1\n"

# Pointer files are tiny; git-lfs itself only inspects the first 100 bytes.
MAX_POINTER_SIZE = 256

_SIZE_PATTERN = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class LFSPointer:
    """Parsed LFS pointer file."""

    hash_algo: str
    """Hash algorithm prefix of the oid (e.g. ``sha256``)."""

    oid: str
    """Content hash of the real object."""

    size: int
    """File size in bytes."""


def format_lfs_pointer(pointer: LFSPointer) -> str:
    """Render the canonical pointer file text."""
    return (
        f"{LFS_POINTER_VERSION}"
        f"oid {pointer.hash_algo}:{pointer.oid}\n"
        f"size {pointer.size}\n"
    )


async def read_lfs_pointer(response: GatewayResponse) -> LFSPointer | None:
    """Detect whether a response body is an LFS pointer.

    Peeks at the leading bytes of the body; the response stream is replaced
    with an equivalent one so the full body is still available afterwards.
    """
    if response.stream is None:
        return None

    prefix, response.stream = await peek_bytes(response.stream, MAX_POINTER_SIZE)
    return parse_pointer_bytes(prefix)


def parse_pointer_bytes(data: bytes) -> LFSPointer | None:
    """Parse pointer content from raw bytes (strict UTF-8)."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None

    return parse_pointer_text(text)


def parse_pointer_text(text: str) -> LFSPointer | None:
    """Parse LFS pointer content from a string.

    Returns:
        Parsed pointer, or None if the text is not a valid LFS pointer.
    """
    if not text.startswith(LFS_POINTER_VERSION):
        return None

    hash_algo: str | None = None
    oid: str | None = None
    size: int | None = None
    for line in text[len(LFS_POINTER_VERSION) :].split("\n"):
        if not line:
            continue

        key, value = split_first(line, " ")
        if value is None:
            return None

        if key == "oid":
            hash_algo, oid = split_first(value, ":")
            if oid is None:
                return None
        elif key == "size":
            if not _SIZE_PATTERN.fullmatch(value):
                return None
            size = int(value)

    # size 0 counts as absent, like a missing size line
    if hash_algo and oid and size:
        return LFSPointer(hash_algo=hash_algo, oid=oid, size=size)

    logger.debug("Incomplete LFS pointer, treating as regular content")
    return None
