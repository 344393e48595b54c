import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_KEEP_HEADERS = "Cache-Control"
DEFAULT_CONFIG_PATH = "/.lfsconfig"


@dataclass(frozen=True)
class GatewaySettings:
    """Environment-level gateway configuration."""

    storage_url: str | None = None
    """Public base URL of the object storage; enables direct storage resolution."""

    keep_headers: tuple[str, ...] = (DEFAULT_KEEP_HEADERS,)
    """Origin (pointer) response headers carried over to the resolved response."""

    config_path: str = DEFAULT_CONFIG_PATH
    """Request path of the LFS configuration file, never served."""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GatewaySettings":
        """Read ``LFS_BUCKET_URL``, ``KEEP_HEADERS`` and ``LFS_CONFIG_PATH``."""
        env = os.environ if environ is None else environ
        return cls(
            storage_url=env.get("LFS_BUCKET_URL") or None,
            keep_headers=parse_header_list(
                env.get("KEEP_HEADERS") or DEFAULT_KEEP_HEADERS
            ),
            config_path=env.get("LFS_CONFIG_PATH") or DEFAULT_CONFIG_PATH,
        )


def parse_header_list(value: str) -> tuple[str, ...]:
    """Parse a comma separated list of header names."""
    return tuple(name.strip() for name in value.split(",") if name.strip())
