"""LFS-related exceptions."""


class LFSError(Exception):
    """Base exception for LFS operations."""

    status_code: int = 502
    """HTTP status the gateway answers with when this error surfaces."""


class LFSConfigError(LFSError):
    """No usable resolver (missing lfs.url or storage binding)."""

    status_code = 500


class LFSBatchError(LFSError):
    """Error calling LFS batch API."""


class LFSDownloadError(LFSError):
    """Error downloading LFS object."""


class LFSStorageError(LFSError):
    """Error reading LFS object from storage."""


class LFSObjectNotFoundError(LFSStorageError):
    """LFS object is not present in storage."""

    status_code = 404
