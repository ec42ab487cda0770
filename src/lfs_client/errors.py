"""Custom exceptions for lfs-client.

This module defines typed exceptions for better error handling and clearer
error messages throughout the library. Every error raised on purpose by
lfs-client derives from ``LfsError``.
"""


class LfsError(RuntimeError):
    """Base class for all LFS-related errors."""
    pass


# Local validation errors
class InvalidPointerError(LfsError):
    """Malformed pointer text, or content that does not match its pointer."""
    pass


class InvalidHashError(LfsError):
    """Object id is not exactly 64 hex characters."""
    pass


class InvalidUrlError(LfsError):
    """LFS endpoint could not be derived from a remote URL."""
    pass


# Remote errors
class RemoteError(LfsError):
    """Base class for LFS server communication errors."""
    pass


class NotFoundError(RemoteError):
    """Object not found on the server (404 or no download action)."""

    def __init__(self, oid: str):
        self.oid = oid
        super().__init__(f"Object not found: {oid}")


class ServerError(RemoteError):
    """Server reported a protocol-level failure."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"LFS server error: {message} (code: {code})")


class AuthError(RemoteError):
    """Authentication or authorization failed (401/403)."""
    pass


class TransportError(RemoteError):
    """Network or HTTP-layer failure opaque to lfs-client."""
    pass


# Storage errors
class StorageError(LfsError):
    """Local filesystem failure in the object store."""
    pass
