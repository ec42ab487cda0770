"""Client side of the Git LFS protocol: pointers, batch transfers, local store."""

from .client import LfsClient, TransferState
from .config import ClientConfig, ClientConfigBuilder, load_config
from .constants import CLIENT_VERSION as __version__
from .endpoint import derive_lfs_url
from .errors import (
    AuthError,
    InvalidHashError,
    InvalidPointerError,
    InvalidUrlError,
    LfsError,
    NotFoundError,
    RemoteError,
    ServerError,
    StorageError,
    TransportError,
)
from .filter import LfsAttributes, LfsFilter
from .hashing import HashingWriter, Oid, hash_bytes, hash_file, hash_stream
from .local_cache import ObjectStore, StoreWriter
from .pointer import Pointer

__all__ = [
    "AuthError",
    "ClientConfig",
    "ClientConfigBuilder",
    "HashingWriter",
    "InvalidHashError",
    "InvalidPointerError",
    "InvalidUrlError",
    "LfsAttributes",
    "LfsClient",
    "LfsError",
    "LfsFilter",
    "NotFoundError",
    "ObjectStore",
    "Oid",
    "Pointer",
    "RemoteError",
    "ServerError",
    "StorageError",
    "StoreWriter",
    "TransferState",
    "TransportError",
    "derive_lfs_url",
    "hash_bytes",
    "hash_file",
    "hash_stream",
    "load_config",
]
