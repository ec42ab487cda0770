"""Hashing utilities for LFS object ids.

This module provides the SHA-256 object id type and the whole-buffer,
streaming and write-through ways of computing it. All three must agree for
the same logical content.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Generic, Tuple, TypeVar
import hashlib
import re

from .constants import CHUNK_SIZE
from .errors import InvalidHashError

_HEX64 = re.compile(r"^[0-9a-fA-F]{64}$")

W = TypeVar("W")


@dataclass(frozen=True, order=True)
class Oid:
    """LFS object id: the 32-byte SHA-256 digest of the object content.

    Equality and ordering follow the raw byte value. The canonical text form
    is 64 lowercase hex characters.
    """
    digest: bytes

    def __post_init__(self):
        if not isinstance(self.digest, bytes) or len(self.digest) != 32:
            raise InvalidHashError(
                f"expected 32 digest bytes, got {len(self.digest)}"
            )

    @classmethod
    def from_bytes(cls, digest: bytes) -> "Oid":
        return cls(bytes(digest))

    @classmethod
    def from_hex(cls, value: str) -> "Oid":
        """Parse an object id from its hex form.

        Surrounding whitespace is ignored. Upper-case input is accepted and
        normalized; anything other than 64 hex characters is rejected.

        Raises:
            InvalidHashError: If value is not exactly 64 hex characters
        """
        value = value.strip()
        if len(value) != 64:
            raise InvalidHashError(f"expected 64 hex chars, got {len(value)}")
        if not _HEX64.fullmatch(value):
            raise InvalidHashError(f"invalid hex: {value!r}")
        return cls(bytes.fromhex(value))

    @property
    def hex(self) -> str:
        return self.digest.hex()

    def __str__(self) -> str:
        return self.hex

    def __repr__(self) -> str:
        return f"Oid({self.hex})"


def hash_bytes(content: bytes) -> Oid:
    """Compute the object id of an in-memory buffer."""
    return Oid(hashlib.sha256(content).digest())


def hash_stream(reader: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Tuple[Oid, int]:
    """Hash a readable stream to exhaustion in bounded chunks.

    Args:
        reader: Binary file-like object
        chunk_size: Maximum bytes read per call

    Returns:
        Tuple of (object id, total bytes read)
    """
    sha256 = hashlib.sha256()
    size = 0
    for chunk in iter(lambda: reader.read(chunk_size), b""):
        sha256.update(chunk)
        size += len(chunk)
    return Oid(sha256.digest()), size


def hash_file(path: Path) -> Tuple[Oid, int]:
    """Hash a file on disk without loading it into memory."""
    with Path(path).open("rb") as f:
        return hash_stream(f)


class HashingWriter(Generic[W]):
    """Write-through decorator that hashes everything passed to ``inner``.

    Every write is forwarded unchanged, so upload and cache paths can compute
    the object id while streaming instead of buffering the object twice.

    Example:
        >>> writer = HashingWriter(open("out.bin", "wb"))
        >>> writer.write(b"Hello, World!")
        13
        >>> oid, size, f = writer.finish()
    """

    def __init__(self, inner: W):
        self._inner = inner
        self._sha256 = hashlib.sha256()
        self._size = 0
        self._finished = False

    @property
    def size(self) -> int:
        return self._size

    def write(self, data: bytes) -> int:
        if self._finished:
            raise ValueError("write to finished HashingWriter")
        written = self._inner.write(data)
        # Raw file objects may report short writes; only hash what went through
        if written is None:
            written = len(data)
        self._sha256.update(data[:written])
        self._size += written
        return written

    def flush(self) -> None:
        flush = getattr(self._inner, "flush", None)
        if flush is not None:
            flush()

    def finish(self) -> Tuple[Oid, int, W]:
        """Consume the writer.

        Returns:
            Tuple of (object id, bytes written, inner writer)
        """
        if self._finished:
            raise ValueError("HashingWriter already finished")
        self._finished = True
        return Oid(self._sha256.digest()), self._size, self._inner


__all__ = [
    "Oid",
    "hash_bytes",
    "hash_stream",
    "hash_file",
    "HashingWriter",
]
