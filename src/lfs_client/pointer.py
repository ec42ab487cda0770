"""LFS pointer file format.

Pointer files are the small text records committed in place of large file
content. The encoding must match git-lfs byte-for-byte::

    version https://git-lfs.github.com/spec/v1
    oid sha256:<64 lowercase hex>
    size <decimal bytes>
"""

from dataclasses import dataclass
from typing import BinaryIO, Optional
import re

from .constants import LFS_SPEC_LEGACY, LFS_SPEC_V1, MAX_POINTER_SIZE
from .errors import InvalidHashError, InvalidPointerError
from .hashing import Oid, hash_bytes, hash_stream

_KNOWN_VERSIONS = (LFS_SPEC_V1, LFS_SPEC_LEGACY)
_POINTER_PREFIXES = tuple(f"version {v}".encode("ascii") for v in _KNOWN_VERSIONS)
_SIZE = re.compile(r"^[0-9]+$")
_MAX_SIZE = 2**64 - 1


@dataclass(frozen=True)
class Pointer:
    """Reference to an LFS object: its object id and its size in bytes."""
    oid: Oid
    size: int

    def __post_init__(self):
        if not isinstance(self.oid, Oid):
            raise TypeError(f"oid must be an Oid, got {type(self.oid).__name__}")
        if self.size < 0 or self.size > _MAX_SIZE:
            raise InvalidPointerError(f"size out of range: {self.size}")

    @classmethod
    def from_content(cls, content: bytes) -> "Pointer":
        return cls(hash_bytes(content), len(content))

    @classmethod
    def from_stream(cls, reader: BinaryIO) -> "Pointer":
        """Build a pointer by hashing a stream without buffering it."""
        oid, size = hash_stream(reader)
        return cls(oid, size)

    @classmethod
    def parse(cls, content: bytes) -> "Pointer":
        """Parse a pointer from its text representation.

        The version, oid and size lines are required; unknown extra lines
        are ignored so newer pointer extensions still parse.

        Raises:
            InvalidPointerError: If content is not a well-formed pointer
        """
        if len(content) > MAX_POINTER_SIZE:
            raise InvalidPointerError("content too large to be a pointer")

        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidPointerError("invalid UTF-8")

        version_found = False
        oid: Optional[Oid] = None
        size: Optional[int] = None

        for line in text.split("\n"):
            line = line.strip()
            if not line:
                continue

            if line.startswith("version "):
                version = line[len("version "):].strip()
                if version not in _KNOWN_VERSIONS:
                    raise InvalidPointerError(f"unsupported version: {version}")
                version_found = True
            elif line.startswith("oid sha256:"):
                try:
                    oid = Oid.from_hex(line[len("oid sha256:"):])
                except InvalidHashError as e:
                    raise InvalidPointerError(f"invalid oid: {e}") from e
            elif line.startswith("size "):
                value = line[len("size "):].strip()
                if not _SIZE.fullmatch(value) or int(value) > _MAX_SIZE:
                    raise InvalidPointerError(f"invalid size: {value!r}")
                size = int(value)

        if not version_found:
            raise InvalidPointerError("missing version")
        if oid is None:
            raise InvalidPointerError("missing oid")
        if size is None:
            raise InvalidPointerError("missing size")
        return cls(oid, size)

    @staticmethod
    def is_pointer(content: bytes) -> bool:
        """Cheap structural test: small enough and starts with a version line.

        A truncated or corrupt pointer still counts; ``parse`` reports the
        details later.
        """
        if len(content) > MAX_POINTER_SIZE:
            return False
        return content.startswith(_POINTER_PREFIXES)

    def encode(self) -> str:
        return f"version {LFS_SPEC_V1}\noid sha256:{self.oid.hex}\nsize {self.size}\n"

    def encode_bytes(self) -> bytes:
        return self.encode().encode("ascii")

    def matches(self, content: bytes) -> bool:
        """True if content has exactly this pointer's size and object id."""
        return len(content) == self.size and hash_bytes(content) == self.oid

    def __str__(self) -> str:
        return self.encode()


__all__ = ["Pointer"]
