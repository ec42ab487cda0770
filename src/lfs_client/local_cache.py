"""Local content-addressed object store.

Objects live at ``<root>/<hex[0:2]>/<hex[2:4]>/<hex>``, the same layout
git-lfs uses under ``.git/lfs/objects``. Writes go to ``<final>.tmp`` and are
committed by an atomic rename, so a reader never observes a partially
written object at its final path.

Key Features:
- Atomic commit via fsync + ``os.replace``
- Per-object ``portalocker`` lock so writers of the same key never share a
  temp file; writers of different keys never contend
- Verified reads that degrade to a cache miss on size or hash mismatch
- Best-effort pruning

Technical Considerations:
- Committed objects are made read-only (0o444) before the rename
- Lock files (``<final>.lock``) live next to their object and are never
  reported as objects. ``remove`` and ``prune`` delete them when no writer
  holds them; a writer that waited on a deleted lock file locks again
- ``prune`` racing a ``put`` of the same key may keep or remove that key
  depending on timing. Content addressing makes any surviving copy correct,
  so the race is accepted rather than locked away
"""

from __future__ import annotations
import contextlib
import logging
import os
import re
import time
import weakref
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Optional, Tuple

import platformdirs
import portalocker

from .constants import LOCK_TIMEOUT
from .errors import InvalidPointerError, StorageError
from .hashing import HashingWriter, Oid
from .pointer import Pointer

logger = logging.getLogger(__name__)

_HEX64 = re.compile(r"^[0-9a-f]{64}$")

# ---- Platform-specific helpers ---------------------------------------------

def _get_default_store_dir() -> Path:
    """Platform-appropriate object directory (e.g. ~/.cache/lfs-client/objects)."""
    return Path(platformdirs.user_cache_dir("lfs-client", "lfs-client")) / "objects"

def _fsync_dir(path: Path) -> None:
    """Fsync a directory so the rename that committed an object is durable.

    Best-effort: Windows and some filesystems don't support directory fsync.
    """
    try:
        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY

        fd = os.open(str(path), flags)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", path)

def _lock_path(final_path: Path) -> Path:
    return final_path.with_name(final_path.name + ".lock")

def _same_file(fh, path: Path) -> bool:
    """True if the open lock handle is still the file at ``path``."""
    try:
        return os.fstat(fh.fileno()).st_ino == os.stat(path).st_ino
    except FileNotFoundError:
        return False

def _acquire_lock(lock_path: Path, timeout: float, oid: Oid) -> portalocker.Lock:
    """Take the per-object write lock.

    ``remove`` and ``prune`` unlink lock files, so a waiter may end up
    holding a lock on a file that no longer exists at ``lock_path``. Such a
    lock is dropped and the lock path opened again.

    Raises:
        StorageError: On timeout, or if the lock file cannot be opened
    """
    deadline = time.monotonic() + timeout
    while True:
        lock = portalocker.Lock(
            str(lock_path), "a", timeout=max(deadline - time.monotonic(), 0)
        )
        try:
            fh = lock.acquire()
        except portalocker.exceptions.LockException as e:
            raise StorageError(f"Timed out waiting for store lock on {oid}") from e
        except OSError as e:
            raise StorageError(f"Cannot open store lock {lock_path}: {e}") from e
        if _same_file(fh, lock_path):
            return lock
        lock.release()

def _remove_lock_file(lock_path: Path) -> None:
    """Delete an object's lock file unless a writer currently holds it."""
    lock = portalocker.Lock(str(lock_path), "a", timeout=0, fail_when_locked=True)
    try:
        fh = lock.acquire()
    except (portalocker.exceptions.LockException, OSError):
        return
    try:
        if _same_file(fh, lock_path):
            lock_path.unlink()
    except OSError as e:
        logger.debug("Could not remove lock file %s: %s", lock_path, e)
    finally:
        lock.release()

def _discard(handle: BinaryIO, tmp_path: Path, lock: portalocker.Lock) -> None:
    """Close and remove an uncommitted temp file, then release its lock.

    Runs on abort, on context exit without finish, and on garbage collection.
    Failures here are swallowed so they never mask the original error.
    """
    with contextlib.suppress(OSError):
        handle.close()
    with contextlib.suppress(OSError):
        tmp_path.unlink()
    with contextlib.suppress(Exception):
        lock.release()

# ---- Streaming writer -------------------------------------------------------

class StoreWriter:
    """Incremental writer for one object.

    Bytes go to ``<final>.tmp``; ``finish()`` fsyncs and renames into place.
    Leaving the ``with`` block (or dropping the writer) without ``finish()``
    removes the temp file.

    Example:
        >>> with store.writer(pointer.oid, verify=True) as w:
        ...     for chunk in chunks:
        ...         w.write(chunk)
        ...     w.finish()
    """

    def __init__(self, oid: Oid, final_path: Path, verify: bool = False, lock_timeout: float = LOCK_TIMEOUT):
        self.oid = oid
        self.final_path = final_path
        self.tmp_path = final_path.with_name(final_path.name + ".tmp")
        self._verify = verify
        self._finished = False

        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create store directory {final_path.parent}: {e}") from e

        lock = _acquire_lock(_lock_path(final_path), lock_timeout, oid)

        try:
            handle = open(self.tmp_path, "wb")
        except OSError as e:
            lock.release()
            raise StorageError(f"Cannot open temp file {self.tmp_path}: {e}") from e

        self._handle = handle
        self._hasher = HashingWriter(handle)
        self._finalizer = weakref.finalize(self, _discard, handle, self.tmp_path, lock)

    @property
    def size(self) -> int:
        """Bytes written so far."""
        return self._hasher.size

    def write(self, data: bytes) -> int:
        if self._finished or not self._finalizer.alive:
            raise ValueError(f"write to closed StoreWriter for {self.oid}")
        try:
            return self._hasher.write(data)
        except OSError as e:
            raise StorageError(f"Write failed for {self.tmp_path}: {e}") from e

    def finish(self) -> Path:
        """Commit the object and return its final path.

        Raises:
            InvalidPointerError: If created with ``verify=True`` and the bytes
                written do not hash to the writer's oid
            StorageError: If flushing or renaming fails
        """
        if self._finished or not self._finalizer.alive:
            raise ValueError(f"StoreWriter for {self.oid} already closed")

        try:
            self._handle.flush()
            os.fsync(self._handle.fileno())
            self._handle.close()

            oid, size, _ = self._hasher.finish()
            if self._verify and oid != self.oid:
                raise InvalidPointerError(
                    f"content hash {oid} does not match object id {self.oid}"
                )

            # Read-only from the moment the object becomes visible
            os.chmod(self.tmp_path, 0o444)
            os.replace(str(self.tmp_path), str(self.final_path))
            _fsync_dir(self.final_path.parent)
        except OSError as e:
            self._finalizer()
            raise StorageError(f"Failed to commit {self.oid}: {e}") from e
        except Exception:
            self._finalizer()
            raise

        self._finished = True
        self._finalizer()  # releases the lock; temp file is already gone
        logger.debug("Store committed: %s (%d bytes)", self.final_path, size)
        return self.final_path

    def abort(self) -> None:
        """Discard everything written; safe to call more than once."""
        if not self._finished:
            self._finalizer()

    def __enter__(self) -> "StoreWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.abort()

# ---- ObjectStore implementation ---------------------------------------------

class ObjectStore:
    """Local content-addressed store for LFS objects.

    Directory Structure:
        <root>/ab/cd/<full_sha256_hex>

    Attributes:
        root: Store base directory

    Thread Safety:
        Safe for concurrent use by threads and processes. Commits are atomic
        renames into globally named paths, and racing writers of the same
        key converge on identical content.
    """

    def __init__(self, root: Optional[Path] = None, lock_timeout: float = LOCK_TIMEOUT):
        """Initialize the store.

        Args:
            root: Base directory. If None, uses a platform-appropriate default.
            lock_timeout: Seconds to wait for a per-object write lock
        """
        self.root = Path(root) if root else _get_default_store_dir()
        self.lock_timeout = lock_timeout
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create object store at {self.root}: {e}") from e

    @classmethod
    def for_repo(cls, git_dir: Path) -> "ObjectStore":
        """Store for a repository's ``.git/lfs/objects`` directory."""
        return cls(Path(git_dir) / "lfs" / "objects")

    def path_for(self, oid: Oid) -> Path:
        """Location of an object; a pure function of its id."""
        hex_part = oid.hex
        return self.root / hex_part[:2] / hex_part[2:4] / hex_part

    # ---- reads ----

    def contains(self, oid: Oid) -> bool:
        """Existence check only, no integrity check."""
        return self.path_for(oid).is_file()

    def contains_valid(self, pointer: Pointer) -> bool:
        """Existence plus stored length equal to ``pointer.size`` (no hashing)."""
        try:
            return self.path_for(pointer.oid).stat().st_size == pointer.size
        except OSError:
            return False

    def get(self, oid: Oid) -> Optional[bytes]:
        """Raw read; None if absent or unreadable."""
        try:
            return self.path_for(oid).read_bytes()
        except OSError:
            return None

    def get_verified(self, pointer: Pointer) -> Optional[bytes]:
        """Read and confirm length and hash; any mismatch is a cache miss."""
        content = self.get(pointer.oid)
        if content is None:
            return None
        if not pointer.matches(content):
            logger.warning(
                "Store entry %s failed verification (%d bytes); treating as miss",
                pointer.oid, len(content),
            )
            return None
        return content

    def open(self, oid: Oid) -> Optional[BinaryIO]:
        """Open an object for streaming read; None if absent."""
        try:
            return self.path_for(oid).open("rb")
        except OSError:
            return None

    # ---- writes ----

    def writer(self, oid: Oid, verify: bool = False) -> StoreWriter:
        """Start an incremental write of one object.

        Args:
            oid: Key the object is committed under
            verify: Check on ``finish()`` that the bytes hash to ``oid``
        """
        return StoreWriter(oid, self.path_for(oid), verify=verify, lock_timeout=self.lock_timeout)

    def put(self, oid: Oid, content: bytes) -> Path:
        """Store bytes under ``oid`` atomically, without checking them."""
        with self.writer(oid) as w:
            w.write(content)
            return w.finish()

    def put_verified(self, pointer: Pointer, content: bytes) -> Path:
        """Store content received from an untrusted source.

        Raises:
            InvalidPointerError: If content's size or hash disagrees with pointer
        """
        if len(content) != pointer.size:
            raise InvalidPointerError(
                f"content size {len(content)} does not match pointer size {pointer.size}"
            )
        if not pointer.matches(content):
            raise InvalidPointerError("content hash does not match pointer")
        return self.put(pointer.oid, content)

    def remove(self, oid: Oid) -> bool:
        """Idempotent delete; returns whether an entry existed."""
        try:
            self.path_for(oid).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Cannot remove {oid}: {e}") from e
        _remove_lock_file(_lock_path(self.path_for(oid)))
        logger.debug("Store removed: %s", oid)
        return True

    # ---- enumeration ----

    def iter_objects(self) -> Iterator[Tuple[Oid, Path]]:
        """Yield ``(oid, path)`` for every committed object.

        Temp files, lock files and anything not at its sharded location are
        skipped.
        """
        for path in self.root.rglob("*"):
            name = path.name
            if not _HEX64.fullmatch(name):
                continue
            if path.parent.name != name[2:4] or path.parent.parent.name != name[:2]:
                continue
            if path.is_file():
                yield Oid.from_hex(name), path

    def size(self) -> int:
        """Total bytes stored. Walks the whole store; not cached."""
        total = 0
        for _, path in self.iter_objects():
            with contextlib.suppress(OSError):
                total += path.stat().st_size
        return total

    def count(self) -> int:
        """Number of stored objects. Walks the whole store; not cached."""
        return sum(1 for _ in self.iter_objects())

    def prune(self, keep: Iterable[Oid]) -> int:
        """Delete every object not in ``keep``.

        Best-effort: a failed delete is logged and the prune continues.

        Returns:
            Bytes reclaimed
        """
        keep_set = set(keep)
        removed = 0
        for oid, path in list(self.iter_objects()):
            if oid in keep_set:
                continue
            try:
                size = path.stat().st_size
                path.unlink()
            except OSError as e:
                logger.warning("Could not prune %s: %s", path, e)
                continue
            removed += size
            _remove_lock_file(_lock_path(path))
            logger.debug("Pruned store object: %s (%d bytes)", oid, size)
        return removed


__all__ = ["ObjectStore", "StoreWriter"]
