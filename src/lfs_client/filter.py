"""Clean and smudge filters.

``clean`` turns working-tree content into the pointer that gets committed
(uploading the content); ``smudge`` turns a committed pointer back into
content (from the local store, else the server). Both take explicit client
and store handles so any host integration can adapt them to its own filter
interface.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from pathspec import PathSpec
from pathspec.patterns import GitWildMatchPattern

from .client import LfsClient
from .errors import LfsError
from .local_cache import ObjectStore
from .pointer import Pointer

logger = logging.getLogger(__name__)


class LfsAttributes:
    """Paths marked ``filter=lfs`` in ``.gitattributes`` text.

    Only the first whitespace-separated token of a line is a pattern; lines
    that set ``filter=lfs`` anywhere in their attributes are collected.
    Comments, blank lines and macro definitions (``[attr]``) are skipped.
    """

    def __init__(self, lines: Iterable[str] = ()):
        self.patterns: List[str] = []
        for raw in lines:
            line = raw.strip()
            if not line or line.startswith("#") or line.startswith("[attr]"):
                continue
            parts = line.split()
            if len(parts) < 2:
                continue
            if "filter=lfs" in parts[1:]:
                self.patterns.append(parts[0])
        self._spec = PathSpec.from_lines(GitWildMatchPattern, self.patterns)

    @classmethod
    def from_file(cls, path: Path) -> "LfsAttributes":
        """Load a ``.gitattributes`` file; a missing file tracks nothing."""
        path = Path(path)
        if not path.exists():
            return cls()
        return cls(path.read_text().splitlines())

    def is_tracked(self, path: str) -> bool:
        """Check if a repository-relative path is stored in LFS."""
        return self._spec.match_file(str(path).replace("\\", "/"))


class LfsFilter:
    """Clean/smudge over an explicit client and optional local store.

    Args:
        client: Client used for uploads and downloads
        store: Local object store; None disables caching
        attributes: Tracked-path rules; None means the caller has already
            decided every path it passes in is tracked
    """

    def __init__(
        self,
        client: LfsClient,
        store: Optional[ObjectStore] = None,
        attributes: Optional[LfsAttributes] = None,
    ):
        self.client = client
        self.store = store
        self.attributes = attributes

    def is_tracked(self, path: str) -> bool:
        if self.attributes is None:
            return True
        return self.attributes.is_tracked(path)

    def cache_put_best_effort(self, pointer: Pointer, content: bytes) -> None:
        """Store content locally; failures are logged, never raised.

        The cache is an optimization, never a correctness dependency: a
        failed cache write must not fail a clean or smudge that otherwise
        succeeded.
        """
        if self.store is None:
            return
        try:
            self.store.put_verified(pointer, content)
        except (LfsError, OSError) as e:
            logger.warning("Cache write for %s failed (ignored): %s", pointer.oid, e)

    def clean(self, path: str, content: bytes) -> bytes:
        """Working tree -> repository.

        Returns the encoded pointer for tracked paths (after uploading the
        content), or the content unchanged otherwise.
        """
        if not self.is_tracked(path):
            return content
        if Pointer.is_pointer(content):
            # Already clean, e.g. a pointer checked out without smudging
            return content

        pointer = Pointer.from_content(content)
        self.cache_put_best_effort(pointer, content)
        self.client.upload(pointer, content)
        logger.debug("Cleaned %s -> %s (%d bytes)", path, pointer.oid, pointer.size)
        return pointer.encode_bytes()

    def smudge(self, path: str, content: bytes) -> bytes:
        """Repository -> working tree.

        Non-pointer content passes through. Pointers are resolved from the
        local store when a verified copy exists, else downloaded and cached.

        Raises:
            InvalidPointerError: If content looks like a pointer but is malformed
        """
        if not Pointer.is_pointer(content):
            return content

        pointer = Pointer.parse(content)
        if self.store is not None:
            cached = self.store.get_verified(pointer)
            if cached is not None:
                logger.debug("Smudged %s from local store", path)
                return cached

        downloaded = self.client.download(pointer)
        self.cache_put_best_effort(pointer, downloaded)
        logger.debug("Smudged %s from server (%d bytes)", path, len(downloaded))
        return downloaded


__all__ = ["LfsAttributes", "LfsFilter"]
