"""MediaCache — disk-backed, write-once store of generated media.

Entries are addressed by deterministic filenames built from the normalized
(object type, visual style, generator kind, pool index)::

    <root>/<type>__<style>__<kind>__<index>.png
    <root>/<type>__<style>__<kind>__<index>.source.png
    <root>/<type>__<style>__veo-frames__frame<i>.png

Each (type, style, kind) key owns a bounded pool of ``pool_size`` slots so the
same object does not always get the identical picture. A slot is never
overwritten; once the pool is full further writes are dropped and reported as
a soft failure. Entries never expire. A slot may keep the full-size model
output next to its thumbnail as a ``.source.png`` sidecar.

Every failure here is soft: writes return a :class:`CacheWriteResult` and log,
reads return ``None``. Callers carry on as if caching were disabled.
"""

from __future__ import annotations

import contextlib
import hashlib
import itertools
import logging
import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path

from sketchworld.errors import CacheWriteError
from sketchworld.models.media import MediaKind

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")

DEFAULT_FRAME_COUNT = 4


@dataclass
class CacheWriteResult:
    success: bool
    pool_index: int | None = None
    error: str = ""


def normalize(text: str) -> str:
    """Case-fold a key part into a filename-safe token.

    Plain ascii words stay readable (``lamp``). Anything the slug would lose
    (spaces, accents, other scripts) gets a short digest of the folded text
    appended, so distinct types never share an entry.
    """
    folded = " ".join(text.casefold().split())
    if not folded:
        return "unknown"
    slug = _SLUG_RE.sub("-", folded).strip("-")
    if slug == folded:
        return slug
    digest = hashlib.sha256(folded.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}" if slug else digest


class MediaCache:
    """Content-keyed media store with a bounded pool per key."""

    def __init__(
        self,
        root: Path,
        pool_size: int = 3,
        frame_count: int = DEFAULT_FRAME_COUNT,
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be >= 1")
        self.root = Path(root)
        self.pool_size = pool_size
        self.frame_count = frame_count
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._cursors: dict[str, itertools.count] = {}

    # -- Key construction ----------------------------------------------------

    @staticmethod
    def key(object_type: str, style: str, kind: MediaKind | str) -> str:
        kind_value = kind.value if isinstance(kind, MediaKind) else str(kind)
        return f"{normalize(object_type)}__{normalize(style)}__{kind_value}"

    def slot_path(
        self,
        object_type: str,
        style: str,
        kind: MediaKind | str,
        pool_index: int,
    ) -> Path:
        return self.root / f"{self.key(object_type, style, kind)}__{pool_index}.png"

    def source_path(
        self,
        object_type: str,
        style: str,
        kind: MediaKind | str,
        pool_index: int,
    ) -> Path:
        return self.root / f"{self.key(object_type, style, kind)}__{pool_index}.source.png"

    def frame_path(self, object_type: str, style: str, index: int) -> Path:
        key = self.key(object_type, style, MediaKind.VEO_FRAMES)
        return self.root / f"{key}__frame{index}.png"

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    # -- Static images -------------------------------------------------------

    def pool_indices(self, object_type: str, style: str, kind: MediaKind | str) -> list[int]:
        """Indices of the filled slots for a key, in slot order."""
        return [
            i
            for i in range(self.pool_size)
            if _readable(self.slot_path(object_type, style, kind, i))
        ]

    def pick_slot(self, object_type: str, style: str, kind: MediaKind | str) -> int | None:
        """Next filled slot in round-robin order, or ``None`` for an empty pool."""
        filled = self.pool_indices(object_type, style, kind)
        if not filled:
            return None
        cursor = self._cursors.setdefault(self.key(object_type, style, kind), itertools.count())
        return filled[next(cursor) % len(filled)]

    def get_source(
        self,
        object_type: str,
        style: str,
        kind: MediaKind | str,
        pool_index: int,
    ) -> bytes | None:
        """Full-size model output kept beside a slot, if one was stored."""
        return _read(self.source_path(object_type, style, kind, pool_index))

    def get(
        self,
        object_type: str,
        style: str,
        kind: MediaKind | str,
        pool_index: int | None = None,
    ) -> bytes | None:
        """Pure lookup. Never triggers generation.

        With no ``pool_index`` the filled slots are served round-robin.
        """
        if pool_index is None:
            pool_index = self.pick_slot(object_type, style, kind)
            if pool_index is None:
                logger.debug("Cache miss: %s", self.key(object_type, style, kind))
                return None

        path = self.slot_path(object_type, style, kind, pool_index)
        data = _read(path)
        if data is None:
            logger.debug("Cache miss: %s", path.name)
        else:
            logger.debug("Cache hit: %s (%d bytes)", path.name, len(data))
        return data

    def put(
        self,
        object_type: str,
        style: str,
        kind: MediaKind | str,
        data: bytes,
        pool_index: int | None = None,
        source: bytes | None = None,
    ) -> CacheWriteResult:
        """Write once into the requested slot, or the first free one.

        A taken slot is never overwritten: the write moves on to the next free
        slot. A full pool drops the write and reports a soft failure.
        ``source`` is stored beside the slot; losing it only costs the
        full-size image, never the slot.
        """
        key = self.key(object_type, style, kind)
        with self._lock_for(key):
            start = pool_index if pool_index is not None else 0
            order = [(start + i) % self.pool_size for i in range(self.pool_size)]
            free = next(
                (i for i in order if not _readable(self.slot_path(object_type, style, kind, i))),
                None,
            )
            if free is None:
                logger.warning("Cache pool full for %s (%d slots), write dropped", key, self.pool_size)
                return CacheWriteResult(success=False, error="pool full")
            try:
                _write(self.slot_path(object_type, style, kind, free), data)
            except CacheWriteError as e:
                logger.warning("Failed to cache %s slot %d: %s", key, free, e)
                return CacheWriteResult(success=False, error=str(e))
            if source:
                try:
                    _write(self.source_path(object_type, style, kind, free), source)
                except CacheWriteError as e:
                    logger.warning("Failed to keep source for %s slot %d: %s", key, free, e)

        logger.debug("Cached %s slot %d (%d bytes)", key, free, len(data))
        return CacheWriteResult(success=True, pool_index=free)

    # -- Frame sets ----------------------------------------------------------

    def get_frames(self, object_type: str, style: str) -> list[bytes] | None:
        """All frames in index order, or ``None`` if any single one is missing."""
        frames: list[bytes] = []
        for i in range(self.frame_count):
            data = _read(self.frame_path(object_type, style, i))
            if data is None:
                logger.debug(
                    "Frame cache miss: %s frame %d",
                    self.key(object_type, style, MediaKind.VEO_FRAMES),
                    i,
                )
                return None
            frames.append(data)
        return frames

    def put_frames(self, object_type: str, style: str, frames: list[bytes]) -> CacheWriteResult:
        """Store a complete frame set. Frames already on disk are kept as they are."""
        key = self.key(object_type, style, MediaKind.VEO_FRAMES)
        if len(frames) != self.frame_count:
            logger.warning("Refusing to cache %d frames for %s (need %d)", len(frames), key, self.frame_count)
            return CacheWriteResult(success=False, error="wrong frame count")

        with self._lock_for(key):
            try:
                for i, frame in enumerate(frames):
                    path = self.frame_path(object_type, style, i)
                    if not _readable(path):
                        _write(path, frame)
            except CacheWriteError as e:
                logger.warning("Failed to cache frames for %s: %s", key, e)
                return CacheWriteResult(success=False, error=str(e))

        logger.debug("Cached %d frames for %s", len(frames), key)
        return CacheWriteResult(success=True, pool_index=0)


def _readable(path: Path) -> bool:
    try:
        return path.stat().st_size > 0
    except OSError:
        return False


def _read(path: Path) -> bytes | None:
    try:
        data = path.read_bytes()
    except OSError:
        return None
    return data or None


def _write(path: Path, data: bytes) -> None:
    """Write via a temp file so a reader never sees half a slot."""
    if not data:
        raise CacheWriteError(f"refusing to write empty entry {path.name}")
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except OSError as e:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise CacheWriteError(str(e)) from e
