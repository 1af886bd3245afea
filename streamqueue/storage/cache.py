"""
A byte-addressable file cache for streamed media.
Files are named deterministically from the track identity (or a fingerprint of
the source URL) and support partial, in-place reads and writes while a download
is still growing them.
"""

import asyncio
import logging
import threading
import weakref
from pathlib import Path
from typing import ClassVar

import aiofiles

from streamqueue.exceptions import CacheWriteError
from streamqueue.utils.path import (
    create_dir,
    get_cache_root,
    safe_file_stem,
    url_path_extension,
)

log = logging.getLogger(__name__)

_FNV_OFFSET_BASIS = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK_64 = 0xFFFFFFFFFFFFFFFF


def fingerprint(text: str) -> str:
    """
    Returns a 16-character hex FNV-1a fingerprint of `text`.

    This is a fast file-naming hash, not a digest: collisions are unlikely but
    nothing relies on it being collision resistant.
    """
    value = _FNV_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        value ^= byte
        value = (value * _FNV_PRIME) & _MASK_64
    return f"{value:016x}"


class CacheStore:
    """
    Resolves cache paths and performs random-access I/O on cached media files.

    One writer per path at a time, any number of concurrent readers. Writes
    never truncate, so readers only ever observe a file that grows; they must
    re-check `size()` instead of assuming a fixed length.
    """

    DEFAULT_EXTENSION = "dat"
    LOCK_POLL_INTERVAL = 0.005

    _shared: ClassVar["CacheStore | None"] = None
    _shared_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, cache_root: Path | None = None):
        """
        Initializes the store, creating the cache directory if needed.

        Args:
            cache_root: Directory holding all cached files. Defaults to the
            platform cache location.
        """
        self.cache_dir = Path(cache_root) if cache_root else get_cache_root()
        create_dir(self.cache_dir)
        # Held only while a write is in progress
        self._write_locks: weakref.WeakValueDictionary[Path, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._write_locks_guard = threading.Lock()

    @classmethod
    def shared(cls) -> "CacheStore":
        """Returns the process-wide store rooted at the platform cache location."""
        with cls._shared_lock:
            if cls._shared is None:
                cls._shared = cls()
                log.debug(f"Created shared audio cache at {cls._shared.cache_dir}")
            return cls._shared

    def resolved_extension(self, locator: str, extension_hint: str | None = None) -> str:
        """Picks the hint, then the URL's own extension, then a generic one."""
        if extension_hint:
            return extension_hint.lstrip(".")
        return url_path_extension(locator) or self.DEFAULT_EXTENSION

    def resolve_path(
        self,
        locator: str,
        track_id: str | None = None,
        extension_hint: str | None = None,
    ) -> Path:
        """
        Returns the cache file path for a source. A pure function of its inputs.

        Args:
            locator: The source URL.
            track_id: Explicit track identity; used as the base name when non-empty.
            extension_hint: File extension to use instead of the URL's.
        """
        base_name = safe_file_stem(track_id) if track_id else ""
        if not base_name:
            base_name = fingerprint(locator)
        extension = self.resolved_extension(locator, extension_hint)
        return self.cache_dir / f"{base_name}.{extension}"

    def _writer_lock(self, path: Path) -> threading.Lock:
        with self._write_locks_guard:
            lock = self._write_locks.get(path)
            if lock is None:
                lock = self._write_locks[path] = threading.Lock()
            return lock

    def write(self, path: Path, data: bytes, offset: int = 0) -> None:
        """
        Writes `data` at byte `offset`, creating the file if absent.

        Bytes outside the written range are left untouched.

        Raises:
            CacheWriteError: If the filesystem rejects the write.
        """
        path = Path(path)
        with self._writer_lock(path):
            try:
                path.touch(exist_ok=True)
                with open(path, "r+b") as f:
                    f.seek(offset)
                    f.write(data)
            except OSError as e:
                log.warning(f"Cache write failed for '{path.name}' at {offset}: {e}")
                raise CacheWriteError(
                    f"Failed to write {len(data)} bytes to '{path}' at offset {offset}"
                ) from e

    async def awrite(self, path: Path, data: bytes, offset: int = 0) -> None:
        """Async equivalent of `write`, used by the downloader's event loop."""
        path = Path(path)
        lock = self._writer_lock(path)
        # Polled so a cancelled task never leaves the lock held
        while not lock.acquire(blocking=False):
            await asyncio.sleep(self.LOCK_POLL_INTERVAL)
        try:
            await asyncio.to_thread(path.touch, exist_ok=True)
            async with aiofiles.open(path, "r+b") as f:
                await f.seek(offset)
                await f.write(data)
        except OSError as e:
            log.warning(f"Cache write failed for '{path.name}' at {offset}: {e}")
            raise CacheWriteError(
                f"Failed to write {len(data)} bytes to '{path}' at offset {offset}"
            ) from e
        finally:
            lock.release()

    def read(self, path: Path, offset: int, length: int) -> bytes | None:
        """
        Returns up to `length` bytes starting at `offset`, or None on a miss.

        A missing file, an offset at or past the current end, or an unreadable
        file are all misses. Fewer bytes than requested are returned when the
        end of the file is reached.
        """
        if offset < 0 or length <= 0:
            return None
        try:
            with open(path, "rb") as f:
                f.seek(offset)
                data = f.read(length)
        except OSError as e:
            log.debug(f"Cache read miss for '{Path(path).name}': {e}")
            return None
        return data or None

    async def aread(self, path: Path, offset: int, length: int) -> bytes | None:
        """Async equivalent of `read`."""
        if offset < 0 or length <= 0:
            return None
        try:
            async with aiofiles.open(path, "rb") as f:
                await f.seek(offset)
                data = await f.read(length)
        except OSError as e:
            log.debug(f"Cache read miss for '{Path(path).name}': {e}")
            return None
        return data or None

    def size(self, path: Path) -> int:
        """Returns the current on-disk length in bytes, 0 if the file is absent."""
        try:
            return Path(path).stat().st_size
        except OSError:
            return 0
