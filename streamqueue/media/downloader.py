"""
Handles background downloading of streamed media into the audio cache over HTTP,
with resumable retries and chunk sizing driven by the item's bitrate.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import aiohttp

from streamqueue.exceptions import CacheWriteError
from streamqueue.models.config import PlayerConfig
from streamqueue.storage.cache import CacheStore

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(
    max_connections: int = 4,
    connect_timeout: float = 15.0,
    read_timeout: float = 90.0,
) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    Only one connection pool is created for the lifetime of the event loop
    until `close_connection_pool` is called.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_connections * 2,
            limit_per_host=max_connections,
            ttl_dns_cache=600,
            keepalive_timeout=30,
            enable_cleanup_closed=True,
            force_close=False,
        )
        timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=connect_timeout, sock_read=read_timeout
        )
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            # Byte offsets must match the stored file, so no transfer compression
            headers={"Accept-Encoding": "identity"},
        )
        log.debug(f"Created download pool with limit_per_host={max_connections}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            log.debug("Shared downloader connection pool closed.")
        _connection_pool = None


class DownloadStatus(Enum):
    """Lifecycle of a single download."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DownloadHandle:
    """
    Tracks one download into a cache file.

    Done-callbacks run exactly once, when the download completes, fails or is
    cancelled, and receive the handle itself.
    """

    def __init__(
        self,
        source_url: str,
        destination_path: Path,
        extension: str,
        identity: str | None = None,
    ):
        self.source_url = source_url
        self.destination_path = Path(destination_path)
        self.extension = extension
        self.identity = identity or source_url
        self.status = DownloadStatus.PENDING
        self.bytes_written = 0
        self.expected_size: int | None = None
        self.error: BaseException | None = None
        self.started_at = time.monotonic()
        self.finished_at: float | None = None
        self._callbacks: list[Callable[["DownloadHandle"], None]] = []
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def __repr__(self) -> str:
        return (
            f"DownloadHandle(identity={self.identity!r}, status={self.status.value}, "
            f"bytes_written={self.bytes_written})"
        )

    @property
    def done(self) -> bool:
        return self.status in (
            DownloadStatus.COMPLETED,
            DownloadStatus.FAILED,
            DownloadStatus.CANCELLED,
        )

    @property
    def cancelled(self) -> bool:
        return self.status is DownloadStatus.CANCELLED

    @property
    def elapsed(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def add_done_callback(self, callback: Callable[["DownloadHandle"], None]) -> None:
        """Registers `callback`, calling it right away if the download is over."""
        if self.done:
            callback(self)
        else:
            self._callbacks.append(callback)

    def bind_task(self, task: asyncio.Task, loop: asyncio.AbstractEventLoop) -> None:
        self._task = task
        self._loop = loop

    def mark_running(self) -> None:
        if self.status is DownloadStatus.PENDING:
            self.status = DownloadStatus.RUNNING

    def finish(self, status: DownloadStatus, error: BaseException | None = None) -> None:
        """Moves the handle to a terminal state. Later calls are ignored."""
        if self.done:
            return
        self.status = status
        self.error = error
        self.finished_at = time.monotonic()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                log.exception(f"Download callback failed for '{self.identity}'")

    def cancel(self) -> None:
        """
        Requests cancellation without waiting for it.

        The status flips immediately, so no chunk is written after this returns.
        """
        if self.done:
            return
        self.finish(DownloadStatus.CANCELLED)
        if self._task and not self._task.done() and self._loop:
            if self._loop.is_closed():
                return
            self._loop.call_soon_threadsafe(self._task.cancel)


class Downloader(Protocol):
    """The capability the prefetcher needs from a downloader."""

    def start(
        self,
        source_url: str,
        destination_path: Path,
        extension: str,
        asset_options: dict[str, Any] | None = None,
        bitrate_kbps: int | None = None,
        duration_seconds: float | None = None,
        identity: str | None = None,
    ) -> DownloadHandle: ...

    def cancel(self, handle: DownloadHandle) -> None: ...


class HttpDownloader:
    """
    Streams a URL into a cache file on the running event loop.

    Retries resume from the bytes already on disk with a Range request.
    """

    MIN_CHUNK_SIZE = 32768  # 32 KB
    MAX_CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        cache: CacheStore,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        max_connections: int = 4,
        connect_timeout: float = 15.0,
        read_timeout: float = 90.0,
    ):
        self.cache = cache
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_connections = max_connections
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    @classmethod
    def from_config(cls, config: PlayerConfig, cache: CacheStore) -> "HttpDownloader":
        return cls(
            cache,
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            max_connections=config.max_connections,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        )

    @classmethod
    def chunk_size_for(cls, bitrate_kbps: int | None) -> int:
        """Picks a chunk size of roughly half a second of audio."""
        if not bitrate_kbps:
            return cls.MIN_CHUNK_SIZE
        if bitrate_kbps > 1000:  # Lossless
            return cls.MAX_CHUNK_SIZE
        if bitrate_kbps > 320:
            return 131072  # 128 KB
        if bitrate_kbps > 128:
            return 65536  # 64 KB
        return cls.MIN_CHUNK_SIZE

    @staticmethod
    def estimate_size(
        bitrate_kbps: int | None, duration_seconds: float | None
    ) -> int | None:
        """Estimates the file size in bytes from bitrate and duration hints."""
        if not bitrate_kbps or not duration_seconds:
            return None
        return int(bitrate_kbps * 1000 / 8 * duration_seconds)

    def start(
        self,
        source_url: str,
        destination_path: Path,
        extension: str,
        asset_options: dict[str, Any] | None = None,
        bitrate_kbps: int | None = None,
        duration_seconds: float | None = None,
        identity: str | None = None,
    ) -> DownloadHandle:
        """
        Schedules the download on the running event loop and returns at once.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        handle = DownloadHandle(source_url, destination_path, extension, identity)
        handle.expected_size = self.estimate_size(bitrate_kbps, duration_seconds)
        headers = dict((asset_options or {}).get("headers", {}))
        chunk_size = self.chunk_size_for(bitrate_kbps)

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(handle, headers, chunk_size))
        handle.bind_task(task, loop)
        log.debug(
            f"Queued download of '{handle.identity}' to "
            f"'{handle.destination_path.name}' (chunk={chunk_size})"
        )
        return handle

    def cancel(self, handle: DownloadHandle) -> None:
        handle.cancel()

    async def _run(
        self, handle: DownloadHandle, headers: dict[str, str], chunk_size: int
    ) -> None:
        handle.mark_running()
        last_exception: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            if handle.cancelled:
                return
            try:
                await self._fetch(handle, headers, chunk_size)
                handle.finish(DownloadStatus.COMPLETED)
                return
            except asyncio.CancelledError:
                handle.finish(DownloadStatus.CANCELLED)
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, CacheWriteError) as e:
                last_exception = e
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{handle.destination_path.name}' failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        handle.finish(DownloadStatus.FAILED, last_exception)

    async def _fetch(
        self, handle: DownloadHandle, headers: dict[str, str], chunk_size: int
    ) -> None:
        """Downloads from the current end of the cache file onwards."""
        offset = self.cache.size(handle.destination_path)
        request_headers = dict(headers)
        if offset:
            request_headers["Range"] = f"bytes={offset}-"

        session = await get_connection_pool(
            self.max_connections, self.connect_timeout, self.read_timeout
        )
        async with session.get(
            handle.source_url, headers=request_headers, allow_redirects=True
        ) as response:
            if response.status == 416 and offset:
                # Nothing past what is already cached
                handle.bytes_written = offset
                return
            response.raise_for_status()
            if response.status != 206:
                offset = 0

            if response.content_length is not None:
                handle.expected_size = offset + response.content_length
            handle.bytes_written = offset

            async for chunk in response.content.iter_chunked(chunk_size):
                if handle.cancelled:
                    return
                await self.cache.awrite(handle.destination_path, chunk, offset)
                offset += len(chunk)
                handle.bytes_written = offset
