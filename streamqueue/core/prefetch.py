"""
Speculative prefetch of the queue's next streamed item into the audio cache.

At most one download is tracked at a time. The target is re-evaluated whenever
playback becomes active, the current item changes, or prefetching is switched
on, and it is handed to playback when the queue advances onto it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from streamqueue.core.playback import PlaybackState
from streamqueue.core.queue_manager import QueueManager
from streamqueue.media.downloader import Downloader, DownloadHandle, DownloadStatus
from streamqueue.models.item import QueueItem, RepeatMode
from streamqueue.storage.cache import CacheStore
from streamqueue.utils.structured_logger import PrefetchLogger, create_structured_logger

log = logging.getLogger(__name__)


@dataclass
class PrefetchTarget:
    """The single tracked lookahead download."""

    identity: str
    cache_path: Path
    handle: DownloadHandle


@dataclass(frozen=True)
class PrefetchHandoff:
    """A prefetched cache file given to playback in place of a network open."""

    identity: str
    cache_path: Path
    handle: DownloadHandle

    @property
    def complete(self) -> bool:
        return self.handle.status is DownloadStatus.COMPLETED

    @property
    def bytes_available(self) -> int:
        return self.handle.bytes_written


class PrefetchCoordinator:
    """
    Chooses what to prefetch next and drives the cache and the downloader.

    Not thread-safe: call it from the same context that mutates the queue.
    Download failures never propagate; they only mean no hand-off happens.
    """

    def __init__(
        self,
        queue: QueueManager,
        cache: CacheStore,
        downloader: Downloader,
        repeat_mode: Callable[[], RepeatMode] = lambda: RepeatMode.OFF,
        enabled: bool = True,
        prefetch_logger: PrefetchLogger | None = None,
    ):
        """
        Args:
            queue: The queue whose lookahead is prefetched.
            cache: Resolves where prefetched files are stored.
            downloader: Starts and cancels background downloads.
            repeat_mode: Returns the playback layer's current repeat mode.
            enabled: Initial on/off state.
            prefetch_logger: Structured event sink; a default one is created if omitted.
        """
        self.queue = queue
        self.cache = cache
        self.downloader = downloader
        self._repeat_mode = repeat_mode
        self._enabled = enabled
        self._target: PrefetchTarget | None = None
        self.events = prefetch_logger or create_structured_logger()[1]

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        if value == self._enabled:
            return
        self._enabled = value
        if value:
            self.reevaluate()
        else:
            self.cancel_target("disabled")

    @property
    def target(self) -> PrefetchTarget | None:
        return self._target

    def lookahead_candidate(self) -> QueueItem | None:
        """
        Returns the item that would play next: the first upcoming item, or with
        queue repeat the first item of the queue.
        """
        next_items = self.queue.next_items
        if next_items:
            return next_items[0]
        if self._repeat_mode() is RepeatMode.QUEUE and len(self.queue):
            return self.queue.items[0]
        return None

    def reevaluate(self) -> DownloadHandle | None:
        """
        Starts a prefetch for the lookahead candidate if it is not already the
        target, cancelling whatever was being prefetched before.

        Returns:
            The handle of the download now tracked for the candidate, if any.
        """
        if not self._enabled:
            return None

        candidate = self.lookahead_candidate()
        if candidate is None:
            return None
        identity = candidate.identity
        if not candidate.is_stream:
            self.events.skipped(identity, "Local file needs no prefetch", "local_file")
            return None
        if self._target and self._target.identity == identity:
            return self._target.handle

        self.cancel_target("superseded")

        extension = self.cache.resolved_extension(candidate.source_url, candidate.file_type)
        cache_path = self.cache.resolve_path(
            candidate.source_url, candidate.track_id, extension
        )
        try:
            handle = self.downloader.start(
                candidate.source_url,
                cache_path,
                extension,
                asset_options=candidate.asset_options or None,
                bitrate_kbps=candidate.bitrate_kbps,
                duration_seconds=candidate.duration_seconds,
                identity=identity,
            )
        except Exception as e:
            log.debug(f"Prefetch of '{identity}' could not start", exc_info=True)
            self.events.failed(identity, f"could not start: {e}")
            return None

        self._target = PrefetchTarget(identity, cache_path, handle)
        self.events.started(
            identity, cache_path, candidate.bitrate_kbps, candidate.duration_seconds
        )
        handle.add_done_callback(self._on_download_finished)
        return handle

    def claim_handoff(self, item: QueueItem | None) -> PrefetchHandoff | None:
        """
        Consumes the target if `item` is the prefetched track.

        A target whose download failed or was cancelled is consumed too but
        yields no hand-off, so playback falls back to a normal network open.
        """
        target = self._target
        if item is None or target is None or item.identity != target.identity:
            return None

        self._target = None
        if target.handle.status in (DownloadStatus.FAILED, DownloadStatus.CANCELLED):
            self.events.skipped(
                target.identity,
                f"Prefetch {target.handle.status.value}, streaming instead",
                "unusable_prefetch",
            )
            return None

        handoff = PrefetchHandoff(target.identity, target.cache_path, target.handle)
        self.events.handed_off(target.identity, handoff.bytes_available, handoff.complete)
        return handoff

    def on_current_item_changed(self, item: QueueItem | None) -> PrefetchHandoff | None:
        """
        Handles a cursor move: hands off a matching prefetch, then re-targets.
        An emptied queue cancels any prefetch.
        """
        if len(self.queue) == 0:
            self.cancel_target("queue_cleared")
            return None
        handoff = self.claim_handoff(item)
        self.reevaluate()
        return handoff

    def on_playback_state_changed(self, state: PlaybackState) -> None:
        if state.is_active and self._enabled:
            self.reevaluate()

    def cancel_target(self, reason: str) -> None:
        """Requests cancellation of the tracked download and forgets it."""
        target, self._target = self._target, None
        if target is None:
            return
        self.downloader.cancel(target.handle)
        self.events.cancelled(target.identity, reason)

    def _on_download_finished(self, handle: DownloadHandle) -> None:
        # Stale handles from superseded targets are ignored
        if self._target is None or self._target.handle is not handle:
            return
        if handle.status is DownloadStatus.COMPLETED:
            self.events.completed(handle.identity, handle.bytes_written, handle.elapsed)
        elif handle.status is DownloadStatus.FAILED:
            self.events.failed(handle.identity, str(handle.error))
