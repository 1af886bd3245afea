"""
A player facade that owns the queue, drives the playback backend from queue
events, and wires the prefetcher into both.
"""

import logging
from collections.abc import Callable, Iterable

from streamqueue.core.playback import CurrentItemChange, Playback, PlaybackState
from streamqueue.core.prefetch import PrefetchCoordinator
from streamqueue.core.queue_manager import QueueManager
from streamqueue.media.downloader import Downloader, HttpDownloader
from streamqueue.models.config import PlayerConfig
from streamqueue.models.item import QueueItem, RepeatMode
from streamqueue.storage.cache import CacheStore
from streamqueue.utils.formatting import describe_item
from streamqueue.utils.log_setup import configure_logging
from streamqueue.utils.structured_logger import create_structured_logger

log = logging.getLogger(__name__)

CurrentItemListener = Callable[[CurrentItemChange], None]


class QueuedPlayer:
    """
    Keeps a queue of items and plays them through a `Playback` backend.

    All methods must be called from one execution context (typically the
    event loop thread that also runs the downloader).
    """

    def __init__(
        self,
        playback: Playback,
        config: PlayerConfig | None = None,
        cache: CacheStore | None = None,
        downloader: Downloader | None = None,
    ):
        self.config = config or PlayerConfig()
        configure_logging(self.config.log_level)
        self.playback = playback
        self.cache = cache or CacheStore(self.config.cache_dir)
        self.downloader = downloader or HttpDownloader.from_config(self.config, self.cache)

        self.structured_log, prefetch_logger, self.queue_events = create_structured_logger(
            self.config.json_log_dir, enable_json=self.config.json_log_dir is not None
        )
        self.structured_log.set_session_context(cache_dir=str(self.cache.cache_dir))
        self._repeat_mode = self.config.repeat_mode
        self.queue = QueueManager(delegate=self)
        self.prefetch = PrefetchCoordinator(
            self.queue,
            self.cache,
            self.downloader,
            repeat_mode=lambda: self._repeat_mode,
            enabled=self.config.prefetch_enabled,
            prefetch_logger=prefetch_logger,
        )
        self._last_item: QueueItem | None = None
        self._last_index = -1
        self._listeners: list[CurrentItemListener] = []

    # Queue views

    @property
    def current_item(self) -> QueueItem | None:
        return self.queue.current

    @property
    def current_index(self) -> int:
        return self.queue.current_index

    @property
    def items(self) -> list[QueueItem]:
        return self.queue.items

    @property
    def previous_items(self) -> list[QueueItem]:
        return self.queue.previous_items

    @property
    def next_items(self) -> list[QueueItem]:
        return self.queue.next_items

    # Settings

    @property
    def repeat_mode(self) -> RepeatMode:
        return self._repeat_mode

    @repeat_mode.setter
    def repeat_mode(self, mode: RepeatMode) -> None:
        self._repeat_mode = RepeatMode(mode)

    @property
    def prefetch_enabled(self) -> bool:
        return self.prefetch.enabled

    @prefetch_enabled.setter
    def prefetch_enabled(self, value: bool) -> None:
        self.prefetch.enabled = value

    def add_listener(self, listener: CurrentItemListener) -> None:
        """Subscribes `listener` to current-item changes."""
        self._listeners.append(listener)

    def remove_listener(self, listener: CurrentItemListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Queue operations

    def _apply_play_when_ready(self, play_when_ready: bool | None) -> None:
        if play_when_ready is not None:
            self.playback.play_when_ready = play_when_ready

    def load(self, item: QueueItem, play_when_ready: bool | None = None) -> None:
        """Replaces the whole queue with `item` and loads it."""
        self._apply_play_when_ready(play_when_ready)
        self.queue.replace_current(item)

    def add(
        self, items: QueueItem | Iterable[QueueItem], play_when_ready: bool | None = None
    ) -> None:
        """Appends items. The first item added to an empty queue is loaded."""
        self._apply_play_when_ready(play_when_ready)
        self.queue.add(items)

    def add_at(self, items: QueueItem | Iterable[QueueItem], index: int) -> None:
        self.queue.add_at(items, index)

    def next(self) -> bool:
        """Steps to the next item, wrapping around when repeating the queue."""
        return self.queue.next(wrap=self._repeat_mode is RepeatMode.QUEUE)

    def previous(self) -> bool:
        """Steps to the previous item, wrapping around when repeating the queue."""
        return self.queue.previous(wrap=self._repeat_mode is RepeatMode.QUEUE)

    def remove_item(self, index: int) -> QueueItem:
        return self.queue.remove_item(index)

    def move_item(self, from_index: int, to_index: int) -> None:
        self.queue.move_item(from_index, to_index)

    def jump_to_item(self, index: int, play_when_ready: bool | None = None) -> None:
        """
        Makes the item at `index` current. Jumping to the current item restarts
        it from the beginning instead of reloading it.
        """
        self._apply_play_when_ready(play_when_ready)
        if index >= 0 and index == self.queue.current_index:
            self.playback.seek(0)
        else:
            self.queue.jump(index)

    def remove_upcoming_items(self) -> None:
        self.queue.remove_upcoming_items()

    def remove_previous_items(self) -> None:
        self.queue.remove_previous_items()

    def clear(self) -> None:
        """Empties the queue, stops playback and cancels any prefetch."""
        item_count = len(self.queue)
        self.queue.clear_queue()
        self.queue_events.queue_cleared(item_count)

    def replay(self) -> None:
        self.playback.seek(0)
        self.playback.play()

    def close(self) -> None:
        """Cancels any prefetch in flight and closes the JSON event log."""
        self.prefetch.cancel_target("closed")
        self.structured_log.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # Playback backend events

    def handle_state_change(self, state: PlaybackState) -> None:
        """Forwards a playback state transition reported by the backend."""
        self.prefetch.on_playback_state_changed(state)

    def handle_item_played_to_end(self) -> None:
        """Advances the queue according to the repeat mode."""
        if self._repeat_mode is RepeatMode.TRACK:
            self.playback.pause()
            self.replay()
            return

        if self._repeat_mode is RepeatMode.QUEUE:
            wrap = True
        elif self.queue.current_index != len(self.queue) - 1:
            wrap = False
        else:
            log.debug("Reached the end of the queue.")
            self.playback.state = PlaybackState.ENDED
            return

        should_continue = self.playback.play_when_ready
        self.queue.next(wrap=wrap)
        if should_continue and not self.playback.play_when_ready:
            self.playback.play_when_ready = True

    # Queue delegate

    def on_current_item_changed(self) -> None:
        last_position = self.playback.position
        item = self.queue.current
        index = self.queue.current_index

        handoff = self.prefetch.on_current_item_changed(item)
        if item is not None:
            self.playback.load(item, handoff)
        else:
            self.playback.clear()

        change = CurrentItemChange(
            item=item,
            index=None if index == -1 else index,
            previous_item=self._last_item,
            previous_index=None if self._last_index == -1 else self._last_index,
            previous_position=last_position,
        )
        self.queue_events.current_item_changed(
            change.index, change.previous_index, describe_item(item)
        )
        self._last_item = item
        self._last_index = index
        for listener in list(self._listeners):
            listener(change)

    def on_skipped_to_same_current_item(self) -> None:
        if self.playback.state.is_active:
            self.replay()

    def on_received_first_item(self) -> None:
        self.queue.jump(0)
