"""
The contract between the queued player and the audio playback backend.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from streamqueue.models.item import QueueItem

if TYPE_CHECKING:
    from streamqueue.core.prefetch import PrefetchHandoff


class PlaybackState(Enum):
    """States reported by the playback backend."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    BUFFERING = "buffering"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    ENDED = "ended"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        """True while an item is loaded and playback has not stopped or ended."""
        return self not in (
            PlaybackState.IDLE,
            PlaybackState.STOPPED,
            PlaybackState.ENDED,
            PlaybackState.FAILED,
        )


@dataclass(frozen=True)
class CurrentItemChange:
    """Emitted after the queue's current item changed."""

    item: QueueItem | None
    index: int | None
    previous_item: QueueItem | None
    previous_index: int | None
    previous_position: float


class Playback(Protocol):
    """What the queued player needs from an audio backend."""

    @property
    def state(self) -> PlaybackState: ...

    @state.setter
    def state(self, value: PlaybackState) -> None: ...

    @property
    def position(self) -> float: ...

    @property
    def play_when_ready(self) -> bool: ...

    @play_when_ready.setter
    def play_when_ready(self, value: bool) -> None: ...

    def load(self, item: QueueItem, handoff: "PrefetchHandoff | None" = None) -> None:
        """Loads `item`, reading from `handoff`'s cache file instead of the network when given."""

    def clear(self) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, position: float) -> None: ...
