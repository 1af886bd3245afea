"""
Data model for playable queue items and the enums consulted by the queue and
the prefetcher.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SourceType(Enum):
    """Where an item's bytes come from."""

    STREAM = "stream"  # Remote URL, eligible for prefetch
    FILE = "file"  # Already local


class RepeatMode(Enum):
    """Repeat behaviour, owned by the playback layer."""

    OFF = "off"
    TRACK = "track"
    QUEUE = "queue"


@dataclass(eq=False)
class QueueItem:
    """
    An opaque playable descriptor.

    Items compare by object identity: the same track added twice occupies two
    distinct queue positions. Use `identity` to key caching and prefetch.
    """

    source_url: str
    source_type: SourceType = SourceType.STREAM
    artist: str | None = None
    title: str | None = None
    album_title: str | None = None
    artwork: Callable[[], Any] | None = field(default=None, repr=False)
    track_id: str | None = None
    file_type: str | None = None
    bitrate_kbps: int | None = None
    duration_seconds: float | None = None
    initial_time: float = 0.0
    asset_options: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if isinstance(self.source_type, str):
            self.source_type = SourceType(self.source_type)
        # Non-positive hints carry no information for the downloader
        if self.bitrate_kbps is not None and self.bitrate_kbps <= 0:
            self.bitrate_kbps = None
        if self.duration_seconds is not None and self.duration_seconds <= 0:
            self.duration_seconds = None

    @property
    def identity(self) -> str:
        return track_identity(self)

    @property
    def is_stream(self) -> bool:
        return self.source_type is SourceType.STREAM

    def load_artwork(self) -> Any | None:
        """Resolves the artwork lazily, if a loader was provided."""
        return self.artwork() if self.artwork else None


def track_identity(item: QueueItem) -> str:
    """
    Returns the key used to match cache files and prefetch targets.

    The explicit track ID wins when it is non-empty; otherwise the raw source
    URL is used verbatim.
    """
    if item.track_id:
        return item.track_id
    return item.source_url
