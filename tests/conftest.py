"""Shared fakes for the downloader and playback collaborators."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from streamqueue.core.playback import PlaybackState
from streamqueue.media.downloader import DownloadHandle
from streamqueue.models.item import QueueItem, SourceType
from streamqueue.storage.cache import CacheStore


class FakeDownloader:
    """Records start/cancel calls; downloads only finish when a test says so."""

    def __init__(self, fail_on_start: bool = False):
        self.fail_on_start = fail_on_start
        self.started: list[dict] = []
        self.cancelled: list[DownloadHandle] = []

    def start(
        self,
        source_url,
        destination_path,
        extension,
        asset_options=None,
        bitrate_kbps=None,
        duration_seconds=None,
        identity=None,
    ) -> DownloadHandle:
        if self.fail_on_start:
            raise RuntimeError("no event loop")
        handle = DownloadHandle(source_url, destination_path, extension, identity)
        self.started.append(
            {
                "source_url": source_url,
                "destination_path": Path(destination_path),
                "extension": extension,
                "asset_options": asset_options,
                "bitrate_kbps": bitrate_kbps,
                "duration_seconds": duration_seconds,
                "identity": identity,
                "handle": handle,
            }
        )
        return handle

    def cancel(self, handle: DownloadHandle) -> None:
        self.cancelled.append(handle)
        handle.cancel()

    @property
    def started_identities(self) -> list[str]:
        return [call["identity"] for call in self.started]


class FakePlayback:
    """A playback backend that only records what it was asked to do."""

    def __init__(self):
        self.state = PlaybackState.IDLE
        self.position = 0.0
        self.play_when_ready = False
        self.calls: list[tuple] = []

    def load(self, item, handoff=None):
        self.calls.append(("load", item, handoff))
        self.state = PlaybackState.LOADING

    def clear(self):
        self.calls.append(("clear",))
        self.state = PlaybackState.IDLE

    def play(self):
        self.calls.append(("play",))
        self.state = PlaybackState.PLAYING

    def pause(self):
        self.calls.append(("pause",))
        self.state = PlaybackState.PAUSED

    def seek(self, position):
        self.calls.append(("seek", position))

    @property
    def loads(self) -> list[tuple]:
        return [call for call in self.calls if call[0] == "load"]


def stream(name: str, **kwargs) -> QueueItem:
    return QueueItem(f"https://cdn.example.com/audio/{name}.mp3", title=name, **kwargs)


def local(name: str) -> QueueItem:
    return QueueItem(f"/music/{name}.flac", source_type=SourceType.FILE, title=name)


@pytest.fixture
def cache(tmp_path) -> CacheStore:
    return CacheStore(tmp_path / "AudioCache")


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def playback() -> FakePlayback:
    return FakePlayback()


@pytest.fixture(autouse=True)
def reset_library_logger():
    """Undoes the handler and level a player installs on the library logger."""
    yield
    logger = logging.getLogger("streamqueue")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
