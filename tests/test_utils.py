"""Tests for logging, formatting and path helpers."""

import io
import json
import logging
import os
import sys

import pytest
from rich.console import Console
from rich.logging import RichHandler

from conftest import stream
from streamqueue.utils.formatting import describe_item, format_duration, format_size
from streamqueue.utils.log_setup import configure_logging
from streamqueue.utils.path import get_cache_root, url_path_extension
from streamqueue.utils.structured_logger import create_structured_logger


def test_structured_logger_writes_jsonl(tmp_path):
    base, prefetch, queue = create_structured_logger(tmp_path / "logs", enable_json=True)
    with base:
        base.set_session_context(device="test")
        prefetch.started("trk-1", tmp_path / "trk-1.mp3", bitrate_kbps=320)
        queue.queue_cleared(3)

    lines = base.json_log_path.read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines]
    assert [e["event"] for e in entries] == ["prefetch_started", "queue_cleared"]
    assert entries[0]["identity"] == "trk-1"
    assert entries[0]["bitrate_kbps"] == 320
    assert entries[0]["level"] == "INFO"
    assert entries[1]["device"] == "test"
    assert entries[1]["level"] == "DEBUG"


def test_structured_logger_goes_through_standard_logging(caplog):
    base, prefetch, _ = create_structured_logger()
    assert base.json_log_path is None
    with caplog.at_level(logging.WARNING, logger="streamqueue"):
        prefetch.failed("trk-[1]", "timeout")
    assert "[prefetch_failed] identity=trk-[1] error=timeout" in caplog.text


def test_configure_logging_installs_single_rich_handler():
    console = Console(file=io.StringIO())
    logger = configure_logging("DEBUG", console=console)
    configure_logging("WARNING", console=console)
    try:
        rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1
        assert logger.level == logging.WARNING
        logger.warning("cache is [bold]cold[/bold]")
        assert "cache is cold" in console.file.getvalue()
    finally:
        for handler in rich_handlers:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    "size,expected", [(0, "0 B"), (512, "512.0 B"), (1536, "1.5 KB"), (5 * 1024**2, "5.0 MB")]
)
def test_format_size(size, expected):
    assert format_size(size) == expected


def test_format_size_of_unknown_length():
    assert format_size(None) == "unknown"


def test_format_duration():
    assert format_duration(0) == "0s"
    assert format_duration(215.5) == "3m 35s"
    assert format_duration(3600) == "1h"
    assert format_duration(None) == "unknown"


def test_prefetch_events_carry_readable_sizes(tmp_path):
    base, prefetch, _ = create_structured_logger(tmp_path / "logs", enable_json=True)
    with base:
        prefetch.started("trk-1", tmp_path / "trk-1.mp3", duration_s=215.0)
        prefetch.completed("trk-1", 3 * 1024**2, 4.25)
        prefetch.handed_off("trk-1", 1536, complete=False)

    lines = base.json_log_path.read_text(encoding="utf-8").splitlines()
    started, completed, handed_off = (json.loads(line) for line in lines)
    assert started["length"] == "3m 35s"
    assert completed["size"] == "3.0 MB"
    assert completed["took"] == "4s"
    assert handed_off["available"] == "1.5 KB"


def test_describe_item():
    assert describe_item(None) == "<none>"
    assert describe_item(stream("a", artist="Band")) == "Band - a"
    assert describe_item(stream("a")) == "a"
    untitled = stream("a")
    untitled.title = None
    assert describe_item(untitled) == untitled.source_url


@pytest.mark.parametrize(
    "locator,expected",
    [
        ("https://cdn.example.com/a/b/track.mp3?token=x#t=1", "mp3"),
        ("https://cdn.example.com/a/track%20one.flac", "flac"),
        ("https://cdn.example.com/stream", ""),
        ("https://cdn.example.com/dir/", ""),
        ("/music/local.ogg", "ogg"),
    ],
)
def test_url_path_extension(locator, expected):
    assert url_path_extension(locator) == expected


@pytest.mark.skipif(os.name == "nt" or sys.platform == "darwin", reason="XDG layout")
def test_cache_root_follows_xdg(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    assert get_cache_root() == tmp_path / "streamqueue" / "AudioCache"
