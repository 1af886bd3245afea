"""
Media Transfer Layer.

This package is responsible for fetching streamed media into the audio cache.
"""

from .downloader import (
    Downloader,
    DownloadHandle,
    DownloadStatus,
    HttpDownloader,
    close_connection_pool,
    get_connection_pool,
)

__all__ = [
    "DownloadHandle",
    "DownloadStatus",
    "Downloader",
    "HttpDownloader",
    "close_connection_pool",
    "get_connection_pool",
]
