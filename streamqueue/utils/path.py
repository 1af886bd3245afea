"""
Utilities for locating the cache root and deriving file names from source URLs.
"""

import os
import sys
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit

from pathvalidate import sanitize_filename

CACHE_SUBDIR = Path("streamqueue") / "AudioCache"


def get_cache_root() -> Path:
    """Returns the audio cache directory under the platform's cache location."""
    if os.name == "nt":
        base_dir = Path(os.getenv("LOCALAPPDATA", "~\\AppData\\Local"))
    elif sys.platform == "darwin":
        base_dir = Path("~/Library/Caches")
    else:
        base_dir = Path(os.getenv("XDG_CACHE_HOME", "~/.cache"))
    return base_dir.expanduser() / CACHE_SUBDIR


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def url_path_extension(locator: str) -> str:
    """
    Returns the extension of the locator's path component without the dot,
    ignoring any query string or fragment. Empty if there is none.
    """
    path = unquote(urlsplit(locator).path)
    if not path or path.endswith("/"):
        return ""
    return PurePosixPath(path).suffix.lstrip(".")


def safe_file_stem(name: str) -> str:
    """Strips characters that cannot appear in a file name on this platform."""
    return sanitize_filename(name, platform="auto")
