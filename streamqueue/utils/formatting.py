"""
Helper functions for formatting data into human-readable strings.
"""

from streamqueue.models.item import QueueItem

UNKNOWN = "unknown"


def format_size(bytes_size: int | None) -> str:
    """Formats a byte count such as a cached file size (e.g., '9.4 MB')."""
    if bytes_size is None:
        return UNKNOWN
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    size = float(bytes_size)
    unit = 0
    while size >= 1024 and unit < len(units) - 1:
        size /= 1024
        unit += 1
    return f"{size:.1f} {units[unit]}"


def format_duration(seconds: float | None) -> str:
    """
    Formats a track length or transfer time (e.g., '3m 35s'). Hints that were
    never provided render as 'unknown'.
    """
    if seconds is None:
        return UNKNOWN
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def describe_item(item: QueueItem | None) -> str:
    """Returns 'Artist - Title' for log messages, falling back to the source URL."""
    if item is None:
        return "<none>"
    if item.title:
        return f"{item.artist} - {item.title}" if item.artist else item.title
    return item.source_url
