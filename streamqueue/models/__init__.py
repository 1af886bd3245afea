"""
Data Models Layer.

This package contains the queue item descriptor, the enums shared by the queue
and the prefetcher, and the Pydantic configuration model.
"""

from .config import PlayerConfig
from .item import QueueItem, RepeatMode, SourceType, track_identity

__all__ = ["PlayerConfig", "QueueItem", "RepeatMode", "SourceType", "track_identity"]
