"""
Core queue engine.

The `QueueManager` keeps the ordered items and the cursor, the
`PrefetchCoordinator` keeps one lookahead download in flight, and the
`QueuedPlayer` ties both to a playback backend.
"""

from .playback import CurrentItemChange, Playback, PlaybackState
from .player import QueuedPlayer
from .prefetch import PrefetchCoordinator, PrefetchHandoff, PrefetchTarget
from .queue_manager import QueueManager, QueueManagerDelegate

__all__ = [
    "CurrentItemChange",
    "Playback",
    "PlaybackState",
    "PrefetchCoordinator",
    "PrefetchHandoff",
    "PrefetchTarget",
    "QueueManager",
    "QueueManagerDelegate",
    "QueuedPlayer",
]
