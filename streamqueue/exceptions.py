"""
Defines custom exceptions for the library to allow for more specific error handling.
"""


class StreamQueueError(Exception):
    """Base exception for all library-specific errors."""


class QueueError(StreamQueueError):
    """Base exception for failed queue mutations."""

    InvalidIndex: type["InvalidIndexError"]


class InvalidIndexError(QueueError):
    """Raised when an operation references an index outside the queue's bounds."""

    def __init__(self, index: int, name: str = "index", upper_bound: int = 0):
        self.index = index
        self.name = name
        self.upper_bound = upper_bound
        if upper_bound <= 0:
            detail = "the queue is empty"
        else:
            detail = f"must be between 0 and {upper_bound - 1}"
        super().__init__(f"Invalid {name} {index}: {detail}.")


QueueError.InvalidIndex = InvalidIndexError


class CacheWriteError(StreamQueueError, OSError):
    """Raised when bytes cannot be written to a cache file."""


class ConfigurationError(StreamQueueError):
    """Raised for issues related to configuration loading or validation."""
