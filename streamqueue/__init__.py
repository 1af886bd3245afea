"""
streamqueue: an ordered playback queue that prefetches the next streamed item
into a local disk cache so playback can continue without a network stall.
"""

__version__ = "0.3.0"
