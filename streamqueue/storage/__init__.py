"""
Storage Layer.

This package handles the on-disk audio cache and the configuration file.
"""

from .cache import CacheStore, fingerprint
from .config_manager import ConfigManager

__all__ = ["CacheStore", "ConfigManager", "fingerprint"]
