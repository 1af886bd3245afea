"""
Shared helpers for paths, formatting and logging.
"""
