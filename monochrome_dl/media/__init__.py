"""
Media Transfer Layer.

This package is responsible for streaming audio bodies to disk.
"""

from .downloader import Downloader, close_connection_pool

__all__ = ["Downloader", "close_connection_pool"]
