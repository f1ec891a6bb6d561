"""
Storage Layer.

This package handles configuration files and the in-memory response cache.
"""

from .cache import ResponseCache
from .config_manager import ConfigManager

__all__ = ["ConfigManager", "ResponseCache"]
