"""
Storage Layer.

This package handles all data persistence: the partitioned key-value store,
the bounded subtitle cache built on it, the sibling repositories, and the
configuration file.
"""

from .config_manager import ConfigManager
from .contracts import KeyValueStore, Partition
from .memory_store import InMemoryStore
from .notifier import CacheStatusNotifier
from .repositories import LanguageListRepository, SettingsRepository, TokenRepository
from .store import SqliteStore
from .subtitle_cache import CACHE_CAPACITY, SubtitleCache

__all__ = [
    "CACHE_CAPACITY",
    "CacheStatusNotifier",
    "ConfigManager",
    "InMemoryStore",
    "KeyValueStore",
    "LanguageListRepository",
    "Partition",
    "SettingsRepository",
    "SqliteStore",
    "SubtitleCache",
    "TokenRepository",
]
