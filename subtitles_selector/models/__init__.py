"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as configuration and cached records.
"""

from .config import AppConfig
from .records import CacheRecord, LanguageListRecord, SettingsRecord, TokenRecord
from .session import SessionState

__all__ = [
    "AppConfig",
    "CacheRecord",
    "LanguageListRecord",
    "SessionState",
    "SettingsRecord",
    "TokenRecord",
]
