"""
OpenSubtitles API Layer.

This package handles all communication with the OpenSubtitles REST API.
"""

from .auth import OpenSubtitlesAuthenticator
from .client import OpenSubtitlesClient, RawSubtitlePayload
from .rate_limiter import AdaptiveRateLimiter

__all__ = [
    "AdaptiveRateLimiter",
    "OpenSubtitlesAuthenticator",
    "OpenSubtitlesClient",
    "RawSubtitlePayload",
]
