"""
Subtitles Selector: fetch OpenSubtitles files by id through a bounded local cache.
"""

__version__ = "0.1.0"
