"""
Core application flow.

The `SubtitleLoader` wraps the bounded cache with the read-through protocol:
serve cached subtitles locally and populate the cache from the API on a miss.
"""
