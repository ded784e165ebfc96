"""
Helper functions for formatting data into human-readable strings.
"""

from datetime import datetime

from subtitles_selector.models.records import now_ms


def format_size(size: int) -> str:
    """Formats a character or byte count into a short string (e.g., '41.2 KB')."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{value:.1f} {units[i]}" if i else f"{int(value)} B"


def format_age(timestamp_ms: int, now: int | None = None) -> str:
    """Formats how long ago an epoch-milliseconds timestamp was (e.g., '2h 5m ago')."""
    now = now_ms() if now is None else now
    seconds = max(0, (now - timestamp_ms) // 1000)
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)
    if days:
        return f"{days}d {hours}h ago"
    if hours:
        return f"{hours}h {minutes}m ago"
    if minutes:
        return f"{minutes}m ago"
    return f"{secs}s ago"


def format_timestamp(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M")
