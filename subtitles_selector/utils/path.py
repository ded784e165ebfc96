"""
Utilities for handling subtitle file names and config locations.
"""

import os
from pathlib import Path

from pathvalidate import sanitize_filename

SUBTITLE_EXTENSIONS = (".srt", ".vtt", ".ass", ".ssa", ".sub")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "subtitles-selector"


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def subtitle_file_name(file_name: str, fallback: str) -> str:
    """
    Sanitizes a suggested file name, defaulting to ``fallback`` and adding
    ``.srt`` when no subtitle extension is present.
    """
    name = sanitize_filename(file_name or "").strip() or fallback
    if not name.lower().endswith(SUBTITLE_EXTENSIONS):
        name = f"{name}.srt"
    return name
