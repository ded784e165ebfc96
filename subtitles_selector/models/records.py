"""
Pydantic models for the records kept in each partition of the persistent store.
"""

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SETTINGS: dict[str, Any] = {
    "font_size": 16,
    "font_color": "#FFFFFF",
    "bg_enabled": True,
    "bg_color": "#000000",
    "bg_opacity": 0.5,
    "outline_enabled": False,
    "outline_color": "#000000",
    "sync_offset": 0.0,
    "animation_enabled": True,
    "animation_type": "none",
    "animation_duration": 200,
}


def now_ms() -> int:
    """Returns the current time in epoch milliseconds."""
    return int(time.time() * 1000)


class CacheRecord(BaseModel):
    """One cached subtitle file, keyed by its OpenSubtitles file id."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=False)

    id: str = Field(..., min_length=1)
    content: str
    file_name: str = Field(default="", alias="fileName")
    title: str = ""
    timestamp: int = Field(..., ge=0)
    language: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """File ids come back from the API as integers."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    def to_store(self) -> dict[str, Any]:
        """Serializes using the persisted field names (``fileName``)."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @property
    def display_title(self) -> str:
        return self.title or self.file_name or f"Subtitle {self.id}"


class TokenRecord(BaseModel):
    """The current API session token."""

    id: str = "current"
    token: str = Field(..., min_length=1)
    base_url: str = "api.opensubtitles.com"
    timestamp: int = Field(default_factory=now_ms, ge=0)
    user_data: dict[str, Any] | None = None


class SettingsRecord(BaseModel):
    """Overlay display settings, including the time-sync offset."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = "userSettings"
    font_size: int = Field(default=DEFAULT_SETTINGS["font_size"], ge=6, le=96)
    font_color: str = DEFAULT_SETTINGS["font_color"]
    bg_enabled: bool = DEFAULT_SETTINGS["bg_enabled"]
    bg_color: str = DEFAULT_SETTINGS["bg_color"]
    bg_opacity: float = Field(default=DEFAULT_SETTINGS["bg_opacity"], ge=0.0, le=1.0)
    outline_enabled: bool = DEFAULT_SETTINGS["outline_enabled"]
    outline_color: str = DEFAULT_SETTINGS["outline_color"]
    sync_offset: float = DEFAULT_SETTINGS["sync_offset"]
    animation_enabled: bool = DEFAULT_SETTINGS["animation_enabled"]
    animation_type: str = DEFAULT_SETTINGS["animation_type"]
    animation_duration: int = Field(default=DEFAULT_SETTINGS["animation_duration"], ge=0)

    @field_validator("font_color", "bg_color", "outline_color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        """Colours are stored as #RRGGBB."""
        v = v.strip()
        if len(v) != 7 or not v.startswith("#"):
            raise ValueError(f"Colour must look like #RRGGBB, got: {v}")
        try:
            int(v[1:], 16)
        except ValueError as e:
            raise ValueError(f"Colour must look like #RRGGBB, got: {v}") from e
        return v.upper()


class LanguageListRecord(BaseModel):
    """The cached list of languages offered by the API."""

    id: str = "cachedLanguages"
    data: list[dict[str, Any]] = Field(default_factory=list)
    timestamp: int = Field(default_factory=now_ms, ge=0)
