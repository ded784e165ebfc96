"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

PUBLIC_API_HOST = "api.opensubtitles.com"
VIP_API_HOST = "vip-api.opensubtitles.com"
API_HOSTS = (PUBLIC_API_HOST, VIP_API_HOST)

DEFAULT_USER_AGENT = "SubtitlesSelector 0.1.0"


def api_endpoint_for(host: str) -> str:
    """Maps a stored base host to the REST endpoint root."""
    if host == VIP_API_HOST:
        return f"https://{VIP_API_HOST}/api/v1"
    return f"https://{PUBLIC_API_HOST}/api/v1"


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    # API access
    api_key: str
    user_agent: str = DEFAULT_USER_AGENT
    base_url: str = PUBLIC_API_HOST

    # Local behaviour
    download_dir: str = ""
    prefetch_workers: int = 4

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v:
            raise ValueError(
                "API key is not configured. Run 'subsel init <API_KEY>' first."
            )
        if not v.isalnum():
            raise ValueError("API key must be alphanumeric.")
        return v

    @field_validator("user_agent")
    @classmethod
    def validate_user_agent(cls, v: str) -> str:
        # The API rejects requests without a descriptive agent
        if not v:
            raise ValueError("User agent cannot be empty.")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.removeprefix("https://").rstrip("/")
        if v not in API_HOSTS:
            raise ValueError(f"Base URL must be one of: {', '.join(API_HOSTS)}.")
        return v

    @field_validator("prefetch_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent prefetches."""
        if v < 1 or v > 16:
            raise ValueError("Prefetch workers must be between 1 and 16.")
        return v

    @property
    def api_endpoint(self) -> str:
        return api_endpoint_for(self.base_url)

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
