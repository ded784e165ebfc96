"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class SubtitlesSelectorError(Exception):
    """Base exception for all application-specific errors."""


class InvalidArgumentError(SubtitlesSelectorError, ValueError):
    """Raised when a caller passes malformed input, such as an empty subtitle id."""


class StorageError(SubtitlesSelectorError):
    """Raised when a single operation against the persistent store fails."""


class StorageUnavailableError(StorageError):
    """Raised when the persistent store cannot be opened at all."""


class ConfigurationError(SubtitlesSelectorError):
    """Raised for issues related to configuration loading or validation."""


class RemoteFetchError(SubtitlesSelectorError):
    """Base class for failures reported by the OpenSubtitles gateway."""


class AuthRequiredError(RemoteFetchError):
    """Raised when no usable token is available or the API rejects it."""


class SubtitleNotFoundError(RemoteFetchError):
    """Raised when the requested subtitle file does not exist upstream."""


class NetworkError(RemoteFetchError):
    """Raised when the API cannot be reached."""


class UpstreamError(RemoteFetchError):
    """Raised when the API answers with an unexpected status or payload."""
