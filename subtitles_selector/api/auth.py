"""
Handles authentication with the OpenSubtitles API and keeps the stored token
current.
"""

import logging
from typing import TYPE_CHECKING, Any

from subtitles_selector.exceptions import AuthRequiredError, NetworkError
from subtitles_selector.models.config import PUBLIC_API_HOST
from subtitles_selector.models.records import TokenRecord

if TYPE_CHECKING:
    from subtitles_selector.storage.repositories import TokenRepository

    from .client import OpenSubtitlesClient

log = logging.getLogger(__name__)


class OpenSubtitlesAuthenticator:
    """
    Manages the token lifecycle for the API client.
    """

    def __init__(self, api_client: "OpenSubtitlesClient", tokens: "TokenRepository"):
        """
        Args:
            api_client: The gateway used to validate tokens and log in.
            tokens: Repository holding the current token.
        """
        self._api_client = api_client
        self._tokens = tokens

    async def authenticate_with_token(
        self, token: str, base_url: str = PUBLIC_API_HOST
    ) -> TokenRecord:
        """
        Validates an existing token against the API and stores it.

        Returns:
            The stored token record, including account info.
        """
        log.info("Authenticating with token...")
        user_data = await self._api_client.validate_token(token, host=base_url)
        log.info(f"Authenticated (level: {user_data.get('level', 'unknown')}).")
        return await self._tokens.save(token, base_url=base_url, user_data=user_data)

    async def authenticate_with_credentials(
        self, username: str, password: str
    ) -> TokenRecord:
        """Logs in with a username and password and stores the resulting token."""
        log.info(f"Authenticating as: {username}")
        response = await self._api_client.login(username, password)
        user_data: dict[str, Any] = response.get("user") or {}
        return await self._tokens.save(
            response["token"],
            base_url=response.get("base_url") or PUBLIC_API_HOST,
            user_data=user_data,
        )

    async def ensure_valid_token(self) -> TokenRecord:
        """
        Returns the stored token if it can be used for downloads.

        A token younger than the local expiry window is trusted without a
        round-trip. Older tokens are checked with the server. A network failure
        during that check keeps the token, since the download that follows will
        surface a real rejection anyway.

        Raises:
            AuthRequiredError: If no token is stored or the server rejects it.
        """
        record = await self._tokens.load()
        if record is None:
            raise AuthRequiredError("Not logged in. Run 'subsel init' with a token.")

        if self._tokens.is_locally_valid(record):
            return record

        log.debug("Stored token is past its local expiry; verifying with the server.")
        try:
            await self._api_client.validate_token(record.token, host=record.base_url)
        except AuthRequiredError:
            await self._tokens.clear()
            raise
        except NetworkError as e:
            log.warning(f"Could not verify token, assuming it is still valid: {e}")
            return record

        return await self._tokens.save(
            record.token, base_url=record.base_url, user_data=record.user_data
        )
