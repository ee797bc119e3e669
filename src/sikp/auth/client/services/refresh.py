"""Access token refresh.

A failed refresh means the session cannot recover, so every failure ends
the session before the error is re-raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sikp.auth.client.models.errors import NoRefreshTokenError
from sikp.auth.client.models.tokens import (
    RefreshRequest,
    StoredTokenSet,
    TokenResponse,
)
from sikp.auth.client.services.storage import SessionStore
from sikp.auth.client.services.tokens import OAuth2TokenManager

logger = logging.getLogger(__name__)


class TokenRefresher:
    """Exchanges the stored refresh token for a new token set.

    Refreshes are serialized within the process. A caller that waited on a
    refresh which already rotated the token it saw gets that refresh's
    response instead of spending the new refresh token again. Callers in
    other processes sharing the same storage are not coordinated.
    """

    def __init__(
        self,
        store: SessionStore,
        token_manager: OAuth2TokenManager,
        on_logout: Callable[[], None],
    ):
        """Initialize the refresher.

        Args:
            store: Session store holding the refresh token
            token_manager: Backend token endpoint client
            on_logout: Ends the session (clears storage, navigates home)
        """
        self._store = store
        self._token_manager = token_manager
        self._on_logout = on_logout
        self._lock = asyncio.Lock()
        self._last_refresh: tuple[str, TokenResponse] | None = None

    async def refresh(self) -> TokenResponse:
        """Refresh the access token.

        Returns:
            TokenResponse: Token response from the backend

        Raises:
            NoRefreshTokenError: If no refresh token is stored
            TokenRefreshError: If the backend rejects the refresh token
            NetworkError: If the backend cannot be reached in time
        """
        seen_refresh_token = self._store.get_refresh_token()

        async with self._lock:
            refresh_token = self._store.get_refresh_token()

            if (
                self._last_refresh is not None
                and seen_refresh_token is not None
                and self._last_refresh[0] == seen_refresh_token
                and refresh_token is not None
                and refresh_token != seen_refresh_token
            ):
                logger.debug("Token already refreshed by a concurrent caller")
                return self._last_refresh[1]

            if not refresh_token:
                logger.warning("Refresh requested without a stored refresh token")
                self._on_logout()
                raise NoRefreshTokenError("No refresh token available")

            try:
                token_response = await self._token_manager.refresh_access_token(
                    RefreshRequest(refresh_token=refresh_token)
                )
            except Exception as e:
                logger.error(f"Token refresh failed, ending session: {e}")
                self._on_logout()
                raise

            self._store.put_tokens(
                StoredTokenSet.from_response(
                    token_response,
                    now=self._store.now(),
                    fallback_refresh_token=refresh_token,
                )
            )
            self._last_refresh = (refresh_token, token_response)
            logger.info("Successfully refreshed access token")

            return token_response
