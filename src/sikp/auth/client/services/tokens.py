"""Token exchange and refresh against the SIKP backend.

The portal is a public client: the backend holds the SSO client
registration and performs the real token endpoint calls. This service posts
JSON bodies to the backend's exchange and refresh endpoints and turns their
responses into ``TokenResponse`` objects or typed errors.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from sikp.auth.client.models.errors import (
    NetworkError,
    TokenError,
    TokenExchangeError,
    TokenRefreshError,
)
from sikp.auth.client.models.tokens import (
    ExchangeRequest,
    RefreshRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

EXCHANGE_PATH = "/api/auth/exchange"
REFRESH_PATH = "/api/auth/refresh"


class OAuth2TokenManager:
    """Manages authorization code exchange and access token refresh.

    Handles the backend token endpoint interactions including:
    - Authorization code + PKCE verifier to token exchange
    - Access token refresh
    - Mapping backend error bodies onto typed errors
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the token manager.

        Args:
            base_url: SIKP backend base URL
            timeout: HTTP request timeout in seconds
            http_client: Shared client to use instead of creating one; the
                caller keeps ownership of it
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, exchange_request: ExchangeRequest
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            exchange_request: Code, redirect URI and PKCE verifier

        Returns:
            TokenResponse: Successful token response

        Raises:
            TokenExchangeError: If the backend rejects the code
            NetworkError: If the backend cannot be reached in time
        """
        logger.debug(f"Exchanging authorization code at {self.base_url}{EXCHANGE_PATH}")

        return await self._post_token_request(
            EXCHANGE_PATH,
            exchange_request.to_json(),
            error_cls=TokenExchangeError,
            fallback_message="Token exchange failed",
        )

    async def refresh_access_token(
        self, refresh_request: RefreshRequest
    ) -> TokenResponse:
        """Refresh an access token using a refresh token.

        Args:
            refresh_request: Refresh token request

        Returns:
            TokenResponse: New token response; ``refresh_token`` may be None
            when the backend does not rotate it

        Raises:
            TokenRefreshError: If the backend rejects the refresh token
            NetworkError: If the backend cannot be reached in time
        """
        logger.debug(f"Refreshing access token at {self.base_url}{REFRESH_PATH}")

        return await self._post_token_request(
            REFRESH_PATH,
            refresh_request.to_json(),
            error_cls=TokenRefreshError,
            fallback_message="Token refresh failed",
        )

    async def _post_token_request(
        self,
        path: str,
        body: dict[str, str],
        error_cls: type[TokenError],
        fallback_message: str,
    ) -> TokenResponse:
        try:
            response = await self._http_client.post(
                f"{self.base_url}{path}",
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"HTTP error during request to {path}: {e}") from e

        return self._parse_token_response(response, error_cls, fallback_message)

    def _parse_token_response(
        self,
        response: httpx.Response,
        error_cls: type[TokenError],
        fallback_message: str,
    ) -> TokenResponse:
        """Parse a token endpoint response.

        Args:
            response: HTTP response from the backend
            error_cls: Error type to raise on failure
            fallback_message: Message used when the body names no error

        Returns:
            TokenResponse: Parsed successful response

        Raises:
            TokenError: ``error_cls`` for error statuses and malformed bodies
        """
        response_data = _json_body(response)

        if not 200 <= response.status_code < 300:
            # Surface the backend's own message verbatim when it sends one
            message = (
                response_data.get("message")
                or response_data.get("error")
                or fallback_message
            )
            logger.warning(f"{fallback_message} with {response.status_code}: {message}")
            raise error_cls(str(message), status_code=response.status_code)

        if "access_token" not in response_data:
            raise error_cls(
                "Token response missing required access_token",
                status_code=response.status_code,
            )

        try:
            token_response = TokenResponse.model_validate(response_data)
        except ValidationError as e:
            raise error_cls(
                f"Invalid token response format: {e}",
                status_code=response.status_code,
            ) from e

        logger.info("Token request successful")
        return token_response

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client:
            await self._http_client.aclose()


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Return the JSON object body of a response, or {} if there is none."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
