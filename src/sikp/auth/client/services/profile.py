"""Authenticated profile fetch with a single refresh-and-retry.

Calls the backend's "who am I" endpoint with the stored access token. A
401 is recovered once through the token refresher; a second one ends the
session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx
from pydantic import ValidationError

from sikp.auth.client.models.errors import (
    NetworkError,
    NotAuthenticatedError,
    OAuth2Error,
    ProfileError,
    SessionExpiredError,
)
from sikp.auth.client.models.profile import (
    ProfileEnvelope,
    ProfilePayload,
    UserProfile,
)
from sikp.auth.client.services.refresh import TokenRefresher
from sikp.auth.client.services.storage import SessionStore

logger = logging.getLogger(__name__)

PROFILE_PATH = "/api/auth/me"
PROFILE_FETCH_FAILED = "Failed to fetch user profile"


class ProfileFetcher:
    """Fetches and normalizes the signed-in user's profile.

    The retry bound is explicit: ``max_retries`` refresh-and-retry rounds
    after the first attempt (one by default), never more.
    """

    def __init__(
        self,
        base_url: str,
        store: SessionStore,
        refresher: TokenRefresher,
        on_logout: Callable[[], None],
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        max_retries: int = 1,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self._store = store
        self._refresher = refresher
        self._on_logout = on_logout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def fetch_profile(self) -> UserProfile:
        """Fetch the current user's profile.

        Returns:
            UserProfile: Normalized profile with its primary role

        Raises:
            NotAuthenticatedError: If no live access token is stored
            SessionExpiredError: If the refresh-and-retry path is exhausted,
                including any failure of the request retried after a refresh
            ProfileError: If the first request fails for any other reason
            NetworkError: If the first request cannot reach the backend in time
        """
        for attempt in range(self.max_retries + 1):
            access_token = self._store.get_access_token()
            if access_token is None:
                if attempt == 0:
                    raise NotAuthenticatedError("Not authenticated")
                self._on_logout()
                raise SessionExpiredError("Session expired")

            try:
                response = await self._get_profile(access_token)
                if response.status_code != 401:
                    return self._parse_profile_response(response)
            except OAuth2Error as e:
                if attempt == 0:
                    raise
                # Any failed retry after a refresh exhausts the session
                logger.warning(f"Profile retry after refresh failed: {e}")
                self._on_logout()
                raise SessionExpiredError("Session expired") from e

            if attempt >= self.max_retries:
                break

            logger.warning("Profile request unauthorized, refreshing access token")
            try:
                await self._refresher.refresh()
            except OAuth2Error as e:
                # The refresher has already ended the session
                raise SessionExpiredError("Session expired") from e

        logger.warning("Profile request still unauthorized after refresh")
        self._on_logout()
        raise SessionExpiredError("Session expired")

    async def _get_profile(self, access_token: str) -> httpx.Response:
        try:
            return await self._http_client.get(
                f"{self.base_url}{PROFILE_PATH}",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {PROFILE_PATH} timed out") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"HTTP error during request to {PROFILE_PATH}: {e}") from e

    def _parse_profile_response(self, response: httpx.Response) -> UserProfile:
        """Normalize a bare profile or a ``{success, message, data}`` envelope."""
        if not 200 <= response.status_code < 300:
            logger.warning(f"Profile request failed with {response.status_code}")
            raise ProfileError(PROFILE_FETCH_FAILED, status_code=response.status_code)

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise ProfileError(PROFILE_FETCH_FAILED, status_code=response.status_code) from e

        if not isinstance(payload, dict):
            raise ProfileError(PROFILE_FETCH_FAILED, status_code=response.status_code)

        try:
            if "success" in payload:
                envelope = ProfileEnvelope.model_validate(payload)
                if not envelope.success:
                    raise ProfileError(envelope.message or PROFILE_FETCH_FAILED)
                if envelope.data is None:
                    raise ProfileError(envelope.message or "User profile data is empty")
                profile_payload = envelope.data
            else:
                profile_payload = ProfilePayload.model_validate(payload)
        except ValidationError as e:
            raise ProfileError(
                f"Invalid profile response format: {e}",
                status_code=response.status_code,
            ) from e

        profile = UserProfile.from_payload(profile_payload)
        logger.info(f"Fetched profile with primary role {profile.primary_role}")
        return profile

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._http_client.aclose()
