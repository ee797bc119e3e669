"""SSO client facade for the SIKP portal.

Wires the session store, the authorization redirect, the callback
processing, token refresh, profile fetch and post-login routing into one
object per browsing session.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from sikp.auth.client.models.profile import UserProfile
from sikp.auth.client.models.tokens import StoredTokenSet, TokenResponse
from sikp.auth.client.primitives.navigation import Navigator, SessionNavigator
from sikp.auth.client.primitives.random import RandomSource
from sikp.auth.client.services.flow import AuthorizationRedirector, CallbackProcessor
from sikp.auth.client.services.profile import ProfileFetcher
from sikp.auth.client.services.refresh import TokenRefresher
from sikp.auth.client.services.router import CallbackRouter, Notifier
from sikp.auth.client.services.session import logout
from sikp.auth.client.services.storage import SessionStore
from sikp.auth.client.services.tokens import OAuth2TokenManager
from sikp.auth.config import SSOSettings, get_settings

logger = logging.getLogger(__name__)


class SSOClient:
    """SSO authentication for one browsing session.

    Everything that touches the session store goes through this object or
    the services it owns, so every read of the token set is expiry-checked.
    """

    def __init__(
        self,
        settings: SSOSettings | None = None,
        store: SessionStore | None = None,
        navigator: Navigator | None = None,
        notifier: Notifier | None = None,
        random_source: RandomSource | None = None,
        http_client: httpx.AsyncClient | None = None,
        refresher: TokenRefresher | None = None,
    ):
        """Initialize the SSO client.

        Args:
            settings: Client configuration, defaults to the environment
            store: Session store, defaults to a fresh in-memory one
            navigator: Navigator, defaults to an in-process one
            notifier: User-facing notifier, defaults to logging
            random_source: Source for PKCE and state values
            http_client: Shared HTTP client; the caller keeps ownership
            refresher: Refresher shared with other clients of the same
                session, so their refreshes are serialized together
        """
        self.settings = settings or get_settings()
        self.store = store or SessionStore()
        self.navigator = navigator or SessionNavigator()
        self.notifier = notifier

        # Initialize service components
        self.token_manager = OAuth2TokenManager(
            self.settings.backend_base_url,
            timeout=self.settings.request_timeout,
            http_client=http_client,
        )
        self.redirector = AuthorizationRedirector(
            self.settings, self.store, self.navigator, random_source=random_source
        )
        self.callback_processor = CallbackProcessor(
            self.store, self.token_manager, self.settings.redirect_uri
        )
        self.refresher = refresher or TokenRefresher(
            self.store, self.token_manager, self.logout
        )
        self.profile_fetcher = ProfileFetcher(
            self.settings.backend_base_url,
            self.store,
            self.refresher,
            self.logout,
            timeout=self.settings.request_timeout,
            http_client=http_client,
        )

    def start_login(self) -> None:
        """Start a login attempt and navigate to the authorization server."""
        logger.info("Starting SSO login")
        self.redirector.start()

    def create_router(self) -> CallbackRouter:
        return CallbackRouter(
            self.callback_processor,
            self.profile_fetcher,
            self.navigator,
            notifier=self.notifier,
            home_route=self.settings.home_route,
            failure_redirect_delay=self.settings.failure_redirect_delay,
        )

    async def handle_callback(self, params: Mapping[str, str]) -> CallbackRouter:
        """Run the callback query parameters through a new router.

        Returns:
            CallbackRouter: The router, settled in its outcome state
        """
        router = self.create_router()
        await router.handle_callback(params)
        return router

    def get_access_token(self) -> str | None:
        return self.store.get_access_token()

    def get_stored_tokens(self) -> StoredTokenSet | None:
        return self.store.get_tokens()

    def is_authenticated(self) -> bool:
        return self.get_access_token() is not None

    async def fetch_profile(self) -> UserProfile:
        return await self.profile_fetcher.fetch_profile()

    async def refresh(self) -> TokenResponse:
        return await self.refresher.refresh()

    def logout(self) -> None:
        """End the session and send the user home."""
        logout(self.store, self.navigator, self.settings.home_route)

    async def close(self) -> None:
        """Close all service connections."""
        await self.token_manager.close()
        await self.profile_fetcher.close()

    async def __aenter__(self) -> SSOClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
