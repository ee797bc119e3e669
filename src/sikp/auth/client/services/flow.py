"""SSO authorization code flow orchestration.

Covers the two halves of a login attempt around the trip to the
authorization server:
- ``AuthorizationRedirector`` prepares PKCE and state, then leaves the app
- ``CallbackProcessor`` validates the callback and exchanges the code
"""

from __future__ import annotations

import logging

from sikp.auth.client.models.errors import (
    MissingVerifierError,
    StateValidationError,
)
from sikp.auth.client.models.flow import AuthorizationRequest
from sikp.auth.client.models.tokens import (
    ExchangeRequest,
    StoredTokenSet,
    TokenResponse,
)
from sikp.auth.client.primitives.navigation import Navigator
from sikp.auth.client.primitives.pkce import PKCEManager
from sikp.auth.client.primitives.random import RandomSource
from sikp.auth.client.services.security import generate_state, validate_state
from sikp.auth.client.services.storage import SessionStore
from sikp.auth.client.services.tokens import OAuth2TokenManager
from sikp.auth.config import SSOSettings

logger = logging.getLogger(__name__)


class AuthorizationRedirector:
    """Starts a login attempt by sending the user to the authorization server.

    Each call to ``start`` generates a fresh PKCE pair and state, overwrites
    whatever an abandoned attempt left in the session store, and navigates
    to the authorization endpoint. No network call is made directly.
    """

    def __init__(
        self,
        settings: SSOSettings,
        store: SessionStore,
        navigator: Navigator,
        pkce_manager: PKCEManager | None = None,
        random_source: RandomSource | None = None,
    ):
        self._settings = settings
        self._store = store
        self._navigator = navigator
        self._pkce_manager = pkce_manager or PKCEManager(random_source)
        self._random_source = random_source

    def build_url(self) -> str:
        """Persist fresh PKCE and state values and return the authorization URL."""
        pkce_params = self._pkce_manager.generate_parameters()
        state = generate_state(self._random_source)

        self._store.put(SessionStore.CODE_VERIFIER_KEY, pkce_params.code_verifier)
        self._store.put(SessionStore.STATE_KEY, state)

        auth_request = AuthorizationRequest(
            authorization_endpoint=self._settings.authorize_endpoint,
            client_id=self._settings.client_id,
            redirect_uri=self._settings.redirect_uri,
            scope=self._settings.scopes,
            state=state,
            code_challenge=pkce_params.code_challenge,
            code_challenge_method=pkce_params.code_challenge_method,
        )

        logger.info(f"Generated authorization URL for client {self._settings.client_id}")
        return auth_request.build_authorization_url()

    def start(self) -> None:
        """Begin a login attempt; the user leaves the application."""
        self._navigator.navigate(self.build_url())


class CallbackProcessor:
    """Completes a login attempt from the authorization server's callback.

    The stored verifier and state are consumed before anything is checked,
    so they are gone once ``complete`` returns or raises. A replayed
    callback therefore fails with ``MissingVerifierError``.
    """

    def __init__(
        self,
        store: SessionStore,
        token_manager: OAuth2TokenManager,
        redirect_uri: str,
    ):
        self._store = store
        self._token_manager = token_manager
        self._redirect_uri = redirect_uri

    async def complete(self, code: str, state: str) -> TokenResponse:
        """Validate the callback and exchange the code for tokens.

        Args:
            code: Authorization code from the callback
            state: State parameter from the callback

        Returns:
            TokenResponse: Token response from the backend

        Raises:
            MissingVerifierError: If no PKCE verifier is stored
            StateValidationError: If the state does not match the stored one
            TokenExchangeError: If the backend rejects the code
            NetworkError: If the backend cannot be reached in time
        """
        code_verifier = self._store.take(SessionStore.CODE_VERIFIER_KEY)
        expected_state = self._store.take(SessionStore.STATE_KEY)

        if not code_verifier:
            logger.warning("Callback received without a stored code verifier")
            raise MissingVerifierError("Code verifier not found in session")

        try:
            validate_state(expected_state, state)
        except StateValidationError:
            logger.warning("Callback state does not match the stored state")
            raise

        token_response = await self._token_manager.exchange_code_for_token(
            ExchangeRequest(
                code=code,
                redirect_uri=self._redirect_uri,
                code_verifier=code_verifier,
            )
        )

        self._store.put_tokens(
            StoredTokenSet.from_response(token_response, now=self._store.now())
        )
        logger.info("Authorization code exchanged and tokens stored")

        return token_response
