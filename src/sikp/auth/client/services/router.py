"""Post-login routing state machine.

Drives one callback from the authorization server to its outcome:

    IDLE -> PROCESSING -> DISAMBIGUATING -> REDIRECTING
                       -> REDIRECTING
                       -> FAILED

REDIRECTING ends the flow. FAILED ends it once the delayed navigation home
has been issued.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Protocol

from sikp.auth.client.models.errors import (
    AuthorizationError,
    CallbackParameterError,
    OAuth2Error,
    RouterStateError,
)
from sikp.auth.client.models.flow import AuthorizationResponse
from sikp.auth.client.models.profile import UserProfile
from sikp.auth.client.primitives.navigation import Navigator
from sikp.auth.client.services.flow import CallbackProcessor
from sikp.auth.client.services.profile import ProfileFetcher
from sikp.auth.client.primitives.roles import (
    LoginMode,
    available_login_modes,
    has_admin_role,
    redirect_path_for_roles,
)

logger = logging.getLogger(__name__)

ADMIN_ROUTE = "/admin"


class RouterState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    DISAMBIGUATING = "disambiguating"
    REDIRECTING = "redirecting"
    FAILED = "failed"


class Notifier(Protocol):
    """User-facing notifications (toasts in the browser)."""

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that reports through logging."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


class CallbackRouter:
    """Resolves an authorization callback into a landing route.

    One router handles one callback. After ``handle_callback`` returns, the
    outcome is in ``state`` together with ``destination``, ``error`` or
    ``login_modes``.
    """

    def __init__(
        self,
        callback_processor: CallbackProcessor,
        profile_fetcher: ProfileFetcher,
        navigator: Navigator,
        notifier: Notifier | None = None,
        home_route: str = "/",
        failure_redirect_delay: float = 3.0,
    ):
        self._callback_processor = callback_processor
        self._profile_fetcher = profile_fetcher
        self._navigator = navigator
        self._notifier = notifier or LoggingNotifier()
        self.home_route = home_route
        self.failure_redirect_delay = failure_redirect_delay

        self.state = RouterState.IDLE
        self.error: str | None = None
        self.login_modes: list[LoginMode] = []
        self.profile: UserProfile | None = None
        self.destination: str | None = None

    async def handle_callback(self, params: Mapping[str, str]) -> RouterState:
        """Process the callback query parameters.

        Args:
            params: Callback query parameters; only ``code``, ``state``,
                ``error`` and ``error_description`` are read

        Returns:
            RouterState: The state the router settled in

        Raises:
            RouterStateError: If this router already handled a callback
        """
        if self.state is not RouterState.IDLE:
            raise RouterStateError(f"Callback already handled (state: {self.state.value})")
        self.state = RouterState.PROCESSING

        response = AuthorizationResponse.from_params(params)

        if response.is_error():
            return self._fail(
                AuthorizationError(f"Authorization failed: {response.error_message}")
            )
        if response.code is None or response.state is None:
            return self._fail(
                CallbackParameterError("Missing required parameters (code or state)")
            )

        try:
            await self._callback_processor.complete(response.code, response.state)
        except OAuth2Error as e:
            return self._fail(e)

        self._notifier.success("Login succeeded")

        try:
            profile = await self._profile_fetcher.fetch_profile()
        except OAuth2Error as e:
            logger.error(f"Failed to fetch user profile: {e}")
            return self._fail(e, message="Failed to load user profile")

        self.profile = profile
        return self._route(profile)

    def choose_mode(self, mode: LoginMode) -> str:
        """Resolve a pending disambiguation with the user's choice.

        Returns:
            The route navigated to

        Raises:
            RouterStateError: If no choice is pending or ``mode`` was not offered
        """
        if self.state is not RouterState.DISAMBIGUATING:
            raise RouterStateError(f"No login mode choice pending (state: {self.state.value})")
        if mode not in self.login_modes:
            raise RouterStateError(f"Login mode {mode.value} was not offered")

        return self._redirect(mode.route)

    def _route(self, profile: UserProfile) -> RouterState:
        # Admin-tier roles skip disambiguation entirely
        if has_admin_role(profile.roles):
            self._redirect(ADMIN_ROUTE)
            return self.state

        modes = available_login_modes(profile.roles)
        if len(modes) > 1:
            self.login_modes = modes
            self.state = RouterState.DISAMBIGUATING
            logger.info(f"Login mode choice required: {[m.value for m in modes]}")
            return self.state

        self._redirect(redirect_path_for_roles(profile.roles))
        return self.state

    def _redirect(self, route: str) -> str:
        self.destination = route
        self.state = RouterState.REDIRECTING
        self._navigator.navigate(route)
        return route

    def _fail(self, error: OAuth2Error, message: str | None = None) -> RouterState:
        self.error = message or str(error)
        self.state = RouterState.FAILED
        logger.warning(f"Login callback failed: {type(error).__name__}: {error}")

        self._notifier.error(f"Login failed: {self.error}")
        self._navigator.navigate(self.home_route, delay=self.failure_redirect_delay)
        return self.state
