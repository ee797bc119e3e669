"""Tests for the post-login routing state machine."""

from unittest.mock import AsyncMock

import pytest

from sikp.auth.client.models.errors import (
    NetworkError,
    RouterStateError,
    SessionExpiredError,
    StateValidationError,
)
from sikp.auth.client.models.profile import ProfilePayload, UserProfile
from sikp.auth.client.models.tokens import TokenResponse
from sikp.auth.client.primitives.roles import LoginMode
from sikp.auth.client.services.router import CallbackRouter, RouterState

CALLBACK_PARAMS = {"code": "code-123", "state": "state-abc"}


def make_profile(*roles: str) -> UserProfile:
    return UserProfile.from_payload(ProfilePayload(sub="user-1", roles=list(roles)))


class TestCallbackRouter:
    @pytest.fixture(autouse=True)
    def _setup(self, navigator, notifier):
        # Arrange
        self.navigator = navigator
        self.notifier = notifier
        self.callback_processor = AsyncMock()
        self.callback_processor.complete.return_value = TokenResponse(
            access_token="at-1", expires_in=900
        )
        self.profile_fetcher = AsyncMock()
        self.router = CallbackRouter(
            self.callback_processor,
            self.profile_fetcher,
            navigator,
            notifier=notifier,
        )

    async def test_authorization_error_fails_without_backend_calls(self):
        # Act
        state = await self.router.handle_callback(
            {"error": "access_denied", "error_description": "User denied access"}
        )

        # Assert
        assert state is RouterState.FAILED
        assert self.router.error == "Authorization failed: User denied access"
        self.callback_processor.complete.assert_not_awaited()
        self.profile_fetcher.fetch_profile.assert_not_awaited()
        assert self.notifier.errors == ["Login failed: Authorization failed: User denied access"]
        assert self.navigator.navigations == [("/", 3.0)]

    async def test_error_code_used_without_description(self):
        await self.router.handle_callback({"error": "access_denied"})

        assert self.router.error == "Authorization failed: access_denied"

    @pytest.mark.parametrize(
        "params", [{"code": "code-123"}, {"state": "state-abc"}, {"code": "", "state": "s"}]
    )
    async def test_missing_parameters_fail(self, params):
        state = await self.router.handle_callback(params)

        assert state is RouterState.FAILED
        assert self.router.error == "Missing required parameters (code or state)"
        self.callback_processor.complete.assert_not_awaited()

    async def test_csrf_mismatch_fails(self):
        # Arrange
        self.callback_processor.complete.side_effect = StateValidationError(
            "Invalid state parameter - possible CSRF attack"
        )

        # Act
        state = await self.router.handle_callback(CALLBACK_PARAMS)

        # Assert
        assert state is RouterState.FAILED
        assert "CSRF" in self.router.error
        self.profile_fetcher.fetch_profile.assert_not_awaited()
        assert self.notifier.successes == []
        assert self.navigator.navigations == [("/", 3.0)]

    async def test_exchange_network_error_fails(self):
        self.callback_processor.complete.side_effect = NetworkError("timed out")

        assert await self.router.handle_callback(CALLBACK_PARAMS) is RouterState.FAILED

    async def test_single_role_redirects(self):
        # Arrange
        self.profile_fetcher.fetch_profile.return_value = make_profile("kaprodi")

        # Act
        state = await self.router.handle_callback(CALLBACK_PARAMS)

        # Assert
        assert state is RouterState.REDIRECTING
        assert self.router.destination == "/kaprodi"
        assert self.navigator.navigations == [("/kaprodi", 0.0)]
        assert self.notifier.successes == ["Login succeeded"]
        self.callback_processor.complete.assert_awaited_once_with("code-123", "state-abc")

    async def test_dual_role_account_disambiguates(self):
        # Arrange
        self.profile_fetcher.fetch_profile.return_value = make_profile("dosen", "mahasiswa")

        # Act
        state = await self.router.handle_callback(CALLBACK_PARAMS)

        # Assert
        assert state is RouterState.DISAMBIGUATING
        assert self.router.login_modes == [LoginMode.STUDENT, LoginMode.LECTURER]
        assert self.router.profile.primary_role == "dosen"
        assert self.navigator.navigations == []

    async def test_admin_skips_disambiguation(self):
        self.profile_fetcher.fetch_profile.return_value = make_profile("admin", "mahasiswa")

        state = await self.router.handle_callback(CALLBACK_PARAMS)

        assert state is RouterState.REDIRECTING
        assert self.navigator.navigations == [("/admin", 0.0)]

    async def test_choose_mode_redirects(self):
        # Arrange
        self.profile_fetcher.fetch_profile.return_value = make_profile("dosen", "mahasiswa")
        await self.router.handle_callback(CALLBACK_PARAMS)

        # Act
        route = self.router.choose_mode(LoginMode.STUDENT)

        # Assert
        assert route == "/mahasiswa"
        assert self.router.state is RouterState.REDIRECTING
        assert self.navigator.navigations == [("/mahasiswa", 0.0)]

    async def test_choose_mode_without_pending_choice(self):
        self.profile_fetcher.fetch_profile.return_value = make_profile("dosen")
        await self.router.handle_callback(CALLBACK_PARAMS)

        with pytest.raises(RouterStateError):
            self.router.choose_mode(LoginMode.LECTURER)

    async def test_choose_mode_rejects_unoffered_mode(self):
        # Arrange
        self.router.state = RouterState.DISAMBIGUATING
        self.router.login_modes = [LoginMode.STUDENT]

        # Act & Assert
        with pytest.raises(RouterStateError):
            self.router.choose_mode(LoginMode.LECTURER)

    async def test_profile_failure_fails_with_generic_message(self):
        # Arrange
        self.profile_fetcher.fetch_profile.side_effect = SessionExpiredError("Session expired")

        # Act
        state = await self.router.handle_callback(CALLBACK_PARAMS)

        # Assert
        assert state is RouterState.FAILED
        assert self.router.error == "Failed to load user profile"
        assert self.notifier.successes == ["Login succeeded"]
        assert self.notifier.errors == ["Login failed: Failed to load user profile"]

    async def test_router_handles_one_callback(self):
        # Arrange
        self.profile_fetcher.fetch_profile.return_value = make_profile("mahasiswa")
        await self.router.handle_callback(CALLBACK_PARAMS)

        # Act & Assert
        with pytest.raises(RouterStateError):
            await self.router.handle_callback(CALLBACK_PARAMS)

        assert self.callback_processor.complete.await_count == 1

    async def test_failure_delay_is_configurable(self, navigator):
        router = CallbackRouter(
            self.callback_processor,
            self.profile_fetcher,
            navigator,
            home_route="/beranda",
            failure_redirect_delay=1.5,
        )

        await router.handle_callback({"error": "server_error"})

        assert navigator.navigations == [("/beranda", 1.5)]
