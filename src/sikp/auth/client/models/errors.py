"""Exception hierarchy for SSO authentication errors.

Provides specific exception types for each failure mode of the login flow
and the token lifecycle so callers can tell a forged callback apart from an
expired session or a flaky network.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all SSO authentication errors."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class AuthorizationError(OAuth2Error):
    """Raised when the authorization server reports an error on the callback."""

    pass


class AuthorizationCallbackError(OAuth2Error):
    """Raised when the callback carries malformed or unusable parameters."""

    pass


class CallbackParameterError(AuthorizationCallbackError):
    """Raised when the callback is missing the code or state parameter."""

    pass


class StateValidationError(AuthorizationCallbackError):
    """Raised when the returned state does not match the stored one.

    Treated as a potential CSRF attack. Never retried.
    """

    pass


CsrfMismatchError = StateValidationError


class MissingVerifierError(AuthorizationCallbackError):
    """Raised when no PKCE code verifier is stored for the callback.

    Happens for replayed or forged callback URLs, and when a flow started in
    one browsing context is completed in another.
    """

    pass


class NetworkError(OAuth2Error):
    """Raised when a backend call times out or cannot connect."""

    pass


class TokenError(OAuth2Error):
    """Raised when token endpoint operations fail."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TokenExchangeError(TokenError):
    """Raised when the backend rejects the authorization code exchange."""

    pass


class TokenRefreshError(TokenError):
    """Raised when the backend rejects a refresh token."""

    pass


class NoRefreshTokenError(TokenRefreshError):
    """Raised when a refresh is requested but no refresh token is stored."""

    pass


class NotAuthenticatedError(OAuth2Error):
    """Raised when an authenticated call is attempted without a live access token."""

    pass


class SessionExpiredError(OAuth2Error):
    """Raised when the refresh-and-retry path is exhausted."""

    pass


class ProfileError(OAuth2Error):
    """Raised when the profile endpoint fails for reasons other than 401."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RouterStateError(OAuth2Error):
    """Raised on an illegal transition of the callback router."""

    pass
