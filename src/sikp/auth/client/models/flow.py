"""Authorization flow models for the SSO login.

Contains models for the authorization request and the callback parameters.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode, urlparse


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the SSO authorize endpoint."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    scope: str
    state: str
    code_challenge: str
    code_challenge_method: str = "S256"

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    """Query parameters the callback route receives.

    The callback route reads ``code``, ``state``, ``error`` and
    ``error_description`` and nothing else.
    """

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> AuthorizationResponse:
        # Empty values count as missing
        def get_param(key: str) -> str | None:
            return params.get(key) or None

        return cls(
            code=get_param("code"),
            state=get_param("state"),
            error=get_param("error"),
            error_description=get_param("error_description"),
        )

    @classmethod
    def from_url(cls, callback_url: str) -> AuthorizationResponse:
        query_params = parse_qs(urlparse(callback_url).query)
        return cls.from_params(
            {key: values[0] for key, values in query_params.items() if values}
        )

    def is_success(self) -> bool:
        return self.error is None and self.code is not None

    def is_error(self) -> bool:
        return self.error is not None

    @property
    def error_message(self) -> str | None:
        return self.error_description or self.error
