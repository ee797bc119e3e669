"""Token models for the SIKP backend token endpoints.

Contains the token response returned by the exchange and refresh endpoints,
the request bodies sent to them, and the token set kept in session storage.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


class TokenResponse(BaseModel):
    """Token response from ``/api/auth/exchange`` and ``/api/auth/refresh``."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int  # Seconds until expiry
    token_type: str = "Bearer"
    refresh_token: str | None = None
    id_token: str | None = None


class StoredTokenSet(BaseModel):
    """Token set persisted in the session store.

    ``expires_at`` is an absolute Unix timestamp computed once, when the
    token response is received. It is never recomputed afterwards.
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: float

    @classmethod
    def from_response(
        cls,
        response: TokenResponse,
        now: float,
        fallback_refresh_token: str | None = None,
    ) -> StoredTokenSet:
        """Build the stored set for a token response received at ``now``.

        Args:
            response: Token response from the backend
            now: Time the response was received (Unix seconds)
            fallback_refresh_token: Refresh token to keep when the response
                does not rotate it

        Returns:
            StoredTokenSet ready to be written to the session store
        """
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token or fallback_refresh_token,
            expires_at=now + response.expires_in,
        )

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class ExchangeRequest:
    """Authorization code exchange request for ``/api/auth/exchange``.

    The backend holds the client registration, so the public client sends
    only the code, its redirect URI and the PKCE verifier.
    """

    code: str
    redirect_uri: str
    code_verifier: str

    def to_json(self) -> dict[str, str]:
        return {
            "code": self.code,
            "redirectUri": self.redirect_uri,
            "codeVerifier": self.code_verifier,
        }


@dataclass(frozen=True)
class RefreshRequest:
    """Refresh request for ``/api/auth/refresh``."""

    refresh_token: str

    def to_json(self) -> dict[str, str]:
        return {"refreshToken": self.refresh_token}
