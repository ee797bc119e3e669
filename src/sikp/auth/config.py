"""SSO client configuration.

Values are read from ``SIKP_``-prefixed environment variables once per
process and cached.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SSOSettings(BaseSettings):
    """Environment-level configuration consumed by the SSO client."""

    model_config = SettingsConfigDict(env_prefix="SIKP_", extra="ignore")

    # Authorization server
    sso_base_url: str = "http://localhost:8787"
    client_id: str = "sikp-client"
    redirect_uri: str = "http://localhost:5173/callback"
    scopes: str = "openid profile email"

    # SIKP backend (token exchange, refresh, profile)
    backend_base_url: str = "http://localhost:8789"
    request_timeout: float = Field(default=30.0, gt=0)

    # Routing
    home_route: str = "/"
    failure_redirect_delay: float = Field(default=3.0, ge=0)

    # Web surface
    session_idle_timeout: float = Field(default=1800.0, gt=0)

    @field_validator("sso_base_url", "backend_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.sso_base_url}/oauth/authorize"


@lru_cache
def get_settings() -> SSOSettings:
    """Return the process-wide settings, loading them on first use."""
    return SSOSettings()
