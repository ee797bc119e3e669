"""Security utilities for the SSO flow.

Provides the anti-forgery state parameter: generation for each login attempt
and validation on the callback.
"""

from __future__ import annotations

import secrets

from sikp.auth.client.models.errors import StateValidationError
from sikp.auth.client.primitives.random import RandomSource, random_string

STATE_LENGTH = 32


def generate_state(random_source: RandomSource | None = None) -> str:
    """Generate cryptographically secure state parameter.

    The state parameter provides CSRF protection by ensuring the callback
    matches the original authorization request.

    Args:
        random_source: Random source, defaults to the system CSPRNG

    Returns:
        Random state string (32 characters, unreserved alphabet)
    """
    return random_string(STATE_LENGTH, source=random_source)


def validate_state(expected: str | None, actual: str) -> None:
    """Validate state parameter matches expected value.

    Args:
        expected: State stored when the login attempt started
        actual: State parameter from callback URL

    Raises:
        StateValidationError: If no state was stored or the values differ
    """
    if expected is None:
        raise StateValidationError(
            "Invalid state parameter - no login attempt in progress"
        )
    if not secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8")):
        raise StateValidationError("Invalid state parameter - possible CSRF attack")
