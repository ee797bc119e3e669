"""PKCE (Proof Key for Code Exchange) parameter generation.

Implements RFC 7636 parameter generation so the SSO authorization code is
bound to the browser session that requested it, without a client secret.
"""

from __future__ import annotations

import base64
import hashlib

from sikp.auth.client.models.errors import PKCEError
from sikp.auth.client.models.security import PKCEParameters
from sikp.auth.client.primitives.random import RandomSource, random_string

CODE_VERIFIER_LENGTH = 128


def compute_code_challenge(code_verifier: str) -> str:
    """Generate code challenge from code verifier using S256 method.

    RFC 7636 Section 4.2: For S256, the code challenge is:
    BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))

    Args:
        code_verifier: The code verifier to hash

    Returns:
        Base64url-encoded SHA256 hash of the code verifier, without padding
    """
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()

    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates PKCE parameters for SSO login attempts.

    Stateless apart from its random source: every call returns a fresh
    verifier and the challenge derived from it, and nothing is stored. The
    caller is responsible for persisting the verifier.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url)
    - Draws 128-character verifiers from the unreserved character set
    """

    def __init__(self, random_source: RandomSource | None = None):
        self._random_source = random_source

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for a login attempt.

        Returns:
            PKCEParameters: Immutable parameters for the login attempt

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            code_verifier = random_string(
                CODE_VERIFIER_LENGTH, source=self._random_source
            )
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=compute_code_challenge(code_verifier),
                code_challenge_method="S256",
            )

        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e
