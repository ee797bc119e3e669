"""Random string generation behind a substitutable source.

The SSO flow draws its PKCE verifiers and state values from a
``RandomSource`` so tests can plug in a reproducible source while
production code uses the operating system CSPRNG.
"""

from __future__ import annotations

import secrets
import string
from typing import Protocol

# RFC 7636 Section 4.1 unreserved characters
UNRESERVED_CHARACTERS = string.ascii_letters + string.digits + "-._~"


class RandomSource(Protocol):
    """Source of uniformly distributed random choices."""

    def choice(self, alphabet: str) -> str:
        """Return one character of ``alphabet``, uniformly at random."""
        ...


class SystemRandomSource:
    """Cryptographically secure source backed by the ``secrets`` module.

    ``secrets.choice`` draws with rejection sampling, so every character of
    the alphabet is equally likely (no modulo bias).
    """

    def choice(self, alphabet: str) -> str:
        return secrets.choice(alphabet)


def random_string(
    length: int,
    source: RandomSource | None = None,
    alphabet: str = UNRESERVED_CHARACTERS,
) -> str:
    """Generate a random string of ``length`` characters from ``alphabet``.

    Args:
        length: Number of characters to draw
        source: Random source, defaults to the system CSPRNG
        alphabet: Characters to draw from

    Returns:
        The generated string
    """
    if length < 0:
        raise ValueError("length must not be negative")
    source = source or SystemRandomSource()
    return "".join(source.choice(alphabet) for _ in range(length))
