"""Session-scoped storage for the SSO flow.

``SessionStore`` is the only owner of the PKCE verifier, the anti-forgery
state and the token set. It sits on a ``StorageBackend`` that mirrors the
browser ``sessionStorage`` surface, so the backing store can be an
in-memory map, an encrypted store or a server-side session.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from pydantic import ValidationError

from sikp.auth.client.models.tokens import StoredTokenSet

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    """String key/value storage scoped to one browsing session."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed storage backend."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


class SessionStore:
    """Expiry-aware accessors over a session storage backend.

    Transient login artifacts (verifier and state) are plain strings reached
    through ``put``/``get``/``remove``/``take``. The token set is reached only
    through the token accessors, which treat an expired set as absent.
    """

    CODE_VERIFIER_KEY = "pkce_code_verifier"
    STATE_KEY = "oauth_state"
    TOKENS_KEY = "auth_tokens"
    REFRESH_TOKEN_KEY = "auth_refresh_token"

    TRANSIENT_KEYS = frozenset({CODE_VERIFIER_KEY, STATE_KEY})

    def __init__(
        self,
        backend: StorageBackend | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._backend = backend if backend is not None else InMemoryStorage()
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def put(self, key: str, value: str) -> None:
        self._check_transient_key(key)
        self._backend.set_item(key, value)

    def get(self, key: str) -> str | None:
        self._check_transient_key(key)
        return self._backend.get_item(key)

    def remove(self, key: str) -> None:
        self._check_transient_key(key)
        self._backend.remove_item(key)

    def take(self, key: str) -> str | None:
        """Read and delete a transient value in one step."""
        value = self.get(key)
        self.remove(key)
        return value

    def put_tokens(self, token_set: StoredTokenSet) -> None:
        """Overwrite the stored token set wholesale."""
        self._backend.set_item(self.TOKENS_KEY, token_set.model_dump_json())
        self._backend.remove_item(self.REFRESH_TOKEN_KEY)

    def get_tokens(self) -> StoredTokenSet | None:
        """Return the stored token set, or None when absent or expired.

        An expired set is evicted on read. Its refresh token, which is not
        expiry-checked locally, is kept so the session can still be
        refreshed. A record that fails to parse is removed.
        """
        raw = self._backend.get_item(self.TOKENS_KEY)
        if raw is None:
            return None

        try:
            token_set = StoredTokenSet.model_validate_json(raw)
        except (ValidationError, ValueError):
            logger.debug("Discarding unreadable token record")
            self._backend.remove_item(self.TOKENS_KEY)
            return None

        if token_set.is_expired(self.now()):
            logger.debug("Evicting expired access token")
            self._backend.remove_item(self.TOKENS_KEY)
            if token_set.refresh_token:
                self._backend.set_item(
                    self.REFRESH_TOKEN_KEY, token_set.refresh_token
                )
            return None

        return token_set

    def get_access_token(self) -> str | None:
        token_set = self.get_tokens()
        return token_set.access_token if token_set else None

    def get_refresh_token(self) -> str | None:
        token_set = self.get_tokens()
        if token_set is not None:
            return token_set.refresh_token
        return self._backend.get_item(self.REFRESH_TOKEN_KEY) or None

    def clear(self) -> None:
        """Remove the token set and any transient login artifacts."""
        for key in (
            self.TOKENS_KEY,
            self.REFRESH_TOKEN_KEY,
            self.CODE_VERIFIER_KEY,
            self.STATE_KEY,
        ):
            self._backend.remove_item(key)

    def _check_transient_key(self, key: str) -> None:
        if key not in self.TRANSIENT_KEYS:
            raise ValueError(f"Unsupported session key: {key}")
