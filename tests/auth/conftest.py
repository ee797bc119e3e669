import random
from typing import Any
from unittest.mock import MagicMock

import pytest

from sikp.auth.client.services.storage import InMemoryStorage, SessionStore
from sikp.auth.config import SSOSettings


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SeededRandomSource:
    """Reproducible random source for PKCE and state generation."""

    def __init__(self, seed: int = 42):
        self._random = random.Random(seed)

    def choice(self, alphabet: str) -> str:
        return self._random.choice(alphabet)


class RecordingNavigator:
    """Navigator that records navigations instead of performing them."""

    def __init__(self):
        self.navigations: list[tuple[str, float]] = []

    def navigate(self, url: str, *, delay: float = 0.0) -> None:
        self.navigations.append((url, delay))

    @property
    def location(self) -> str | None:
        return self.navigations[-1][0] if self.navigations else None


class RecordingNotifier:
    def __init__(self):
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


def make_response(status_code: int, body: Any = None) -> MagicMock:
    """Build a mock httpx response with a JSON body."""
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("No JSON body")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def store(storage: InMemoryStorage, clock: FakeClock) -> SessionStore:
    return SessionStore(storage, clock=clock)


@pytest.fixture
def random_source() -> SeededRandomSource:
    return SeededRandomSource()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def settings() -> SSOSettings:
    return SSOSettings(
        sso_base_url="https://sso.example.ac.id/",
        client_id="sikp-client",
        redirect_uri="https://sikp.example.ac.id/callback",
        scopes="openid profile email",
        backend_base_url="https://api.sikp.example.ac.id/",
    )
