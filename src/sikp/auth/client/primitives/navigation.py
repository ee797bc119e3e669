"""Navigation seam for the SSO flow.

The login flow ends by sending the user somewhere else: to the authorization
server, to a landing route, or back home after a failure. Components do
that through a ``Navigator`` so the same flow can drive a browser, an HTTP
redirect, or a test double.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)


class Navigator(Protocol):
    """Moves the user to a new location."""

    def navigate(self, url: str, *, delay: float = 0.0) -> None:
        """Navigate to ``url``, after ``delay`` seconds when positive."""
        ...


class SessionNavigator:
    """In-process navigator that tracks the current location.

    Plays the role of the top-level browsing context: ``location`` is the
    last URL navigated to and ``history`` every URL in order. Absolute
    http(s) URLs can optionally be opened in the system web browser.
    """

    def __init__(self, open_browser: bool = False):
        self.open_browser = open_browser
        self.location: str | None = None
        self.history: list[str] = []
        self._pending: asyncio.TimerHandle | None = None

    def navigate(self, url: str, *, delay: float = 0.0) -> None:
        # A new navigation supersedes one still waiting on its delay
        self.cancel_pending()

        if delay > 0:
            loop = asyncio.get_running_loop()
            self._pending = loop.call_later(delay, self._go, url)
            logger.debug(f"Navigation to {url} scheduled in {delay}s")
            return

        self._go(url)

    def cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def _go(self, url: str) -> None:
        self._pending = None
        self.location = url
        self.history.append(url)
        logger.info(f"Navigating to {url.split('?', 1)[0]}")

        if self.open_browser and url.startswith(("http://", "https://")):
            webbrowser.open(url)
