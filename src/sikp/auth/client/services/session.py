"""Session termination."""

from __future__ import annotations

import logging

from sikp.auth.client.primitives.navigation import Navigator
from sikp.auth.client.services.storage import SessionStore

logger = logging.getLogger(__name__)


def logout(store: SessionStore, navigator: Navigator, home_route: str = "/") -> None:
    """Clear every session entry and send the user home."""
    store.clear()
    logger.info("Session cleared")
    navigator.navigate(home_route)
