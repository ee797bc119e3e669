"""HTTP surface for the SSO login flow.

A small Starlette app that serves the login redirect and the callback
route. Each browser gets its own session storage through a cookie, the
server-side counterpart of the browser's tab-scoped ``sessionStorage``.

Run with ``python -m sikp.auth.web``; configuration comes from ``SIKP_``
environment variables, optionally loaded from a ``.env`` file.
"""

from __future__ import annotations

import html
import logging
import secrets
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import httpx
import uvicorn
from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from sikp.auth.client.models.errors import (
    NetworkError,
    NotAuthenticatedError,
    ProfileError,
    RouterStateError,
    SessionExpiredError,
)
from sikp.auth.client.oauth_client import SSOClient
from sikp.auth.client.primitives.roles import LoginMode
from sikp.auth.client.services.refresh import TokenRefresher
from sikp.auth.client.services.router import CallbackRouter, RouterState
from sikp.auth.client.services.storage import InMemoryStorage, SessionStore
from sikp.auth.client.services.tokens import OAuth2TokenManager
from sikp.auth.config import SSOSettings, get_settings

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sikp_session"
CALLBACK_PARAMS = ("code", "state", "error", "error_description")


@dataclass
class BrowserSession:
    """Server-side state for one browser.

    ``refresher`` is shared by every request of the browser, so concurrent
    requests that hit an expired access token refresh it only once.
    """

    storage: InMemoryStorage = field(default_factory=InMemoryStorage)
    router: CallbackRouter | None = None
    refresher: TokenRefresher | None = None
    last_seen: float = 0.0


class BrowserSessionManager:
    """Maps session cookies to browser sessions.

    Sessions idle for longer than ``idle_timeout`` seconds are dropped, on
    lookup and whenever a new session is created.
    """

    def __init__(
        self,
        idle_timeout: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[str, BrowserSession] = {}

    def create_session(self) -> tuple[str, BrowserSession]:
        self.evict_idle()

        session_id = secrets.token_urlsafe(32)
        session = BrowserSession(last_seen=self._clock())
        self._sessions[session_id] = session
        logger.debug("Created browser session")
        return session_id, session

    def get_session(self, session_id: str | None) -> BrowserSession | None:
        if session_id is None:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None

        now = self._clock()
        if now - session.last_seen > self.idle_timeout:
            del self._sessions[session_id]
            logger.debug("Dropped idle browser session")
            return None

        session.last_seen = now
        return session

    def terminate_session(self, session_id: str | None) -> bool:
        if session_id is None:
            return False
        return self._sessions.pop(session_id, None) is not None

    def evict_idle(self) -> int:
        """Drop every idle session and return how many were dropped."""
        cutoff = self._clock() - self.idle_timeout
        idle = [sid for sid, s in self._sessions.items() if s.last_seen < cutoff]
        for session_id in idle:
            del self._sessions[session_id]
        if idle:
            logger.debug(f"Evicted {len(idle)} idle browser sessions")
        return len(idle)

    def __len__(self) -> int:
        return len(self._sessions)


class RedirectNavigator:
    """Navigator that turns the last navigation into an HTTP response."""

    def __init__(self) -> None:
        self.location: str | None = None
        self.delay: float = 0.0

    def navigate(self, url: str, *, delay: float = 0.0) -> None:
        self.location = url
        self.delay = delay

    def redirect(self, default: str = "/") -> RedirectResponse:
        return RedirectResponse(self.location or default, status_code=302)


class SSOWebApp:
    """Starlette application serving the SSO login and callback routes."""

    def __init__(
        self,
        settings: SSOSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.sessions = BrowserSessionManager(self.settings.session_idle_timeout)
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=self.settings.request_timeout
        )
        self._token_manager = OAuth2TokenManager(
            self.settings.backend_base_url,
            timeout=self.settings.request_timeout,
            http_client=self._http_client,
        )

        self.app = Starlette(
            routes=[
                Route("/login", self._handle_login, methods=["GET"]),
                Route("/callback", self._handle_callback, methods=["GET"]),
                Route("/choose-mode", self._handle_choose_mode, methods=["GET"]),
                Route("/me", self._handle_me, methods=["GET"]),
                Route("/logout", self._handle_logout, methods=["GET"]),
            ],
            lifespan=self._lifespan,
        )

    @asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        yield
        if self._owns_client:
            await self._http_client.aclose()

    def _client_for(self, session: BrowserSession, navigator: RedirectNavigator) -> SSOClient:
        store = SessionStore(session.storage)
        if session.refresher is None:
            # A failed refresh only clears storage; each route renders its own outcome
            session.refresher = TokenRefresher(store, self._token_manager, store.clear)

        return SSOClient(
            self.settings,
            store=store,
            navigator=navigator,
            http_client=self._http_client,
            refresher=session.refresher,
        )

    def _get_or_create_session(self, request: Request) -> tuple[str, BrowserSession, bool]:
        session_id = request.cookies.get(SESSION_COOKIE)
        session = self.sessions.get_session(session_id)
        if session_id is not None and session is not None:
            return session_id, session, False
        session_id, session = self.sessions.create_session()
        return session_id, session, True

    async def _handle_login(self, request: Request) -> Response:
        """Start a login attempt and redirect to the authorization server."""
        session_id, session, created = self._get_or_create_session(request)
        navigator = RedirectNavigator()

        self._client_for(session, navigator).start_login()
        session.router = None

        response = navigator.redirect()
        if created:
            _set_session_cookie(response, session_id)
        return response

    async def _handle_callback(self, request: Request) -> Response:
        """Handle the authorization server's redirect back to the portal."""
        session = self.sessions.get_session(request.cookies.get(SESSION_COOKIE))
        if session is None:
            # No login started from this browser, so there is no verifier to find
            session = BrowserSession()

        navigator = RedirectNavigator()

        params = {
            key: request.query_params[key]
            for key in CALLBACK_PARAMS
            if key in request.query_params
        }
        router = await self._client_for(session, navigator).handle_callback(params)

        if router.state is RouterState.DISAMBIGUATING:
            session.router = router
            response: Response = HTMLResponse(_render_mode_choice(router.login_modes))
        elif router.state is RouterState.FAILED:
            response = HTMLResponse(
                _render_failure(router.error or "Login failed", self.settings.home_route),
                status_code=400,
                headers={
                    "Refresh": f"{navigator.delay:g}; url={self.settings.home_route}"
                },
            )
        else:
            response = navigator.redirect(self.settings.home_route)

        return response

    async def _handle_choose_mode(self, request: Request) -> Response:
        """Resolve a pending login mode choice."""
        session = self.sessions.get_session(request.cookies.get(SESSION_COOKIE))
        if session is None or session.router is None:
            return Response("No login mode choice pending", status_code=400)

        try:
            mode = LoginMode(request.query_params.get("mode", ""))
            route = session.router.choose_mode(mode)
        except (ValueError, RouterStateError) as e:
            return Response(f"Invalid login mode: {e}", status_code=400)

        session.router = None
        return RedirectResponse(route, status_code=302)

    async def _handle_me(self, request: Request) -> Response:
        """Return the signed-in user's profile as JSON."""
        session = self.sessions.get_session(request.cookies.get(SESSION_COOKIE))
        if session is None:
            return JSONResponse({"error": "Not authenticated"}, status_code=401)

        client = self._client_for(session, RedirectNavigator())
        try:
            profile = await client.fetch_profile()
        except (NotAuthenticatedError, SessionExpiredError) as e:
            return JSONResponse({"error": str(e)}, status_code=401)
        except NetworkError as e:
            return JSONResponse({"error": str(e)}, status_code=504)
        except ProfileError as e:
            return JSONResponse({"error": str(e)}, status_code=502)

        return JSONResponse(
            {
                "sub": profile.subject_id,
                "id": profile.id,
                "email": profile.email,
                "name": profile.display_name,
                "roles": sorted(profile.roles),
                "primaryRole": profile.primary_role,
            }
        )

    async def _handle_logout(self, request: Request) -> Response:
        """End the browser's session and go home."""
        session_id = request.cookies.get(SESSION_COOKIE)
        session = self.sessions.get_session(session_id)
        navigator = RedirectNavigator()

        if session is not None:
            self._client_for(session, navigator).logout()
            self.sessions.terminate_session(session_id)

        response = navigator.redirect(self.settings.home_route)
        response.delete_cookie(SESSION_COOKIE)
        return response

    def run(self, host: str = "127.0.0.1", port: int = 5173) -> None:
        uvicorn.run(self.app, host=host, port=port, log_level="info")


def create_app(
    settings: SSOSettings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Starlette:
    return SSOWebApp(settings, http_client).app


def _set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")


def _render_mode_choice(modes: list[LoginMode]) -> str:
    links = "\n".join(
        f'  <p><a href="/choose-mode?mode={mode.value}">Continue as {mode.value}</a></p>'
        for mode in modes
    )
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Choose login mode</title></head>
<body>
  <h1>Choose login mode</h1>
{links}
</body>
</html>"""


def _render_failure(message: str, home_route: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Login failed</title></head>
<body>
  <h1>Login failed</h1>
  <p>{html.escape(message)}</p>
  <p><a href="{html.escape(home_route)}">Home</a></p>
</body>
</html>"""


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    SSOWebApp().run()


if __name__ == "__main__":
    main()
