"""Client-side session monitor: idle logout, proactive refresh and authorized requests.

All timers run on the asyncio event loop. Callbacks interleave but never run
in parallel, so the cached token needs no locking.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx

from storefront.client.errors import (
    LoginRejectedError,
    NetworkFailureError,
    NotAuthenticatedError,
    RefreshFailedError,
    SessionExpiredError,
)
from storefront.client.storage import ADMIN_PROFILE, SessionProfile, TokenStore
from storefront.services.tokens import InvalidTokenError, peek_expiry

logger = logging.getLogger(__name__)

# Pointer press, pointer move, key press, scroll, touch start
ACTIVITY_EVENTS = frozenset({"click", "mousemove", "keydown", "scroll", "touchstart"})

IDLE_TIMEOUT_SECONDS = 20 * 60
# Refresh when less than this much lifetime remains
REFRESH_THRESHOLD_SECONDS = 5 * 60
# Delay before re-checking the token after the server could not be reached
NETWORK_RETRY_SECONDS = 60.0

UNAUTHORIZED_STATUSES = (401, 403)


def _raise_for_server_error(response: httpx.Response) -> None:
    """Treat a 5xx from the auth endpoints like an unreachable server."""
    if response.status_code >= 500:
        raise NetworkFailureError(f"Server error {response.status_code} from {response.url.path}")


async def login(
    http: httpx.AsyncClient,
    store: TokenStore,
    profile: SessionProfile = ADMIN_PROFILE,
    **credentials: Any,
) -> dict[str, Any]:
    """Log in and cache the returned token. Returns the user payload."""
    try:
        response = await http.post(profile.login_path, json=credentials)
    except httpx.TransportError as e:
        raise NetworkFailureError(str(e)) from e

    if response.status_code != 200:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        raise LoginRejectedError(response.status_code, str(detail))

    data = response.json()
    store.set(profile.token_key, data["token"])
    return data["user"]


class SessionMonitor:
    """Owns one principal's cached token and the two timer lines around it.

    Idle line: every activity signal cancels the pending idle callback and
    schedules a new one, so exactly one is pending. If it fires, the user is
    logged out.

    Refresh line: a single task asks the server how long the token has left,
    sleeps until ``refresh_threshold`` before expiry, then refreshes and starts
    over. It stops when the token is gone, a refresh is refused, or ``stop()``
    is called.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        store: TokenStore,
        profile: SessionProfile = ADMIN_PROFILE,
        *,
        idle_timeout: float = IDLE_TIMEOUT_SECONDS,
        refresh_threshold: float = REFRESH_THRESHOLD_SECONDS,
        network_retry: float = NETWORK_RETRY_SECONDS,
        on_logout: Callable[[str], None] | None = None,
        on_idle: Callable[[], None] | None = None,
    ):
        self.http = http
        self.store = store
        self.profile = profile
        self.idle_timeout = idle_timeout
        self.refresh_threshold = refresh_threshold
        self.network_retry = network_retry
        self._on_logout = on_logout
        self._on_idle = on_idle

        self._running = False
        self._idle_handle: asyncio.TimerHandle | None = None
        self._refresh_task: asyncio.Task | None = None
        # Loop time of the next scheduled refresh, None when nothing is scheduled
        self.next_refresh_at: float | None = None

    # --- State ---

    @property
    def token(self) -> str | None:
        return self.store.get(self.profile.token_key)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def expires_at_hint(self) -> datetime | None:
        """Unverified expiry read from the cached token, for display only.

        Never use this to decide whether the session is valid; ask the server.
        """
        token = self.token
        if not token:
            return None
        try:
            return peek_expiry(token)
        except InvalidTokenError:
            return None

    # --- Lifecycle ---

    async def start(self) -> bool:
        """Start monitoring. Logs out immediately if no token is cached."""
        if self._running:
            return True
        if not self.token:
            logger.warning("No cached token; redirecting to login")
            self.logout()
            return False

        self._running = True
        self.reset_idle()
        self._refresh_task = asyncio.create_task(self._refresh_loop())
        return True

    def stop(self) -> None:
        """Cancel both timer lines without touching the cached token."""
        self._running = False
        self._cancel_idle()
        self._cancel_refresh()

    def logout(self) -> None:
        """Discard the cached token, stop the timers and go to the login page."""
        self.store.remove(self.profile.token_key)
        self.stop()
        logger.info(f"Logged out; navigating to {self.profile.login_url}")
        if self._on_logout is not None:
            self._on_logout(self.profile.login_url)

    # --- Idle line ---

    def reset_idle(self) -> None:
        """Cancel the pending idle callback and schedule a fresh one."""
        self._cancel_idle()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self.idle_timeout, self._idle_expired)

    def record_activity(self, event: str) -> None:
        """Feed a user-activity signal; unrelated events are ignored."""
        if self._running and event in ACTIVITY_EVENTS:
            self.reset_idle()

    def _idle_expired(self) -> None:
        self._idle_handle = None
        logger.info(f"No activity for {self.idle_timeout:.0f}s; logging out")
        if self._on_idle is not None:
            self._on_idle()
        self.logout()

    def _cancel_idle(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    # --- Refresh line ---

    def _cancel_refresh(self) -> None:
        self.next_refresh_at = None
        task = self._refresh_task
        self._refresh_task = None
        # logout() may be reached from inside the refresh task itself; that
        # task returns on its own.
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def verify(self) -> int | None:
        """Ask the server how many seconds the cached token has left.

        Returns None when there is no token or the server rejects it. Server
        errors (5xx) raise NetworkFailureError so the session survives them.
        """
        token = self.token
        if not token:
            return None
        try:
            response = await self.http.get(
                self.profile.verify_path,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TransportError as e:
            raise NetworkFailureError(str(e)) from e

        _raise_for_server_error(response)
        if response.status_code != 200:
            logger.warning(f"Token verification rejected with status {response.status_code}")
            return None
        return int(response.json()["expiresIn"])

    async def refresh_token(self) -> bool:
        """Exchange the cached token for a new one. Returns False if refused.

        Server errors (5xx) raise NetworkFailureError instead.
        """
        token = self.token
        if not token:
            return False
        try:
            response = await self.http.post(
                self.profile.refresh_path,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TransportError as e:
            raise NetworkFailureError(str(e)) from e

        _raise_for_server_error(response)
        if response.status_code != 200:
            logger.warning(f"Token refresh rejected with status {response.status_code}")
            return False

        self.store.set(self.profile.token_key, response.json()["token"])
        logger.debug("Token refreshed")
        return True

    async def _refresh_loop(self) -> None:
        loop = asyncio.get_running_loop()
        immediate_refreshes = 0

        while self._running and self.token:
            try:
                expires_in = await self.verify()
                if expires_in is None:
                    logger.warning("Cached token is no longer valid; logging out")
                    self.logout()
                    return

                refresh_in = max(0.0, expires_in - self.refresh_threshold)
                if refresh_in > 0:
                    immediate_refreshes = 0
                    self.next_refresh_at = loop.time() + refresh_in
                    await asyncio.sleep(refresh_in)
                    self.next_refresh_at = None
                    if not self._running or not self.token:
                        logger.info("Session ended before scheduled refresh")
                        return
                else:
                    immediate_refreshes += 1
                    if immediate_refreshes > 1:
                        # A fresh token already inside the window; refreshing
                        # again would spin, so let this one run out instead.
                        logger.warning(
                            "Refreshed token expires within the refresh threshold; "
                            f"waiting {expires_in}s for it to expire"
                        )
                        self.next_refresh_at = loop.time() + expires_in
                        await asyncio.sleep(expires_in)
                        self.next_refresh_at = None
                        immediate_refreshes = 0
                        continue

                if not await self.refresh_token():
                    logger.warning("Scheduled refresh failed; logging out")
                    self.logout()
                    return
            except NetworkFailureError as e:
                logger.warning(
                    f"Session check failed ({e}); retrying in {self.network_retry:.0f}s"
                )
                await asyncio.sleep(self.network_retry)

    # --- Authorized requests ---

    async def fetch_with_auth(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with the bearer token, refreshing once on 401/403.

        At most one refresh and one resend per call. If the refresh is refused,
        or the resend is rejected again, the user is logged out and
        SessionExpiredError is raised. Transport errors and a 5xx from the
        refresh endpoint raise NetworkFailureError and leave the session alone.
        """
        token = self.token
        if not token:
            self.logout()
            raise NotAuthenticatedError("No token")

        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {token}"
        response = await self._send(method, url, headers, **kwargs)
        if response.status_code not in UNAUTHORIZED_STATUSES:
            return response

        if not await self.refresh_token():
            self.logout()
            raise RefreshFailedError("Session expired")

        headers["Authorization"] = f"Bearer {self.token}"
        response = await self._send(method, url, headers, **kwargs)
        if response.status_code in UNAUTHORIZED_STATUSES:
            logger.warning(f"{method} {url} still unauthorized after refresh; logging out")
            self.logout()
            raise SessionExpiredError("Session expired")
        return response

    async def _send(
        self, method: str, url: str, headers: dict[str, str], **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self.http.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise NetworkFailureError(str(e)) from e
