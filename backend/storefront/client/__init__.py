"""Session client for storefront admin and customer front ends."""

from storefront.client.errors import (
    LoginRejectedError,
    NetworkFailureError,
    NotAuthenticatedError,
    RefreshFailedError,
    SessionError,
    SessionExpiredError,
)
from storefront.client.session_monitor import (
    ACTIVITY_EVENTS,
    IDLE_TIMEOUT_SECONDS,
    REFRESH_THRESHOLD_SECONDS,
    SessionMonitor,
    login,
)
from storefront.client.storage import (
    ADMIN_PROFILE,
    CUSTOMER_PROFILE,
    SessionProfile,
    TokenStore,
)

__all__ = [
    "ACTIVITY_EVENTS",
    "ADMIN_PROFILE",
    "CUSTOMER_PROFILE",
    "IDLE_TIMEOUT_SECONDS",
    "LoginRejectedError",
    "NetworkFailureError",
    "NotAuthenticatedError",
    "REFRESH_THRESHOLD_SECONDS",
    "RefreshFailedError",
    "SessionError",
    "SessionExpiredError",
    "SessionMonitor",
    "SessionProfile",
    "TokenStore",
    "login",
]
