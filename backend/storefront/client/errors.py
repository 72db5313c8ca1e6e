"""Errors raised by the storefront session client."""


class SessionError(Exception):
    """Base client session error."""

    pass


class NotAuthenticatedError(SessionError):
    """No token is cached; the caller has been logged out."""

    pass


class SessionExpiredError(SessionError):
    """The server kept rejecting the session; the caller has been logged out."""

    pass


class RefreshFailedError(SessionExpiredError):
    """The server refused to refresh the cached token; the caller has been logged out."""

    pass


class NetworkFailureError(SessionError):
    """The server was unreachable or answered with a 5xx. The session is left intact."""

    pass


class LoginRejectedError(SessionError):
    """The server refused a login attempt."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Login rejected ({status_code}): {detail}")

    @property
    def locked(self) -> bool:
        """True when the account is locked out rather than mistyped."""
        return self.status_code == 403
