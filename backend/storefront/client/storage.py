"""Session-scoped token storage and per-principal session profiles."""

from dataclasses import dataclass

ADMIN_TOKEN_KEY = "adminToken"
CUSTOMER_TOKEN_KEY = "userToken"


@dataclass(frozen=True)
class SessionProfile:
    """Where a principal class keeps its token and which endpoints it uses."""

    token_key: str
    login_url: str
    login_path: str
    refresh_path: str = "/auth/refresh"
    verify_path: str = "/auth/verify"


ADMIN_PROFILE = SessionProfile(
    token_key=ADMIN_TOKEN_KEY,
    login_url="/admin/login.html",
    login_path="/auth/login",
)

CUSTOMER_PROFILE = SessionProfile(
    token_key=CUSTOMER_TOKEN_KEY,
    login_url="/login.html",
    login_path="/auth/user-login",
)


class TokenStore:
    """In-memory key/value store living as long as one browsing session.

    Admin and customer tokens use distinct keys so neither overwrites the other.
    """

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)
