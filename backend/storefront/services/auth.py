"""Authentication service: password hashing, login lockout and account management."""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from functools import lru_cache
from typing import Any, Generic

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import settings
from storefront.models import AdminUser, Customer
from storefront.services.credential_store import AccountT, CredentialStore
from storefront.services.tokens import (
    ADMIN_KIND,
    CUSTOMER_KIND,
    SessionToken,
    TokenService,
)

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


class AuthError(Exception):
    """Base authentication error."""

    pass


class InvalidCredentialsError(AuthError):
    """Invalid identity, secret or password."""

    pass


class AccountExistsError(AuthError):
    """An account with this identity already exists."""

    pass


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False


@lru_cache
def _dummy_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


class RejectReason(str, Enum):
    """Why a login attempt was refused."""

    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_LOCKED = "account_locked"


# Messages shown to the caller; neither reveals which check failed nor
# how long a lock has left.
REJECT_MESSAGES = {
    RejectReason.INVALID_CREDENTIALS: "Invalid credentials",
    RejectReason.ACCOUNT_LOCKED: "Account is locked. Please try again later.",
}

REJECT_STATUS = {
    RejectReason.INVALID_CREDENTIALS: 400,
    RejectReason.ACCOUNT_LOCKED: 403,
}


@dataclass(frozen=True)
class LoginOutcome(Generic[AccountT]):
    """Result of one login attempt: a session token, or a rejection reason."""

    account: AccountT | None = None
    session: SessionToken | None = None
    reason: RejectReason | None = None

    @property
    def ok(self) -> bool:
        return self.session is not None

    @property
    def status_code(self) -> int:
        if self.reason is None:
            return 200
        return REJECT_STATUS[self.reason]

    @property
    def message(self) -> str:
        if self.reason is None:
            return "Login successful"
        return REJECT_MESSAGES[self.reason]

    @classmethod
    def rejected(cls, reason: RejectReason) -> "LoginOutcome[Any]":
        return cls(reason=reason)


class LoginAuthenticator(Generic[AccountT]):
    """Validates credentials and runs the per-account lockout state machine.

    An account is Unlocked unless ``locked_until`` lies in the future. Each
    failed secret or password check increments ``failed_attempts``; reaching
    ``max_attempts`` locks the account for ``lockout``. While locked every
    attempt is refused without touching the counter, and the lock lapses on
    its own once ``locked_until`` has passed. A successful login resets both
    fields.

    Checks run in order: account exists, not locked, secondary secret (when
    configured), password. Expected failures are returned as a LoginOutcome,
    never raised.
    """

    def __init__(
        self,
        store: CredentialStore[AccountT],
        tokens: TokenService,
        kind: str,
        *,
        max_attempts: int,
        lockout: timedelta,
        secondary_secret: str | None = None,
    ):
        self.store = store
        self.tokens = tokens
        self.kind = kind
        self.max_attempts = max_attempts
        self.lockout = lockout
        self.secondary_secret = secondary_secret

    def _secret_matches(self, secret: str | None) -> bool:
        if not self.secondary_secret:
            return True
        if secret is None:
            return False
        return secrets.compare_digest(secret.encode(), self.secondary_secret.encode())

    async def authenticate(
        self,
        identity: str,
        password: str,
        secret: str | None = None,
    ) -> LoginOutcome[AccountT]:
        """Run one login attempt for ``identity``."""
        account = await self.store.get_by_identity(identity)

        if account is None:
            # Burn a hash verification so unknown identities take as long as known ones
            verify_password(password, _dummy_hash())
            logger.warning(f"Login failed for unknown {self.kind} identity")
            return LoginOutcome.rejected(RejectReason.INVALID_CREDENTIALS)

        now = self.tokens.now()

        if account.is_locked(now):
            logger.warning(f"Login refused for locked {self.kind}: {identity}")
            return LoginOutcome.rejected(RejectReason.ACCOUNT_LOCKED)

        if not self._secret_matches(secret) or not verify_password(
            password, account.password_hash
        ):
            state = await self.store.record_failure(
                account,
                now=now,
                threshold=self.max_attempts,
                lockout=self.lockout,
            )
            context = {
                "principal": self.kind,
                "identity": identity,
                "failed_attempts": state.failed_attempts,
            }
            if state.failed_attempts >= self.max_attempts:
                logger.warning(
                    f"{self.kind.capitalize()} {identity} locked after "
                    f"{state.failed_attempts} failed attempts",
                    extra=context,
                )
            else:
                logger.warning(
                    f"Failed login for {self.kind} {identity} "
                    f"({state.failed_attempts}/{self.max_attempts})",
                    extra=context,
                )
            return LoginOutcome.rejected(RejectReason.INVALID_CREDENTIALS)

        await self.store.record_success(account, now)
        session = self.tokens.issue(account.id, self.kind)
        logger.info(f"{self.kind.capitalize()} logged in: {identity}")
        return LoginOutcome(account=account, session=session)

    async def unlock(self, identity: str) -> bool:
        """Clear a lockout by hand. Returns False if the account does not exist."""
        account = await self.store.get_by_identity(identity)
        if account is None:
            return False
        await self.store.clear_lockout(account)
        logger.info(f"Lockout cleared for {self.kind}: {identity}")
        return True


class AccountService(Generic[AccountT]):
    """Account lifecycle operations outside of login."""

    def __init__(self, store: CredentialStore[AccountT]):
        self.store = store

    async def create_account(self, identity: str, password: str, **fields: Any) -> AccountT:
        """Create an account, refusing duplicate identities."""
        if await self.store.get_by_identity(identity) is not None:
            raise AccountExistsError("An account with this identity already exists")
        return await self.store.create(identity, hash_password(password), **fields)

    async def change_password(
        self, account: AccountT, current_password: str, new_password: str
    ) -> None:
        """Replace the password after checking the current one.

        Tokens already issued stay valid until they expire.
        """
        if not verify_password(current_password, account.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")

        await self.store.set_password(account, hash_password(new_password))
        logger.info(f"Password changed for: {account.identity}")

    async def ensure_account(self, identity: str, password: str) -> tuple[AccountT, bool]:
        """Create the account, or reset its password if it exists.

        Returns the account and whether it was newly created.
        """
        account = await self.store.get_by_identity(identity)
        if account is None:
            return await self.store.create(identity, hash_password(password)), True
        await self.store.set_password(account, hash_password(password))
        return account, False


def admin_authenticator(
    session: AsyncSession, tokens: TokenService
) -> LoginAuthenticator[AdminUser]:
    """Authenticator for back-office admins (secondary secret applies)."""
    return LoginAuthenticator(
        CredentialStore(session, AdminUser),
        tokens,
        ADMIN_KIND,
        max_attempts=settings.max_login_attempts,
        lockout=timedelta(hours=settings.lockout_hours),
        secondary_secret=settings.admin_login_secret,
    )


def customer_authenticator(
    session: AsyncSession, tokens: TokenService
) -> LoginAuthenticator[Customer]:
    """Authenticator for storefront customers."""
    return LoginAuthenticator(
        CredentialStore(session, Customer),
        tokens,
        CUSTOMER_KIND,
        max_attempts=settings.max_login_attempts,
        lockout=timedelta(hours=settings.lockout_hours),
    )


async def ensure_default_admin(session: AsyncSession) -> AdminUser | None:
    """Create the configured bootstrap admin if it does not exist yet."""
    username = settings.default_admin_username
    password = settings.default_admin_password
    if not username or not password:
        return None

    store = CredentialStore(session, AdminUser)
    existing = await store.get_by_identity(username)
    if existing is not None:
        return existing
    user = await store.create(username, hash_password(password))
    logger.info(f"Default admin created: {username}")
    return user
