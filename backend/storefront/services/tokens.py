"""Session token service: issue, verify and refresh signed JWTs."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any
from uuid import uuid4

import jwt
from jwt.exceptions import PyJWTError

from storefront.core import settings

logger = logging.getLogger(__name__)

ADMIN_KIND = "admin"
CUSTOMER_KIND = "customer"
TOKEN_KINDS = (ADMIN_KIND, CUSTOMER_KIND)


class TokenError(Exception):
    """Session token error."""

    pass


class TokenExpiredError(TokenError):
    """Session token has expired."""

    pass


class InvalidTokenError(TokenError):
    """Session token is malformed or its signature does not verify."""

    pass


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""

    subject_id: str
    kind: str
    issued_at: datetime
    expires_at: datetime

    def expires_in(self, now: datetime) -> int:
        """Whole seconds remaining before expiry (never negative)."""
        return max(0, int((self.expires_at - now).total_seconds()))


@dataclass(frozen=True)
class SessionToken:
    """A freshly issued token and the claims it carries."""

    token: str
    claims: TokenClaims

    @property
    def expires_at(self) -> datetime:
        return self.claims.expires_at


def peek_expiry(token: str) -> datetime:
    """Read the expiry claim of a token WITHOUT checking its signature.

    Security-irrelevant by construction: anyone can forge the value returned
    here. Use it only to schedule timers or display a hint, never to decide
    whether a request is authorized. The authoritative expiry comes from
    TokenService.verify().

    Raises InvalidTokenError if the token cannot be decoded or has no expiry.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
        return datetime.fromtimestamp(payload["exp"], tz=UTC)
    except (PyJWTError, KeyError, TypeError, ValueError, OverflowError) as e:
        raise InvalidTokenError(f"Unreadable token: {e}") from e


class TokenService:
    """Creates and verifies signed session tokens.

    Tokens are stateless: nothing is stored server-side and there is no
    revocation list, so a token stays valid until its own expiry. Validity
    means the signature verifies against the current secret AND now < exp.
    """

    def __init__(
        self,
        secret_key: str,
        ttl: timedelta,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        self._secret_key = secret_key
        self.ttl = ttl
        self.algorithm = algorithm
        self._clock = clock

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=UTC)

    def issue(self, subject_id: Any, kind: str) -> SessionToken:
        """Issue a token for a subject. Always succeeds.

        Time claims keep sub-second precision, so a token issued later always
        expires later, even within the same wall-clock second.
        """
        if kind not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind: {kind}")
        issued_at = self.now()
        expires_at = issued_at + self.ttl
        payload = {
            "sub": str(subject_id),
            "kind": kind,
            "iat": issued_at.timestamp(),
            "exp": expires_at.timestamp(),
            "jti": uuid4().hex,
        }
        token = str(jwt.encode(payload, self._secret_key, algorithm=self.algorithm))
        claims = TokenClaims(
            subject_id=str(subject_id),
            kind=kind,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        return SessionToken(token=token, claims=claims)

    def verify(self, token: str) -> TokenClaims:
        """Verify signature and expiry, returning the token's claims."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                # Time claims are checked against the service clock below
                options={
                    "require": ["sub", "exp", "iat"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except PyJWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        kind = payload.get("kind")
        if kind not in TOKEN_KINDS:
            raise InvalidTokenError("Token has no recognised kind")

        claims = TokenClaims(
            subject_id=str(payload["sub"]),
            kind=kind,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
        )
        if self.now() >= claims.expires_at:
            raise TokenExpiredError("Token has expired")
        return claims

    def refresh(self, token: str) -> SessionToken:
        """Verify a token and issue a new one for the same subject.

        The old token is left untouched and remains valid until it expires.
        """
        claims = self.verify(token)
        refreshed = self.issue(claims.subject_id, claims.kind)
        logger.debug(f"Refreshed {claims.kind} token for subject {claims.subject_id}")
        return refreshed


@lru_cache
def get_token_service() -> TokenService:
    """Token service configured from application settings."""
    return TokenService(
        secret_key=settings.effective_jwt_secret_key,
        ttl=timedelta(minutes=settings.session_token_ttl_minutes),
        algorithm=settings.jwt_algorithm,
    )
