"""Unit tests for the session token service."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from storefront.services.tokens import (
    ADMIN_KIND,
    CUSTOMER_KIND,
    InvalidTokenError,
    TokenExpiredError,
    TokenService,
    peek_expiry,
)
from tests.conftest import FakeClock

SECRET = "unit-test-secret-key-with-enough-length"


@pytest.fixture
def fake_clock():
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture
def service(fake_clock):
    return TokenService(SECRET, timedelta(minutes=20), clock=fake_clock)


class TestIssue:
    """Tests for TokenService.issue."""

    def test_claims(self, service):
        """Issued tokens carry subject, kind, a token id, and iat and exp one TTL apart."""
        issued = service.issue("user-1", ADMIN_KIND)

        payload = jwt.decode(
            issued.token, SECRET, algorithms=["HS256"], options={"verify_exp": False}
        )
        jti = payload.pop("jti")
        assert isinstance(jti, str) and jti
        assert payload == {
            "sub": "user-1",
            "kind": ADMIN_KIND,
            "iat": 1_700_000_000,
            "exp": 1_700_000_000 + 1200,
        }
        assert issued.expires_at == datetime.fromtimestamp(1_700_001_200, tz=UTC)

    def test_same_instant_issues_differ(self, service):
        """Two tokens issued at the same instant are still distinct."""
        first = service.issue("user-1", ADMIN_KIND)
        second = service.issue("user-1", ADMIN_KIND)
        assert first.token != second.token

    def test_unknown_kind(self, service):
        """Only admin and customer tokens exist."""
        with pytest.raises(ValueError):
            service.issue("user-1", "robot")


class TestVerify:
    """Tests for TokenService.verify."""

    def test_round_trip(self, service):
        claims = service.verify(service.issue("user-1", CUSTOMER_KIND).token)
        assert claims.subject_id == "user-1"
        assert claims.kind == CUSTOMER_KIND

    def test_valid_until_expiry(self, service, fake_clock):
        """A token is valid one second before exp and invalid at exp."""
        token = service.issue("user-1", ADMIN_KIND).token

        fake_clock.advance(1199)
        assert service.verify(token).expires_in(service.now()) == 1

        fake_clock.advance(1)
        with pytest.raises(TokenExpiredError):
            service.verify(token)

    def test_wrong_secret(self, service, fake_clock):
        other = TokenService(
            "another-secret-key-of-enough-length", timedelta(minutes=20), clock=fake_clock
        )
        with pytest.raises(InvalidTokenError):
            service.verify(other.issue("user-1", ADMIN_KIND).token)

    def test_tampered_token(self, service):
        token = service.issue("user-1", ADMIN_KIND).token
        header, payload, signature = token.split(".")
        with pytest.raises(InvalidTokenError):
            service.verify(f"{header}.{payload}x.{signature}")

    def test_garbage(self, service):
        with pytest.raises(InvalidTokenError):
            service.verify("definitely-not-a-jwt")

    def test_missing_kind(self, service):
        """Tokens without a recognised kind claim are rejected."""
        token = jwt.encode({"sub": "user-1", "iat": 1_700_000_000, "exp": 1_700_001_200}, SECRET)
        with pytest.raises(InvalidTokenError):
            service.verify(token)

    def test_missing_exp(self, service):
        token = jwt.encode({"sub": "user-1", "kind": ADMIN_KIND, "iat": 1_700_000_000}, SECRET)
        with pytest.raises(InvalidTokenError):
            service.verify(token)


class TestRefresh:
    """Tests for TokenService.refresh."""

    def test_new_expiry_from_now(self, service, fake_clock):
        """The refreshed token is valid for a full TTL from the refresh time."""
        original = service.issue("user-1", ADMIN_KIND)
        fake_clock.advance(600)

        refreshed = service.refresh(original.token)

        assert refreshed.token != original.token
        assert refreshed.claims.subject_id == "user-1"
        assert refreshed.claims.kind == ADMIN_KIND
        assert refreshed.expires_at == original.expires_at + timedelta(seconds=600)
        # The old token is not revoked
        assert service.verify(original.token).subject_id == "user-1"

    def test_expired_token_cannot_refresh(self, service, fake_clock):
        token = service.issue("user-1", ADMIN_KIND).token
        fake_clock.advance(1200)
        with pytest.raises(TokenExpiredError):
            service.refresh(token)

    def test_sub_second_refresh_extends_expiry(self):
        """Refreshing half a second after issue yields a new, later-expiring token."""
        clock = FakeClock(start=1_700_000_000.4)
        service = TokenService(SECRET, timedelta(minutes=20), clock=clock)
        original = service.issue("user-1", ADMIN_KIND)

        clock.advance(0.5)
        refreshed = service.refresh(original.token)

        assert refreshed.token != original.token
        assert refreshed.expires_at > original.expires_at
        assert service.verify(refreshed.token).expires_at > service.verify(original.token).expires_at
        assert peek_expiry(refreshed.token) > peek_expiry(original.token)


class TestPeekExpiry:
    """Tests for peek_expiry."""

    def test_reads_without_secret(self, service):
        issued = service.issue("user-1", ADMIN_KIND)
        assert peek_expiry(issued.token) == issued.expires_at

    def test_ignores_signature(self):
        """Forged tokens are readable too, which is why the value is only a hint."""
        forged = jwt.encode({"exp": 4_000_000_000}, "attacker-key-that-is-long-enough-for-hs256")
        assert peek_expiry(forged) == datetime.fromtimestamp(4_000_000_000, tz=UTC)

    def test_unreadable(self):
        with pytest.raises(InvalidTokenError):
            peek_expiry("not-a-token")

    def test_missing_exp(self):
        with pytest.raises(InvalidTokenError):
            peek_expiry(jwt.encode({"sub": "user-1"}, SECRET))
