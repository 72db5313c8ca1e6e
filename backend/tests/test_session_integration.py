"""End-to-end tests driving the session client against the application."""

from datetime import timedelta

import pytest

from storefront.client import (
    ADMIN_PROFILE,
    CUSTOMER_PROFILE,
    LoginRejectedError,
    RefreshFailedError,
    SessionMonitor,
    TokenStore,
    login,
)
from tests.conftest import (
    TEST_ADMIN_PASSWORD,
    TEST_ADMIN_USERNAME,
    TEST_CUSTOMER_EMAIL,
    TEST_CUSTOMER_PASSWORD,
)


@pytest.fixture
def store():
    return TokenStore()


@pytest.mark.asyncio
async def test_admin_session_lifecycle(async_client, admin_user, store, clock):
    """Login, proactive refresh near expiry, then an expired session logs out."""
    logouts = []
    user = await login(
        async_client,
        store,
        ADMIN_PROFILE,
        username=TEST_ADMIN_USERNAME,
        password=TEST_ADMIN_PASSWORD,
    )
    assert user["username"] == TEST_ADMIN_USERNAME
    first_token = store.get(ADMIN_PROFILE.token_key)

    monitor = SessionMonitor(async_client, store, ADMIN_PROFILE, on_logout=logouts.append)

    assert await monitor.verify() == 20 * 60

    # Inside the five minute window the client refreshes
    clock.advance(timedelta(minutes=16).total_seconds())
    assert await monitor.verify() == 4 * 60
    assert await monitor.refresh_token() is True
    assert store.get(ADMIN_PROFILE.token_key) != first_token
    assert await monitor.verify() == 20 * 60

    response = await monitor.fetch_with_auth("GET", "/auth/verify")
    assert response.status_code == 200

    # Let the refreshed token run out; the retry cannot refresh it either
    clock.advance(timedelta(minutes=20).total_seconds())
    with pytest.raises(RefreshFailedError):
        await monitor.fetch_with_auth("GET", "/auth/verify")

    assert store.get(ADMIN_PROFILE.token_key) is None
    assert logouts == [ADMIN_PROFILE.login_url]


@pytest.mark.asyncio
async def test_customer_session(async_client, customer, store):
    """A customer session reaches customer endpoints through the monitor."""
    await login(
        async_client,
        store,
        CUSTOMER_PROFILE,
        email=TEST_CUSTOMER_EMAIL,
        password=TEST_CUSTOMER_PASSWORD,
    )
    monitor = SessionMonitor(async_client, store, CUSTOMER_PROFILE)

    response = await monitor.fetch_with_auth("GET", "/auth/me")

    assert response.status_code == 200
    assert response.json()["email"] == TEST_CUSTOMER_EMAIL
    assert store.get(ADMIN_PROFILE.token_key) is None


@pytest.mark.asyncio
async def test_locked_login_reported(async_client, admin_user, store):
    """The client tells a locked account apart from a mistyped password."""
    for _ in range(6):
        with pytest.raises(LoginRejectedError) as exc_info:
            await login(
                async_client, store, ADMIN_PROFILE, username=TEST_ADMIN_USERNAME, password="nope"
            )
        assert exc_info.value.locked is False

    with pytest.raises(LoginRejectedError) as exc_info:
        await login(
            async_client,
            store,
            ADMIN_PROFILE,
            username=TEST_ADMIN_USERNAME,
            password=TEST_ADMIN_PASSWORD,
        )
    assert exc_info.value.locked is True
    assert store.get(ADMIN_PROFILE.token_key) is None
