"""Authentication API endpoints for admins and customers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import get_db
from storefront.models import AdminUser, Customer
from storefront.schemas.auth import (
    AdminLoginRequest,
    AdminUserResponse,
    ChangePasswordRequest,
    CustomerLoginRequest,
    CustomerProfileResponse,
    CustomerResponse,
    MessageResponse,
    RegisterRequest,
    TokenResponse,
    VerifyResponse,
)
from storefront.services.auth import (
    AccountExistsError,
    AccountService,
    InvalidCredentialsError,
    LoginOutcome,
    admin_authenticator,
    customer_authenticator,
)
from storefront.services.credential_store import CredentialStore
from storefront.services.tokens import (
    ADMIN_KIND,
    CUSTOMER_KIND,
    InvalidTokenError,
    SessionToken,
    TokenClaims,
    TokenExpiredError,
    TokenService,
    get_token_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=_UNAUTHORIZED_HEADERS,
    )


def get_bearer_token(request: Request) -> str:
    """Dependency extracting the bearer token from the Authorization header."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
        raise _unauthorized("Missing or invalid authorization header")
    return auth_header[7:].strip()


def get_token_claims(
    token: str = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """Dependency verifying the bearer token."""
    try:
        return tokens.verify(token)
    except TokenExpiredError as e:
        raise _unauthorized("Token has expired") from e
    except InvalidTokenError as e:
        raise _unauthorized("Invalid token") from e


async def get_current_admin(
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
) -> AdminUser:
    """Dependency to get the authenticated admin."""
    if claims.kind != ADMIN_KIND:
        raise _unauthorized("Admin token required")
    admin = await CredentialStore(db, AdminUser).get_by_id(claims.subject_id)
    if admin is None:
        raise _unauthorized("User not found")
    return admin


async def get_current_customer(
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
) -> Customer:
    """Dependency to get the authenticated customer."""
    if claims.kind != CUSTOMER_KIND:
        raise _unauthorized("Customer token required")
    customer = await CredentialStore(db, Customer).get_by_id(claims.subject_id)
    if customer is None:
        raise _unauthorized("User not found")
    return customer


def _token_response(session: SessionToken, account: AdminUser | Customer) -> TokenResponse:
    if isinstance(account, AdminUser):
        user: AdminUserResponse | CustomerResponse = AdminUserResponse.model_validate(account)
    else:
        user = CustomerResponse.model_validate(account)
    return TokenResponse(token=session.token, user=user)


def _login_response(outcome: LoginOutcome) -> TokenResponse:
    if not outcome.ok:
        raise HTTPException(status_code=outcome.status_code, detail=outcome.message)
    return _token_response(outcome.session, outcome.account)


# --- Admin ---


@router.post("/login", response_model=TokenResponse)
async def login(
    request: AdminLoginRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Authenticate an admin and issue a session token.

    Returns 400 for any credential mismatch and 403 while the account is
    locked after repeated failures.
    """
    outcome = await admin_authenticator(db, tokens).authenticate(
        request.username, request.password, request.secret
    )
    return _login_response(outcome)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_admin: AdminUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Change the current admin's password."""
    try:
        await AccountService(CredentialStore(db, AdminUser)).change_password(
            current_admin, request.old_password, request.new_password
        )
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect old password",
        ) from e
    return MessageResponse(message="Password updated successfully")


# --- Session (either principal) ---


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Exchange a valid token for a new one with a fresh expiry.

    The presented token is not revoked; it stays valid until it expires.
    """
    try:
        refreshed = tokens.refresh(token)
    except TokenExpiredError as e:
        raise _unauthorized("Token has expired") from e
    except InvalidTokenError as e:
        raise _unauthorized("Invalid token") from e

    model = AdminUser if refreshed.claims.kind == ADMIN_KIND else Customer
    account = await CredentialStore(db, model).get_by_id(refreshed.claims.subject_id)
    if account is None:
        raise _unauthorized("User not found")

    logger.info(f"Token refreshed for {refreshed.claims.kind}: {account.identity}")
    return _token_response(refreshed, account)


@router.get("/verify", response_model=VerifyResponse)
async def verify_token(
    claims: TokenClaims = Depends(get_token_claims),
    tokens: TokenService = Depends(get_token_service),
) -> VerifyResponse:
    """Report how long the presented token remains valid.

    This is the authoritative expiry used by clients to schedule refreshes.
    """
    return VerifyResponse(
        valid=True,
        expires_in=claims.expires_in(tokens.now()),
        expires_at=claims.expires_at,
    )


# --- Customer ---


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Register a new customer account."""
    profile = request.model_dump(exclude={"email", "password"})
    try:
        await AccountService(CredentialStore(db, Customer)).create_account(
            request.email, request.password, **profile
        )
    except AccountExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email address is already registered",
        ) from e
    return MessageResponse(message="Registration complete")


@router.post("/user-login", response_model=TokenResponse)
async def user_login(
    request: CustomerLoginRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Authenticate a customer and issue a session token."""
    outcome = await customer_authenticator(db, tokens).authenticate(
        request.email, request.password
    )
    return _login_response(outcome)


@router.get("/me", response_model=CustomerProfileResponse)
async def get_me(
    current_customer: Customer = Depends(get_current_customer),
) -> CustomerProfileResponse:
    """Get the current customer's profile."""
    return CustomerProfileResponse.model_validate(current_customer)


@router.post("/user-change-password", response_model=MessageResponse)
async def user_change_password(
    request: ChangePasswordRequest,
    current_customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Change the current customer's password."""
    try:
        await AccountService(CredentialStore(db, Customer)).change_password(
            current_customer, request.old_password, request.new_password
        )
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        ) from e
    return MessageResponse(message="Password changed")
