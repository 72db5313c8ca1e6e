# Storefront Pydantic Schemas
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

__all__ = [
    "AdminLoginRequest",
    "AdminUserResponse",
    "ChangePasswordRequest",
    "CustomerLoginRequest",
    "CustomerProfileResponse",
    "CustomerResponse",
    "MessageResponse",
    "RegisterRequest",
    "TokenResponse",
    "VerifyResponse",
]
