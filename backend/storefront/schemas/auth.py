"""Pydantic schemas for authentication API.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    """Base schema that reads and writes camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AdminLoginRequest(CamelModel):
    """Request for admin login."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    secret: str | None = Field(
        default=None,
        description="Shared secondary secret, required when the deployment configures one",
    )


class CustomerLoginRequest(CamelModel):
    """Request for customer login."""

    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1)


class RegisterRequest(CamelModel):
    """Request for customer registration."""

    email: str = Field(..., max_length=320, pattern=EMAIL_PATTERN)
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (minimum 8 characters)",
    )
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    address: str | None = Field(default=None, max_length=255)
    apartment: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=100)
    zip_code: str | None = Field(default=None, max_length=20)
    phone: str | None = Field(default=None, max_length=40)


class ChangePasswordRequest(CamelModel):
    """Request for password change."""

    old_password: str = Field(..., min_length=1)
    new_password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="New password (minimum 8 characters)",
    )


class AdminUserResponse(CamelModel):
    """Admin identity returned with a token."""

    id: UUID
    username: str


class CustomerResponse(CamelModel):
    """Customer identity returned with a token."""

    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None


class CustomerProfileResponse(CustomerResponse):
    """Full customer profile."""

    address: str | None = None
    apartment: str | None = None
    city: str | None = None
    zip_code: str | None = None
    phone: str | None = None
    created_at: datetime


class TokenResponse(CamelModel):
    """Response with a session token."""

    token: str
    user: AdminUserResponse | CustomerResponse


class VerifyResponse(CamelModel):
    """Authoritative remaining lifetime of the presented token."""

    valid: bool = True
    expires_in: int = Field(description="Seconds until the token expires")
    expires_at: datetime


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
