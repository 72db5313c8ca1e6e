"""Columns shared by every principal that can log in."""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import as_utc


class AccountMixin:
    """Credential and lockout state of a login principal.

    ``failed_attempts`` and ``locked_until`` are only written by the login
    authenticator (through the credential store).
    """

    # Name of the column holding the unique login handle
    identity_field: ClassVar[str] = "username"

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    failed_attempts: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def identity(self) -> str:
        return getattr(self, self.identity_field)

    def is_locked(self, now: datetime) -> bool:
        """True while a lockout is in force; an elapsed lock counts as unlocked."""
        locked_until = as_utc(self.locked_until)
        return locked_until is not None and now < locked_until
