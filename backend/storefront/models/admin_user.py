"""Admin user model for back-office authentication."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.account import AccountMixin
from storefront.models.base import BaseModel


class AdminUser(AccountMixin, BaseModel):
    """Back-office administrator, one record per username."""

    __tablename__ = "admin_users"

    identity_field = "username"

    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    def __repr__(self) -> str:
        return f"<AdminUser {self.username}>"
