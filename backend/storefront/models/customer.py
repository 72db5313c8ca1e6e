"""Customer model for storefront accounts."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.account import AccountMixin
from storefront.models.base import BaseModel


class Customer(AccountMixin, BaseModel):
    """Registered shopper, one record per email address.

    Address fields are used to prefill checkout.
    """

    __tablename__ = "customers"

    identity_field = "email"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    apartment: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer {self.email}>"
