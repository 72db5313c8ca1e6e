# Storefront Models
from storefront.models.account import AccountMixin
from storefront.models.admin_user import AdminUser
from storefront.models.base import BaseModel
from storefront.models.customer import Customer

__all__ = [
    "AccountMixin",
    "AdminUser",
    "BaseModel",
    "Customer",
]
