# Storefront Services
from storefront.services.auth import (
    AccountService,
    LoginAuthenticator,
    LoginOutcome,
    admin_authenticator,
    customer_authenticator,
)
from storefront.services.credential_store import CredentialStore
from storefront.services.tokens import TokenService, get_token_service

__all__ = [
    "AccountService",
    "CredentialStore",
    "LoginAuthenticator",
    "LoginOutcome",
    "TokenService",
    "admin_authenticator",
    "customer_authenticator",
    "get_token_service",
]
