"""Admin account maintenance commands.

Usage:
    storefront-admin unlock <username>
    storefront-admin reset <username> --password <new password>

Both commands use DATABASE_URL from the environment (or .env).
"""

import argparse
import asyncio
import sys

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import async_session_maker, init_db, settings, setup_logging
from storefront.models import AdminUser
from storefront.services.auth import AccountService, admin_authenticator
from storefront.services.credential_store import CredentialStore
from storefront.services.tokens import get_token_service


async def unlock_admin(db: AsyncSession, username: str) -> bool:
    """Reset the failure counter and lift any lock on an admin account."""
    return await admin_authenticator(db, get_token_service()).unlock(username)


async def reset_admin(db: AsyncSession, username: str, password: str) -> bool:
    """Create the admin or replace its password. Returns True if created."""
    _, created = await AccountService(CredentialStore(db, AdminUser)).ensure_account(
        username, password
    )
    return created


async def _run(args: argparse.Namespace) -> int:
    await init_db()
    async with async_session_maker() as db:
        if args.command == "unlock":
            if not await unlock_admin(db, args.username):
                print(f"User {args.username!r} not found.")
                return 1
            print(f"User {args.username!r} unlocked. Login attempts reset to 0.")
            return 0

        created = await reset_admin(db, args.username, args.password)
        if created:
            print(f"Admin {args.username!r} created.")
        else:
            print(f"Password reset for admin {args.username!r}.")
        return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Storefront admin account maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)

    unlock = subparsers.add_parser("unlock", help="Clear a login lockout")
    unlock.add_argument("username", nargs="?", default="admin")

    reset = subparsers.add_parser("reset", help="Create an admin or reset its password")
    reset.add_argument("username", nargs="?", default="admin")
    reset.add_argument("--password", required=True, help="New password")

    args = parser.parse_args(argv)
    setup_logging(level=settings.log_level, format_type=settings.log_format)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
