"""Persistence shim for login principals (admins and customers)."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import DateTime, and_, case, literal, null, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.account import AccountMixin
from storefront.models.base import as_utc

logger = logging.getLogger(__name__)

AccountT = TypeVar("AccountT", bound=AccountMixin)


@dataclass(frozen=True)
class LockoutState:
    """Counter and lock values as persisted by a single UPDATE."""

    failed_attempts: int
    locked_until: datetime | None


class CredentialStore(Generic[AccountT]):
    """Reads and writes account records of one principal class.

    Lockout columns are changed with single UPDATE statements so that
    concurrent failed logins against the same account cannot under-count.
    Every mutating method commits before returning. Reads always reload the
    row, since in-memory instances are not synchronized by those UPDATEs.
    """

    def __init__(self, session: AsyncSession, model: type[AccountT]):
        self.session = session
        self.model = model

    @property
    def _identity_column(self) -> Any:
        return getattr(self.model, self.model.identity_field)

    async def get_by_identity(self, identity: str) -> AccountT | None:
        """Look up an account by username or email."""
        result = await self.session.execute(
            select(self.model)
            .where(self._identity_column == identity)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, account_id: UUID | str) -> AccountT | None:
        """Look up an account by primary key."""
        if isinstance(account_id, str):
            try:
                account_id = UUID(account_id)
            except ValueError:
                return None
        return await self.session.get(self.model, account_id, populate_existing=True)

    async def create(self, identity: str, password_hash: str, **fields: Any) -> AccountT:
        """Insert a new account."""
        account = self.model(
            **{self.model.identity_field: identity},
            password_hash=password_hash,
            **fields,
        )
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        logger.info(f"Created {self.model.__name__}: {identity}")
        return account

    async def record_failure(
        self,
        account: AccountT,
        *,
        now: datetime,
        threshold: int,
        lockout: timedelta,
    ) -> LockoutState:
        """Atomically count a failed attempt and lock once the threshold is reached.

        Increment and compare happen inside one UPDATE, and the SET expressions
        see the pre-update row. A lock that lapsed before ``now`` is cleared in
        the same statement and the count restarts at 1.
        """
        now_value = literal(now, DateTime(timezone=True))
        lapsed = and_(
            self.model.locked_until.is_not(None),
            self.model.locked_until <= now_value,
        )
        attempts = case((lapsed, 1), else_=self.model.failed_attempts + 1)
        stmt = (
            update(self.model)
            .where(self.model.id == account.id)
            .values(
                failed_attempts=attempts,
                locked_until=case(
                    (attempts >= threshold, literal(now + lockout, DateTime(timezone=True))),
                    (lapsed, null()),
                    else_=self.model.locked_until,
                ),
            )
            .returning(self.model.failed_attempts, self.model.locked_until)
            .execution_options(synchronize_session=False)
        )
        row = (await self.session.execute(stmt)).one()
        await self.session.commit()
        return LockoutState(failed_attempts=row[0], locked_until=as_utc(row[1]))

    async def record_success(self, account: AccountT, now: datetime) -> None:
        """Reset the failure counter, clear any lock and stamp the login time."""
        await self.session.execute(
            update(self.model)
            .where(self.model.id == account.id)
            .values(failed_attempts=0, locked_until=None, last_login_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def clear_lockout(self, account: AccountT) -> None:
        """Reset the failure counter and clear any lock."""
        await self.session.execute(
            update(self.model)
            .where(self.model.id == account.id)
            .values(failed_attempts=0, locked_until=None)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def set_password(self, account: AccountT, password_hash: str) -> None:
        """Replace the stored credential hash."""
        account.password_hash = password_hash
        await self.session.commit()
