"""Repositories — data access layer for accounts and OTP attempts."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from delivery_auth.models.account import Account
from delivery_auth.models.otp_attempt import OtpAttempt


def _unchanged(attempt: OtpAttempt, expected: dict[str, Any]) -> list:
    # ``None`` compares with IS NULL
    conditions = [OtpAttempt.id == attempt.id]
    for name, value in expected.items():
        column = getattr(OtpAttempt, name)
        conditions.append(column.is_(None) if value is None else column == value)
    return conditions


class AccountRepository:
    """Encapsulates all database queries related to accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(self, account_id: str, *, for_update: bool = False) -> Account | None:
        """Look up an account by its id.

        With ``for_update`` the row is locked until the transaction ends,
        which serialises concurrent OTP issuance for the same account on
        backends that support ``SELECT ... FOR UPDATE``.
        """
        stmt = select(Account).where(Account.id == account_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Account | None:
        """Look up an account by email (case-insensitive, stored lower-cased)."""
        stmt = select(Account).where(Account.email == email.strip().lower())
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, account: Account) -> Account:
        self._session.add(account)
        await self._session.flush()
        return account

    async def delete(self, account: Account) -> None:
        await self._session.delete(account)
        await self._session.flush()

    async def set_verified(self, account: Account) -> None:
        account.is_verified = True
        await self._session.flush()

    async def set_password_hash(self, account: Account, password_hash: str) -> None:
        account.password_hash = password_hash
        await self._session.flush()


class OtpAttemptRepository:
    """Persistence for issued passcodes.

    Updates to counters and lock state go through :meth:`compare_and_set`
    so that two requests racing on the same record cannot both apply a
    transition computed from the same stale read.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        account_id: str,
        code: str,
        created_at: datetime,
        expires_at: datetime,
        resend_count: int,
    ) -> OtpAttempt:
        attempt = OtpAttempt(
            account_id=account_id,
            code=code,
            created_at=created_at,
            expires_at=expires_at,
            attempts=0,
            resend_count=resend_count,
            locked_until=None,
        )
        self._session.add(attempt)
        await self._session.flush()
        return attempt

    async def find_latest(self, account_id: str) -> OtpAttempt | None:
        """Return the most recently created attempt for *account_id*."""
        stmt = (
            select(OtpAttempt)
            .where(OtpAttempt.account_id == account_id)
            .order_by(OtpAttempt.created_at.desc(), OtpAttempt.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def compare_and_set(
        self, attempt: OtpAttempt, expected: dict[str, Any], **values: Any
    ) -> bool:
        """Apply *values* to *attempt* only if its row still matches *expected*.

        *expected* maps column names to the values read earlier; ``None``
        compares with ``IS NULL``. Returns ``False`` when another writer got
        there first, in which case nothing is changed.
        """
        stmt = (
            update(OtpAttempt)
            .where(*_unchanged(attempt, expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            return False
        for name, value in values.items():
            set_committed_value(attempt, name, value)
        return True

    async def claim(self, attempt: OtpAttempt, expected: dict[str, Any]) -> bool:
        """Delete *attempt* only if its row still matches *expected*.

        Used when a submitted code is accepted: a concurrent request that
        has since counted a failure or locked the record makes this
        return ``False`` and leaves the row in place.
        """
        stmt = (
            delete(OtpAttempt)
            .where(*_unchanged(attempt, expected))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def delete_all(self, account_id: str) -> int:
        """Remove every attempt recorded for *account_id*."""
        result = await self._session.execute(
            delete(OtpAttempt)
            .where(OtpAttempt.account_id == account_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
