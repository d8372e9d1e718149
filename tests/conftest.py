"""Shared fixtures: in-memory database, mocked notifier and a controllable clock."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import bcrypt
import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from delivery_auth.models.account import Account, AccountStatus
from delivery_auth.models.base import Base
from delivery_auth.models.otp_attempt import OtpAttempt
from delivery_auth.services.email_service import EmailService

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Mutable stand-in for ``utc_now``."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def at(self, **delta) -> FakeClock:
        """Move to ``T0 + timedelta(**delta)``."""
        self.now = T0 + timedelta(**delta)
        return self


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ── In-memory test database ─────────────────────────────
@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory DB per test."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    """Mocked email service — never actually sends emails."""
    svc = EmailService()
    svc.send_code = AsyncMock()
    svc.send_account_locked = AsyncMock()
    return svc


async def make_account(
    session: AsyncSession,
    *,
    email: str = "alice@example.com",
    first_name: str = "Alice",
    is_verified: bool = False,
    account_status: AccountStatus = AccountStatus.ACTIVE,
) -> Account:
    account = Account(
        first_name=first_name,
        last_name="Johnson",
        email=email,
        phone="+15551234567",
        password_hash="not-a-real-hash",
        is_verified=is_verified,
        account_status=account_status,
    )
    session.add(account)
    await session.commit()
    return account


@pytest_asyncio.fixture
async def account(db_session) -> Account:
    """An unverified customer account."""
    return await make_account(db_session)


def password_matches(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode(), password_hash.encode())


async def count_attempts(session: AsyncSession, account_id: str) -> int:
    stmt = select(func.count()).select_from(OtpAttempt).where(OtpAttempt.account_id == account_id)
    return (await session.execute(stmt)).scalar_one()
