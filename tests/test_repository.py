"""Tests for the account and OTP attempt repositories."""

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import T0, count_attempts, make_account
from delivery_auth.database.repository import AccountRepository, OtpAttemptRepository


async def _create(repo: OtpAttemptRepository, account_id: str, code: str, offset_s: int):
    created = T0 + timedelta(seconds=offset_s)
    return await repo.create(
        account_id=account_id,
        code=code,
        created_at=created,
        expires_at=created + timedelta(minutes=10),
        resend_count=0,
    )


@pytest.mark.asyncio
async def test_find_by_email_is_case_insensitive(db_session: AsyncSession, account):
    repo = AccountRepository(db_session)
    found = await repo.find_by_email("  Alice@Example.COM ")
    assert found is not None
    assert found.id == account.id


@pytest.mark.asyncio
async def test_find_by_email_no_match(db_session: AsyncSession, account):
    repo = AccountRepository(db_session)
    assert await repo.find_by_email("nobody@example.com") is None


@pytest.mark.asyncio
async def test_find_by_id_no_match(db_session: AsyncSession):
    repo = AccountRepository(db_session)
    assert await repo.find_by_id("missing", for_update=True) is None


@pytest.mark.asyncio
async def test_find_latest_prefers_newest(db_session: AsyncSession, account):
    repo = OtpAttemptRepository(db_session)
    await _create(repo, account.id, "1111", 0)
    await _create(repo, account.id, "2222", 40)
    await db_session.commit()

    latest = await repo.find_latest(account.id)
    assert latest.code == "2222"
    assert latest.created_at == T0 + timedelta(seconds=40)


@pytest.mark.asyncio
async def test_find_latest_is_scoped_to_account(db_session: AsyncSession, account):
    other = await make_account(db_session, email="bob@example.com", first_name="Bob")
    repo = OtpAttemptRepository(db_session)
    await _create(repo, other.id, "9999", 0)
    await db_session.commit()

    assert await repo.find_latest(account.id) is None


@pytest.mark.asyncio
async def test_compare_and_set_applies_when_unchanged(db_session: AsyncSession, account):
    repo = OtpAttemptRepository(db_session)
    attempt = await _create(repo, account.id, "1111", 0)

    assert await repo.compare_and_set(attempt, {"attempts": 0}, attempts=1)
    await db_session.commit()

    assert attempt.attempts == 1
    assert (await repo.find_latest(account.id)).attempts == 1


@pytest.mark.asyncio
async def test_compare_and_set_rejects_stale_expectation(db_session: AsyncSession, account):
    repo = OtpAttemptRepository(db_session)
    attempt = await _create(repo, account.id, "1111", 0)
    assert await repo.compare_and_set(attempt, {"attempts": 0}, attempts=1)

    # Second writer computed its update from the old value
    assert not await repo.compare_and_set(attempt, {"attempts": 0}, attempts=1)
    assert not await repo.compare_and_set(
        attempt, {"locked_until": T0}, locked_until=T0 + timedelta(hours=24)
    )
    await db_session.commit()

    latest = await repo.find_latest(account.id)
    assert latest.attempts == 1
    assert latest.locked_until is None


@pytest.mark.asyncio
async def test_claim_deletes_only_unchanged_row(db_session: AsyncSession, account):
    repo = OtpAttemptRepository(db_session)
    attempt = await _create(repo, account.id, "1111", 0)
    assert await repo.compare_and_set(attempt, {"attempts": 0}, attempts=1)
    await db_session.commit()

    assert not await repo.claim(attempt, {"attempts": 0, "locked_until": None})
    assert await count_attempts(db_session, account.id) == 1

    assert await repo.claim(attempt, {"attempts": 1, "locked_until": None})
    await db_session.commit()
    assert await count_attempts(db_session, account.id) == 0


@pytest.mark.asyncio
async def test_delete_all(db_session: AsyncSession, account):
    repo = OtpAttemptRepository(db_session)
    await _create(repo, account.id, "1111", 0)
    await _create(repo, account.id, "2222", 40)
    await db_session.commit()

    assert await repo.delete_all(account.id) == 2
    await db_session.commit()
    assert await count_attempts(db_session, account.id) == 0
