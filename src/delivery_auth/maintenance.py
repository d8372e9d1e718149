"""Maintenance sweep — storage hygiene for OTP history.

Expiry and lock expiry are evaluated lazily at read time, so nothing here
is needed for correctness. The sweep only removes rows that can never be
consulted again and clears lock timestamps that have already elapsed.

Run it periodically (e.g. from cron)::

    delivery-auth-sweep
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from sqlalchemy import and_, delete, exists, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from delivery_auth.config import settings
from delivery_auth.database.engine import async_session_factory, init_db
from delivery_auth.models.otp_attempt import OtpAttempt
from delivery_auth.services.clock import utc_now

logger = logging.getLogger(__name__)


async def purge_stale_attempts(session: AsyncSession, now: datetime) -> int:
    """Delete expired, unlocked attempts that have been superseded.

    The latest attempt of each account is always kept so verification
    still reports ``EXPIRED`` rather than ``NO_CODE``.
    """
    newer = aliased(OtpAttempt)
    superseded = exists().where(
        newer.account_id == OtpAttempt.account_id,
        or_(
            newer.created_at > OtpAttempt.created_at,
            and_(newer.created_at == OtpAttempt.created_at, newer.id > OtpAttempt.id),
        ),
    )
    stmt = (
        delete(OtpAttempt)
        .where(
            OtpAttempt.expires_at <= now,
            or_(OtpAttempt.locked_until.is_(None), OtpAttempt.locked_until <= now),
            superseded,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount


async def clear_elapsed_locks(session: AsyncSession, now: datetime) -> int:
    """Null out ``locked_until`` where the lock has already run out.

    Attempt counters are left alone; a record whose lock has elapsed
    already behaves as unlocked.
    """
    stmt = (
        update(OtpAttempt)
        .where(OtpAttempt.locked_until.is_not(None), OtpAttempt.locked_until <= now)
        .values(locked_until=None)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount


async def sweep() -> tuple[int, int]:
    """Run both hygiene passes in one transaction."""
    await init_db()
    now = utc_now()
    async with async_session_factory() as session:
        purged = await purge_stale_attempts(session, now)
        cleared = await clear_elapsed_locks(session, now)
        await session.commit()
    logger.info("Sweep purged %d stale attempt(s), cleared %d elapsed lock(s)", purged, cleared)
    return purged, cleared


def main() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    asyncio.run(sweep())


if __name__ == "__main__":
    main()
