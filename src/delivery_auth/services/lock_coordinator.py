"""Account lock coordinator — lockout thresholds and lock notifications."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from delivery_auth.services.email_service import EmailService, NotificationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from delivery_auth.database.repository import OtpAttemptRepository
    from delivery_auth.models.account import Account
    from delivery_auth.models.otp_attempt import OtpAttempt

logger = logging.getLogger(__name__)


def compute_lock_decision(
    count: int, threshold: int, now: datetime, lockout: timedelta
) -> datetime | None:
    """Return the unlock time if *count* has reached *threshold*, else ``None``."""
    if count >= threshold:
        return now + lockout
    return None


class LockCoordinator:
    """Moves an OTP record into the locked state and notifies the owner.

    The transition is a conditional update against the values the caller
    read, so when several requests cross the threshold together exactly
    one of them wins and only that one sends the "account locked" email.
    """

    def __init__(
        self,
        session: AsyncSession,
        attempts: OtpAttemptRepository,
        notifier: EmailService,
    ) -> None:
        self._session = session
        self._attempts = attempts
        self._notifier = notifier

    async def lock(
        self,
        attempt: OtpAttempt,
        account: Account,
        *,
        expected: dict[str, Any],
        locked_until: datetime,
        **changes: Any,
    ) -> bool:
        """Lock *attempt* until *locked_until*.

        Returns ``False`` if the record changed since it was read; the
        caller should re-read and re-evaluate.
        """
        won = await self._attempts.compare_and_set(
            attempt, expected, locked_until=locked_until, **changes
        )
        if not won:
            logger.info("Lost lock transition race for account %s", account.id)
            return False

        await self._session.commit()
        logger.warning("OTP locked for account %s until %s", account.id, locked_until)
        await self._notify(account, locked_until)
        return True

    async def _notify(self, account: Account, locked_until: datetime) -> None:
        try:
            await self._notifier.send_account_locked(
                account.email, account.display_name, locked_until
            )
        except NotificationError:
            # The lock itself is already committed; the email is best effort.
            logger.warning("Could not send lock notification for account %s", account.id)
