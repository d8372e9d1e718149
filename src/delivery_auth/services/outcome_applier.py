"""Side effects applied once a submitted code has been accepted."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from delivery_auth.services.outcomes import Purpose
from delivery_auth.services.password import hash_password_async

if TYPE_CHECKING:
    from delivery_auth.database.repository import AccountRepository, OtpAttemptRepository
    from delivery_auth.models.account import Account

logger = logging.getLogger(__name__)


async def apply_outcome(
    accounts: AccountRepository,
    attempts: OtpAttemptRepository,
    account: Account,
    purpose: Purpose,
    new_password: str | None = None,
) -> None:
    """Mark the account verified or store its new password, then purge OTP history."""
    if purpose is Purpose.EMAIL_VERIFICATION:
        await accounts.set_verified(account)
        logger.info("Account %s email verified", account.id)
    elif purpose is Purpose.PASSWORD_RESET:
        if not new_password:
            raise ValueError("new_password is required for PASSWORD_RESET")
        await accounts.set_password_hash(account, await hash_password_async(new_password))
        logger.info("Account %s password reset", account.id)

    purged = await attempts.delete_all(account.id)
    logger.debug("Purged %d OTP attempt(s) for account %s", purged, account.id)
