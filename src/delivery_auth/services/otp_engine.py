"""OTP lifecycle engine — issuance, verification and lockout.

One engine serves both signup email verification and the forgot-password
flow; the ``purpose`` argument decides what a successful verification does.

Issuance
--------
1. Resolve the account (``NOT_FOUND`` if missing).
2. Already-verified accounts get ``ALREADY_VERIFIED`` for email verification;
   administratively locked accounts get ``ACCOUNT_DISABLED`` for password reset.
3. Consult the latest OTP record:

   * locked → ``LOCKED``
   * still valid and out of resends → lock, notify, ``LOCKED``
   * still valid and inside the cooldown → ``THROTTLED``
   * still valid otherwise → new code with ``resend_count + 1``
   * missing or expired → new code with ``resend_count = 0``

4. Persist the new record, then email the code. A mail failure yields
   ``DELIVERY_FAILED`` but the record stays, so a retry hits the cooldown.

Verification
------------
The latest record is checked for lock, then expiry, then the code. A
mismatch increments ``attempts`` and locks the record on reaching the
limit. A match first deletes the record conditionally on the counters
that were read, so a failure or lock recorded concurrently sends the
request back to re-read; it then applies the purpose's outcome and
purges all records.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING

from delivery_auth.database.repository import AccountRepository, OtpAttemptRepository
from delivery_auth.models.account import AccountStatus
from delivery_auth.services.clock import Clock, utc_now
from delivery_auth.services.email_service import EmailService, NotificationError
from delivery_auth.services.lock_coordinator import LockCoordinator, compute_lock_decision
from delivery_auth.services.otp_generator import generate_code
from delivery_auth.services.outcome_applier import apply_outcome
from delivery_auth.services.outcomes import (
    IssueOutcome,
    IssueStatus,
    Purpose,
    VerifyOutcome,
    VerifyStatus,
)
from delivery_auth.services.password import check_password_length
from delivery_auth.services.policy import OtpPolicy

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from delivery_auth.models.account import Account

logger = logging.getLogger(__name__)

# Re-reads allowed when a conditional update loses to a concurrent request
MAX_CONFLICT_RETRIES = 3


class ConcurrentUpdateError(RuntimeError):
    """The OTP record kept changing underneath us; treated as a server error."""


class OtpEngine:
    """Issues and verifies one-time passcodes for a single unit of work.

    Build one per request around that request's session. The engine holds
    no state of its own; everything lives in the persisted OTP records.
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: EmailService,
        *,
        policy: OtpPolicy | None = None,
        clock: Clock = utc_now,
        generator: Callable[[], str] = generate_code,
    ) -> None:
        self._session = session
        self._accounts = AccountRepository(session)
        self._attempts = OtpAttemptRepository(session)
        self._notifier = notifier
        self._policy = policy or OtpPolicy.from_settings()
        self._clock = clock
        self._generate = generator
        self._locks = LockCoordinator(session, self._attempts, notifier)

    # ── Issuance ─────────────────────────────────────────

    async def issue(self, account_id: str, purpose: Purpose) -> IssueOutcome:
        """Decide whether a new code may be sent to *account_id* and send it."""
        account = await self._accounts.find_by_id(account_id, for_update=True)
        if account is None:
            logger.info("OTP issue for unknown account %s", account_id)
            return IssueOutcome(IssueStatus.NOT_FOUND)

        if purpose is Purpose.EMAIL_VERIFICATION and account.is_verified:
            logger.info("Account %s already verified; no code issued", account_id)
            return IssueOutcome(IssueStatus.ALREADY_VERIFIED)

        if purpose is Purpose.PASSWORD_RESET and account.account_status is AccountStatus.LOCKED:
            logger.info("Account %s is disabled; no reset code issued", account_id)
            return IssueOutcome(IssueStatus.ACCOUNT_DISABLED)

        policy = self._policy
        for _ in range(MAX_CONFLICT_RETRIES):
            now = self._clock()
            latest = await self._attempts.find_latest(account_id)
            resend_count = 0

            if latest is not None:
                if latest.is_locked(now):
                    return IssueOutcome(IssueStatus.LOCKED, locked_until=latest.locked_until)

                if not latest.is_expired(now):
                    locked_until = compute_lock_decision(
                        latest.resend_count, policy.max_resend_count, now, policy.lockout
                    )
                    if locked_until is not None:
                        won = await self._locks.lock(
                            latest,
                            account,
                            expected={
                                "resend_count": latest.resend_count,
                                "locked_until": latest.locked_until,
                            },
                            locked_until=locked_until,
                        )
                        if not won:
                            continue
                        return IssueOutcome(IssueStatus.LOCKED, locked_until=locked_until)

                    if now - latest.created_at < policy.resend_cooldown:
                        can_resend_at = latest.created_at + policy.resend_cooldown
                        logger.info("OTP resend throttled for account %s", account_id)
                        return IssueOutcome(IssueStatus.THROTTLED, can_resend_at=can_resend_at)

                    resend_count = latest.resend_count + 1

            return await self._send_new_code(account, purpose, now, resend_count)

        raise ConcurrentUpdateError(f"OTP state for account {account_id} kept changing")

    async def _send_new_code(
        self, account: Account, purpose: Purpose, now: datetime, resend_count: int
    ) -> IssueOutcome:
        policy = self._policy
        code = self._generate()
        await self._attempts.create(
            account_id=account.id,
            code=code,
            created_at=now,
            expires_at=now + policy.expiry,
            resend_count=resend_count,
        )
        await self._session.commit()
        logger.info(
            "Issued %s code for account %s (resend_count=%d)",
            purpose.value,
            account.id,
            resend_count,
        )

        can_resend_at = now + policy.resend_cooldown
        try:
            await self._notifier.send_code(
                account.email,
                code,
                account.display_name,
                purpose=purpose,
                expiry_minutes=policy.expiry_minutes,
                max_attempts=policy.max_attempts,
                lockout_hours=policy.lockout_hours,
            )
        except NotificationError:
            logger.error("OTP delivery failed for account %s", account.id)
            return IssueOutcome(IssueStatus.DELIVERY_FAILED, can_resend_at=can_resend_at)

        return IssueOutcome(IssueStatus.SENT, can_resend_at=can_resend_at)

    # ── Verification ─────────────────────────────────────

    async def verify(
        self,
        account_id: str,
        code: str,
        purpose: Purpose,
        *,
        new_password: str | None = None,
    ) -> VerifyOutcome:
        """Check *code* against the latest record for *account_id*.

        ``new_password`` is required when *purpose* is ``PASSWORD_RESET`` and
        must satisfy :func:`check_password_length`; it is checked before any
        state changes.
        """
        if purpose is Purpose.PASSWORD_RESET:
            if not new_password:
                raise ValueError("new_password is required for PASSWORD_RESET")
            check_password_length(new_password)

        account = await self._accounts.find_by_id(account_id)
        if account is None:
            logger.info("OTP verify for unknown account %s", account_id)
            return VerifyOutcome(VerifyStatus.NOT_FOUND)

        policy = self._policy
        for _ in range(MAX_CONFLICT_RETRIES):
            now = self._clock()
            latest = await self._attempts.find_latest(account_id)
            if latest is None:
                return VerifyOutcome(VerifyStatus.NO_CODE)

            if latest.is_locked(now):
                return VerifyOutcome(VerifyStatus.LOCKED, locked_until=latest.locked_until)

            if latest.is_expired(now):
                logger.info("Expired OTP submitted for account %s", account_id)
                return VerifyOutcome(VerifyStatus.EXPIRED)

            expected = {"attempts": latest.attempts, "locked_until": latest.locked_until}
            if secrets.compare_digest(code.encode(), latest.code.encode()):
                if not await self._attempts.claim(latest, expected):
                    continue
                await apply_outcome(self._accounts, self._attempts, account, purpose, new_password)
                await self._session.commit()
                logger.info("OTP verified for account %s (%s)", account_id, purpose.value)
                return VerifyOutcome(VerifyStatus.VERIFIED)

            attempts = latest.attempts + 1
            locked_until = compute_lock_decision(
                attempts, policy.max_attempts, now, policy.lockout
            )
            if locked_until is not None:
                won = await self._locks.lock(
                    latest,
                    account,
                    expected=expected,
                    locked_until=locked_until,
                    attempts=attempts,
                )
                if not won:
                    continue
                return VerifyOutcome(VerifyStatus.LOCKED, locked_until=locked_until)

            if not await self._attempts.compare_and_set(latest, expected, attempts=attempts):
                continue
            await self._session.commit()

            remaining = policy.max_attempts - attempts
            logger.info(
                "Invalid OTP for account %s (%d attempt(s) remaining)", account_id, remaining
            )
            return VerifyOutcome(VerifyStatus.INVALID, remaining_attempts=remaining)

        raise ConcurrentUpdateError(f"OTP state for account {account_id} kept changing")
