"""Value objects returned by the OTP engine.

Every expected result of issuing or verifying a code is reported through
these, never raised; only infrastructure failures propagate as exceptions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime


class Purpose(str, enum.Enum):
    """Why a code was issued; selects what happens on successful verification."""

    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


class IssueStatus(str, enum.Enum):
    SENT = "SENT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    LOCKED = "LOCKED"
    THROTTLED = "THROTTLED"
    DELIVERY_FAILED = "DELIVERY_FAILED"


class VerifyStatus(str, enum.Enum):
    VERIFIED = "VERIFIED"
    NOT_FOUND = "NOT_FOUND"
    NO_CODE = "NO_CODE"
    LOCKED = "LOCKED"
    EXPIRED = "EXPIRED"
    INVALID = "INVALID"


@dataclass(frozen=True)
class IssueOutcome:
    """Result of a request to issue a code.

    ``can_resend_at`` is set for ``SENT``, ``THROTTLED`` and
    ``DELIVERY_FAILED``; ``locked_until`` only for ``LOCKED``.
    """

    status: IssueStatus
    can_resend_at: datetime | None = None
    locked_until: datetime | None = None

    @property
    def success(self) -> bool:
        return self.status is IssueStatus.SENT


@dataclass(frozen=True)
class VerifyOutcome:
    """Result of submitting a code."""

    status: VerifyStatus
    remaining_attempts: int | None = None
    locked_until: datetime | None = None

    @property
    def success(self) -> bool:
        return self.status is VerifyStatus.VERIFIED
