"""OTP policy — thresholds and durations for issuance and verification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from delivery_auth.config import Settings, settings


@dataclass(frozen=True)
class OtpPolicy:
    """Numeric policy applied by the OTP engine."""

    expiry_minutes: int = 10
    max_attempts: int = 3
    max_resend_count: int = 2
    resend_cooldown_seconds: int = 30
    lockout_hours: int = 24

    @property
    def expiry(self) -> timedelta:
        return timedelta(minutes=self.expiry_minutes)

    @property
    def resend_cooldown(self) -> timedelta:
        return timedelta(seconds=self.resend_cooldown_seconds)

    @property
    def lockout(self) -> timedelta:
        return timedelta(hours=self.lockout_hours)

    @classmethod
    def from_settings(cls, config: Settings = settings) -> OtpPolicy:
        return cls(
            expiry_minutes=config.otp_expiry_minutes,
            max_attempts=config.otp_max_attempts,
            max_resend_count=config.otp_max_resend_count,
            resend_cooldown_seconds=config.otp_resend_cooldown_seconds,
            lockout_hours=config.otp_lockout_hours,
        )
