"""SQLAlchemy OtpAttempt model."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from delivery_auth.models.base import Base, UTCDateTime


class OtpAttempt(Base):
    """One issued passcode for an account.

    An account accumulates a history of these; only the most recently
    created row is ever consulted. ``attempts`` counts failed submissions
    against this code and ``resend_count`` how many times a code was
    re-issued while the previous one was still valid.
    """

    __tablename__ = "otp_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    resend_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    account = relationship("Account", back_populates="otp_attempts")

    __table_args__ = (
        Index("ix_otp_attempts_account_created", "account_id", "created_at"),
    )

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and now < self.locked_until

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def __repr__(self) -> str:
        return (
            f"<OtpAttempt id={self.id} account={self.account_id} "
            f"attempts={self.attempts} resends={self.resend_count}>"
        )
