"""SQLAlchemy Account model."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from delivery_auth.models.base import Base, UTCDateTime


def uuid_str() -> str:
    return str(uuid.uuid4())


class Role(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class AccountStatus(str, enum.Enum):
    """Administrative status, independent of OTP-level locking."""

    ACTIVE = "ACTIVE"
    LOCKED = "LOCKED"


class Account(Base):
    """A customer, rider or admin who signs in to the delivery platform.

    ``is_verified`` flips once the signup OTP has been confirmed.
    ``account_status`` is managed by support staff and is unrelated to the
    temporary lockouts recorded on :class:`OtpAttempt`.
    """

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True, index=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=16), default=Role.CUSTOMER, nullable=False
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    account_status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus, native_enum=False, length=16),
        default=AccountStatus.ACTIVE,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    otp_attempts = relationship(
        "OtpAttempt",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return self.first_name

    def __repr__(self) -> str:
        return f"<Account id={self.id} email={self.email!r} verified={self.is_verified}>"
