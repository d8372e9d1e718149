"""Password hashing and new-password policy."""

import asyncio

import bcrypt

from delivery_auth.config import settings

MIN_PASSWORD_LENGTH = 8
# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


class PasswordPolicyError(ValueError):
    """A proposed new password was rejected before any OTP was issued."""


def hash_password(password: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash (cost 12 unless configured otherwise)."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


async def hash_password_async(password: str) -> str:
    """:func:`hash_password` off the event loop; bcrypt is CPU-bound."""
    return await asyncio.to_thread(hash_password, password)


def check_password_length(password: str) -> None:
    """Reject passwords bcrypt cannot hash without truncation.

    The upper bound is on the UTF-8 encoding, so a password of multibyte
    characters hits it well before 72 characters.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordPolicyError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        raise PasswordPolicyError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"
        )


def validate_new_password(new_password: str, confirm_password: str) -> None:
    """Check a forgot-password request before a reset code is issued."""
    if new_password != confirm_password:
        raise PasswordPolicyError("Passwords do not match")
    check_password_length(new_password)
