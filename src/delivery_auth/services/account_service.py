"""Account service — signup and lookups used by the auth endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from delivery_auth.database.repository import AccountRepository, OtpAttemptRepository
from delivery_auth.models.account import Account, Role
from delivery_auth.services.password import hash_password_async

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class EmailAlreadyRegisteredError(Exception):
    """Signup attempted with the email of a verified account."""


class AccountService:
    """Creates accounts and resolves them for the OTP flows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._accounts = AccountRepository(session)
        self._attempts = OtpAttemptRepository(session)

    async def signup(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        password: str,
        role: Role = Role.CUSTOMER,
    ) -> Account:
        """Create an unverified account.

        An existing *unverified* account with the same email is discarded
        together with its OTP history, so an abandoned signup can be
        restarted. A verified one raises :class:`EmailAlreadyRegisteredError`.
        """
        email = email.strip().lower()
        existing = await self._accounts.find_by_email(email)
        if existing is not None:
            if existing.is_verified:
                raise EmailAlreadyRegisteredError(email)
            logger.info("Replacing unverified account %s for %s", existing.id, email)
            await self._attempts.delete_all(existing.id)
            await self._accounts.delete(existing)

        account = Account(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            password_hash=await hash_password_async(password),
            role=role,
        )
        await self._accounts.add(account)
        await self._session.commit()
        logger.info("Created account %s (%s)", account.id, role.value)
        return account

    async def find_by_email(self, email: str) -> Account | None:
        return await self._accounts.find_by_email(email)
