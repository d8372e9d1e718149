"""FastAPI dependencies wiring sessions, notifier and OTP engine per request."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_auth.database.engine import get_session
from delivery_auth.services.account_service import AccountService
from delivery_auth.services.clock import Clock, utc_now
from delivery_auth.services.email_service import EmailService
from delivery_auth.services.otp_engine import OtpEngine
from delivery_auth.services.policy import OtpPolicy


def get_email_service() -> EmailService:
    return EmailService()


def get_clock() -> Clock:
    return utc_now


def get_otp_policy() -> OtpPolicy:
    return OtpPolicy.from_settings()


def get_account_service(session: AsyncSession = Depends(get_session)) -> AccountService:
    return AccountService(session)


def get_otp_engine(
    session: AsyncSession = Depends(get_session),
    notifier: EmailService = Depends(get_email_service),
    policy: OtpPolicy = Depends(get_otp_policy),
    clock: Clock = Depends(get_clock),
) -> OtpEngine:
    return OtpEngine(session, notifier, policy=policy, clock=clock)
