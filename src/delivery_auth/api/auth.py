"""Auth router — signup, email verification and forgot-password endpoints.

Endpoints
---------
POST /auth/signup           → create account, send verification code
POST /auth/verify-otp       → confirm email with the code
POST /auth/resend-otp       → send a fresh verification code
POST /auth/forgot-password  → validate new password, send reset code
POST /auth/reset-password   → confirm reset code and store new password
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from delivery_auth.api.deps import get_account_service, get_otp_engine
from delivery_auth.models.account import Role
from delivery_auth.services.account_service import AccountService, EmailAlreadyRegisteredError
from delivery_auth.services.otp_engine import OtpEngine
from delivery_auth.services.outcomes import (
    IssueOutcome,
    IssueStatus,
    Purpose,
    VerifyOutcome,
    VerifyStatus,
)
from delivery_auth.services.password import PasswordPolicyError, validate_new_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Request / response models ────────────────────────────

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(CamelModel):
    first_name: str = Field(min_length=1, max_length=128)
    last_name: str = Field(min_length=1, max_length=128)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=32)
    password: str = Field(min_length=8, max_length=16)
    role: Role = Role.CUSTOMER


class VerifyOtpRequest(CamelModel):
    user_id: str
    code: str = Field(min_length=1, max_length=8)


class ResendOtpRequest(CamelModel):
    user_id: str


class ForgotPasswordRequest(CamelModel):
    email: EmailStr
    new_password: str
    confirm_password: str


class ResetPasswordRequest(CamelModel):
    user_id: str
    code: str = Field(min_length=1, max_length=8)
    new_password: str = Field(min_length=8, max_length=72)


class Envelope(CamelModel):
    success: bool
    message: str
    user_id: str | None = None
    email: str | None = None
    can_resend_at: datetime | None = None
    locked_until: datetime | None = None
    remaining_attempts: int | None = None


def _reply(status_code: int, **fields) -> JSONResponse:
    body = Envelope(**fields).model_dump(mode="json", by_alias=True, exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


# ── Outcome → HTTP mapping ───────────────────────────────

def _issue_reply(outcome: IssueOutcome, *, success_message: str, **extra) -> JSONResponse:
    kind = outcome.status
    if kind is IssueStatus.SENT:
        return _reply(
            status.HTTP_200_OK,
            success=True,
            message=success_message,
            can_resend_at=outcome.can_resend_at,
            **extra,
        )
    if kind is IssueStatus.NOT_FOUND:
        return _reply(status.HTTP_404_NOT_FOUND, success=False, message="User not found")
    if kind is IssueStatus.ALREADY_VERIFIED:
        return _reply(
            status.HTTP_400_BAD_REQUEST, success=False, message="Email already verified"
        )
    if kind is IssueStatus.ACCOUNT_DISABLED:
        return _reply(
            status.HTTP_403_FORBIDDEN,
            success=False,
            message="Account is locked. Please contact support.",
        )
    if kind is IssueStatus.LOCKED:
        return _reply(
            status.HTTP_400_BAD_REQUEST,
            success=False,
            message=(
                "Account is locked due to too many attempts. "
                f"Try again after {outcome.locked_until:%Y-%m-%d %H:%M:%S %Z}"
            ),
            locked_until=outcome.locked_until,
            can_resend_at=outcome.locked_until,
        )
    if kind is IssueStatus.THROTTLED:
        return _reply(
            status.HTTP_400_BAD_REQUEST,
            success=False,
            message="Please wait before requesting a new OTP",
            can_resend_at=outcome.can_resend_at,
        )
    if kind is IssueStatus.DELIVERY_FAILED:
        return _reply(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            success=False,
            message="Failed to send OTP email",
            can_resend_at=outcome.can_resend_at,
            **extra,
        )
    raise AssertionError(f"unhandled issue status {outcome.status}")


def _verify_reply(outcome: VerifyOutcome, *, success_message: str) -> JSONResponse:
    kind = outcome.status
    if kind is VerifyStatus.VERIFIED:
        return _reply(status.HTTP_200_OK, success=True, message=success_message)
    if kind is VerifyStatus.NOT_FOUND:
        return _reply(status.HTTP_404_NOT_FOUND, success=False, message="User not found")
    if kind is VerifyStatus.NO_CODE:
        return _reply(
            status.HTTP_400_BAD_REQUEST,
            success=False,
            message="No OTP found. Please request a new one.",
        )
    if kind is VerifyStatus.EXPIRED:
        return _reply(
            status.HTTP_400_BAD_REQUEST,
            success=False,
            message="OTP has expired. Please request a new one.",
        )
    if kind is VerifyStatus.LOCKED:
        return _reply(
            status.HTTP_400_BAD_REQUEST,
            success=False,
            message=(
                "Account is locked. "
                f"Try again after {outcome.locked_until:%Y-%m-%d %H:%M:%S %Z}"
            ),
            locked_until=outcome.locked_until,
        )
    if kind is VerifyStatus.INVALID:
        remaining = outcome.remaining_attempts
        plural = "" if remaining == 1 else "s"
        return _reply(
            status.HTTP_400_BAD_REQUEST,
            success=False,
            message=f"Invalid OTP. {remaining} attempt{plural} remaining.",
            remaining_attempts=remaining,
        )
    raise AssertionError(f"unhandled verify status {outcome.status}")


# ── Signup / email verification ──────────────────────────

@router.post("/signup")
async def signup(
    body: SignupRequest,
    accounts: AccountService = Depends(get_account_service),
    engine: OtpEngine = Depends(get_otp_engine),
) -> JSONResponse:
    """Create an account and email it a verification code."""
    try:
        account = await accounts.signup(
            first_name=body.first_name,
            last_name=body.last_name,
            email=body.email,
            phone=body.phone,
            password=body.password,
            role=body.role,
        )
    except EmailAlreadyRegisteredError:
        return _reply(
            status.HTTP_400_BAD_REQUEST, success=False, message="Email already registered"
        )

    outcome = await engine.issue(account.id, Purpose.EMAIL_VERIFICATION)
    if not outcome.success:
        logger.error("Account %s created but OTP not sent: %s", account.id, outcome.status.value)
        return _reply(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            success=False,
            message="User created but failed to send OTP",
            user_id=account.id,
        )

    return _reply(
        status.HTTP_201_CREATED,
        success=True,
        message="Signup successful. Please verify your email with the OTP sent.",
        user_id=account.id,
        email=account.email,
        can_resend_at=outcome.can_resend_at,
    )


@router.post("/verify-otp")
async def verify_otp(
    body: VerifyOtpRequest, engine: OtpEngine = Depends(get_otp_engine)
) -> JSONResponse:
    """Confirm the signup email with the code that was sent to it."""
    outcome = await engine.verify(body.user_id, body.code, Purpose.EMAIL_VERIFICATION)
    return _verify_reply(
        outcome, success_message="Email verified successfully. You can now login."
    )


@router.post("/resend-otp")
async def resend_otp(
    body: ResendOtpRequest, engine: OtpEngine = Depends(get_otp_engine)
) -> JSONResponse:
    """Send a fresh verification code, subject to cooldown and resend limits."""
    outcome = await engine.issue(body.user_id, Purpose.EMAIL_VERIFICATION)
    return _issue_reply(outcome, success_message="OTP sent successfully")


# ── Forgot password ──────────────────────────────────────

@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    accounts: AccountService = Depends(get_account_service),
    engine: OtpEngine = Depends(get_otp_engine),
) -> JSONResponse:
    """Validate the proposed password and email a reset code."""
    try:
        validate_new_password(body.new_password, body.confirm_password)
    except PasswordPolicyError as exc:
        return _reply(status.HTTP_400_BAD_REQUEST, success=False, message=str(exc))

    account = await accounts.find_by_email(body.email)
    if account is None:
        return _reply(
            status.HTTP_404_NOT_FOUND,
            success=False,
            message="No account found with this email",
        )

    outcome = await engine.issue(account.id, Purpose.PASSWORD_RESET)
    return _issue_reply(
        outcome, success_message="OTP sent to your email", user_id=account.id
    )


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest, engine: OtpEngine = Depends(get_otp_engine)
) -> JSONResponse:
    """Confirm the reset code and replace the account's password."""
    try:
        outcome = await engine.verify(
            body.user_id, body.code, Purpose.PASSWORD_RESET, new_password=body.new_password
        )
    except PasswordPolicyError as exc:
        return _reply(status.HTTP_400_BAD_REQUEST, success=False, message=str(exc))
    return _verify_reply(outcome, success_message="Password reset successfully")
