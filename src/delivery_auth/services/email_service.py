"""Email service — sends OTP and lockout notifications via async SMTP."""

from __future__ import annotations

import html
import logging
from datetime import datetime
from email.message import EmailMessage

import aiosmtplib

from delivery_auth.config import settings
from delivery_auth.services.outcomes import Purpose

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when a notification could not be handed to the mail server."""


_CODE_SUBJECTS = {
    Purpose.EMAIL_VERIFICATION: "Verify your email",
    Purpose.PASSWORD_RESET: "Reset your password",
}

_CODE_INTROS = {
    Purpose.EMAIL_VERIFICATION: (
        "Thank you for signing up with {app}. To complete your registration, "
        "please use the verification code below:"
    ),
    Purpose.PASSWORD_RESET: (
        "We received a request to reset your {app} password. "
        "Use the code below to confirm it was you:"
    ),
}


class EmailService:
    """Sends transactional emails using the configured SMTP server."""

    async def send_code(
        self,
        to_email: str,
        code: str,
        user_name: str,
        *,
        purpose: Purpose = Purpose.EMAIL_VERIFICATION,
        expiry_minutes: int = 10,
        max_attempts: int = 3,
        lockout_hours: int = 24,
    ) -> None:
        """Email a one-time passcode.

        Parameters
        ----------
        to_email:
            Recipient email address.
        code:
            The plaintext passcode. It is placed in the message body only.
        user_name:
            Name of the user (used in the greeting).
        purpose:
            Selects the subject line and introduction.
        """
        app = settings.app_name
        intro = _CODE_INTROS[purpose].format(app=app)
        text = (
            f"Hello {user_name},\n\n"
            f"{intro}\n\n"
            f"    {code}\n\n"
            f"This code will expire in {expiry_minutes} minutes.\n"
            f"After {max_attempts} incorrect attempts your account will be locked "
            f"for {lockout_hours} hours.\n\n"
            "If you didn't request this code, please ignore this email.\n\n"
            "Best regards,\n"
            f"The {app} Team"
        )
        body = (
            f"<p>Hello <strong>{html.escape(user_name)}</strong>,</p>"
            f"<p>{html.escape(intro)}</p>"
            f'<p style="font-size:32px;font-weight:bold;letter-spacing:8px">{code}</p>'
            f"<p>This code will expire in <strong>{expiry_minutes} minutes</strong>.</p>"
            f"<p>After {max_attempts} incorrect attempts your account will be locked "
            f"for {lockout_hours} hours.</p>"
            "<p>If you didn't request this code, please ignore this email.</p>"
            f"<p>Best regards,<br><strong>The {html.escape(app)} Team</strong></p>"
        )
        subject = f"{_CODE_SUBJECTS[purpose]} — {app}"

        logger.info("Sending %s code email to %s", purpose.value, to_email)
        await self._send(to_email, subject, text, body)

    async def send_account_locked(
        self, to_email: str, user_name: str, unlock_at: datetime
    ) -> None:
        """Tell the user their account is temporarily locked until *unlock_at*."""
        app = settings.app_name
        when = unlock_at.strftime("%Y-%m-%d %H:%M %Z")
        text = (
            f"Hello {user_name},\n\n"
            "Your account has been temporarily locked due to multiple failed "
            "verification attempts.\n\n"
            f"It will be automatically unlocked at: {when}\n\n"
            "If you didn't attempt to verify your account, please contact our "
            "support team immediately.\n\n"
            "Best regards,\n"
            f"The {app} Team"
        )
        body = (
            f"<p>Hello <strong>{html.escape(user_name)}</strong>,</p>"
            "<p>Your account has been temporarily locked due to multiple failed "
            "verification attempts.</p>"
            f"<p><strong>Unlock time: {when}</strong></p>"
            "<p>If you didn't attempt to verify your account, please contact our "
            "support team immediately.</p>"
            f"<p>Best regards,<br><strong>The {html.escape(app)} Team</strong></p>"
        )

        logger.info("Sending account-locked email to %s", to_email)
        await self._send(to_email, f"Account temporarily locked — {app}", text, body)

    async def _send(self, to_email: str, subject: str, text: str, html_body: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = settings.email_from
        msg["To"] = to_email
        msg.set_content(text)
        msg.add_alternative(html_body, subtype="html")

        try:
            await aiosmtplib.send(
                msg,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username or None,
                password=settings.smtp_password or None,
                start_tls=settings.smtp_start_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("Email to %s failed: %s", to_email, exc)
            raise NotificationError(str(exc)) from exc

        logger.info("Email sent to %s", to_email)
