"""Delivery Auth — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./delivery_auth.db"

    # ── SMTP (transactional email) ────────────────────────
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_start_tls: bool = True
    email_from: str = "no-reply@farewell.local"

    # ── OTP policy ────────────────────────────────────────
    otp_expiry_minutes: int = 10
    otp_max_attempts: int = 3
    otp_max_resend_count: int = 2
    otp_resend_cooldown_seconds: int = 30
    otp_lockout_hours: int = 24

    # ── Passwords ─────────────────────────────────────────
    bcrypt_rounds: int = 12

    # ── App ───────────────────────────────────────────────
    app_name: str = "Farewell"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
