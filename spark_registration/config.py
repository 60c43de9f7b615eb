"""Environment configuration for the registration services."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .payments import (
    DEFAULT_MAILING_ADDRESS,
    DEFAULT_VENMO_USERNAME,
    DEFAULT_ZELLE_EMAIL,
    PaymentSettings,
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_EVENT_TIMEZONE = "America/Indiana/Indianapolis"


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_list(name: str) -> list[str]:
    raw = os.getenv(name) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class EmailConfig:
    enabled: bool
    smtp_host: str
    smtp_port: int
    username: str | None
    password: str | None
    admin_recipients: list[str] = field(default_factory=list)
    sender_name: str = "Alhuda SPARK"

    @property
    def sender_address(self) -> str | None:
        return self.username


@dataclass(frozen=True)
class UploadConfig:
    backend: str
    directory: str
    bucket: str | None
    prefix: str


@dataclass(frozen=True)
class AppConfig:
    table_name: str
    aws_region: str
    uploads: UploadConfig
    email: EmailConfig
    payments: PaymentSettings
    admin_webhook_url: str | None
    event_timezone: str
    notification_timeout: float

    @classmethod
    def load(cls) -> AppConfig:
        missing: list[str] = []

        def need(name: str) -> str:
            value = os.getenv(name)
            if not value:
                missing.append(name)
                return ""
            return value

        table_name = need("REGISTRATION_TABLE_NAME")

        backend = (os.getenv("UPLOAD_BACKEND") or "local").strip().lower()
        if backend not in {"local", "s3"}:
            raise RuntimeError(f"Unsupported UPLOAD_BACKEND={backend}; use local or s3")
        bucket = need("UPLOAD_BUCKET") if backend == "s3" else os.getenv("UPLOAD_BUCKET")

        email_enabled = env_bool("EMAIL_ENABLED", default=False)
        if email_enabled:
            username: str | None = need("EMAIL_USER")
            password: str | None = need("EMAIL_APP_PASSWORD")
        else:
            username = os.getenv("EMAIL_USER")
            password = os.getenv("EMAIL_APP_PASSWORD")

        if missing:
            raise RuntimeError(
                "Missing required environment variables: " + ", ".join(missing)
            )

        return cls(
            table_name=table_name,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            uploads=UploadConfig(
                backend=backend,
                directory=os.getenv("UPLOAD_DIR", "uploads"),
                bucket=bucket or None,
                prefix=os.getenv("UPLOAD_PREFIX", ""),
            ),
            email=EmailConfig(
                enabled=email_enabled,
                smtp_host=os.getenv("SMTP_HOST", "smtp.hostinger.com"),
                smtp_port=env_int("SMTP_PORT", default=465) or 465,
                username=username,
                password=password,
                admin_recipients=env_list("ADMIN_EMAILS") or ["admin@alhudaspark.org"],
            ),
            payments=PaymentSettings(
                mailing_address=os.getenv("MAILING_ADDRESS", DEFAULT_MAILING_ADDRESS),
                zelle_email=os.getenv("ZELLE_EMAIL", DEFAULT_ZELLE_EMAIL),
                venmo_username=os.getenv("VENMO_USERNAME", DEFAULT_VENMO_USERNAME),
            ),
            admin_webhook_url=os.getenv("ADMIN_WEBHOOK_URL") or None,
            event_timezone=os.getenv("EVENT_TIMEZONE", DEFAULT_EVENT_TIMEZONE),
            notification_timeout=float(
                env_int("NOTIFICATION_TIMEOUT_SECONDS", default=10) or 10
            ),
        )


__all__ = [
    "DEFAULT_EVENT_TIMEZONE",
    "env_bool",
    "env_int",
    "env_list",
    "EmailConfig",
    "UploadConfig",
    "AppConfig",
]
