from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal, InvalidOperation

from .errors import InvalidFieldValue, InvalidPlayerField, MissingRequiredField
from .models import PAYMENT_METHODS
from .tiers import GENDER_DISPLAY_NAMES

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def clean_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def require_fields(
    payload: Mapping[str, object],
    names: Sequence[str],
    *,
    message: str | None = None,
) -> dict[str, str]:
    """Return trimmed values for ``names`` or raise listing every missing one."""
    values: dict[str, str] = {}
    missing: list[str] = []
    for name in names:
        value = clean_text(payload.get(name))
        if not value:
            missing.append(name)
            continue
        values[name] = value
    if missing:
        raise MissingRequiredField(missing, message)
    return values


def optional_text(payload: Mapping[str, object], name: str) -> str:
    return clean_text(payload.get(name))


def normalize_email(raw: str, *, field: str = "email") -> str:
    email = raw.strip().lower()
    if not _EMAIL_PATTERN.match(email):
        raise InvalidFieldValue(field, "Please enter a valid email address")
    return email


def validate_team_name(raw: str) -> str:
    name = raw.strip()
    if len(name) < 2:
        raise InvalidFieldValue("teamName", "Team name must be at least 2 characters long")
    if len(name) > 100:
        raise InvalidFieldValue("teamName", "Team name must be 100 characters or fewer")
    return name


def parse_gender(raw: str) -> str:
    gender = raw.strip().lower()
    if gender not in GENDER_DISPLAY_NAMES:
        raise InvalidFieldValue(
            "gender", f"Gender must be one of: {', '.join(GENDER_DISPLAY_NAMES)}"
        )
    return gender


def parse_payment_method(raw: str) -> str:
    method = raw.strip().lower()
    if method not in PAYMENT_METHODS:
        raise InvalidFieldValue(
            "paymentMethod",
            f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}",
        )
    return method


def parse_amount(raw: str, *, field: str = "amount") -> Decimal:
    try:
        amount = Decimal(raw.replace(",", "").replace("$", "").strip())
    except InvalidOperation as exc:
        raise InvalidFieldValue(field, f"Invalid {field}: {raw}") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidFieldValue(field, f"Invalid {field}: {raw}")
    return amount


def parse_date_of_birth(raw: str, index: int) -> date:
    value = raw.strip()
    # Accept full ISO timestamps from browsers, keep only the calendar date.
    value = value.split("T", 1)[0]
    try:
        parsed = date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidPlayerField(
            index,
            "dateOfBirth",
            f"Player {index + 1}: date of birth must use YYYY-MM-DD",
        ) from exc
    return parsed


__all__ = [
    "clean_text",
    "require_fields",
    "optional_text",
    "normalize_email",
    "validate_team_name",
    "parse_gender",
    "parse_payment_method",
    "parse_amount",
    "parse_date_of_birth",
]
