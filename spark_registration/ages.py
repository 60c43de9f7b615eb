from __future__ import annotations

from datetime import date


def calculate_age(date_of_birth: date, as_of: date) -> int:
    """Return whole years elapsed between ``date_of_birth`` and ``as_of``."""
    years = as_of.year - date_of_birth.year
    if (as_of.month, as_of.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


__all__ = ["calculate_age"]
