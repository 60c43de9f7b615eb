from __future__ import annotations

TRANSIENT_MESSAGE = (
    "Failed to save registration. Please try again or contact support."
)


class RegistrationError(ValueError):
    """Base exception for registration failures surfaced to the caller."""

    kind: str = "RegistrationError"
    transient: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, object]:
        return {}


class MissingRequiredField(RegistrationError):
    kind = "MissingRequiredField"

    def __init__(self, fields: list[str], message: str | None = None) -> None:
        self.fields = list(fields)
        super().__init__(
            message or f"Missing required fields: {', '.join(self.fields)}"
        )

    def details(self) -> dict[str, object]:
        return {"fields": self.fields}


class InvalidFieldValue(RegistrationError):
    kind = "InvalidFieldValue"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)

    def details(self) -> dict[str, object]:
        return {"field": self.field}


class InvalidPlayerField(RegistrationError):
    kind = "InvalidPlayerField"

    def __init__(self, index: int, field: str, message: str | None = None) -> None:
        self.index = index
        self.field = field
        super().__init__(message or f"Player {index + 1}: {field} is invalid")

    def details(self) -> dict[str, object]:
        return {"index": self.index, "field": self.field}


class MissingPlayerField(InvalidPlayerField):
    kind = "MissingPlayerField"

    def __init__(self, index: int, field: str) -> None:
        super().__init__(
            index,
            field,
            f"Player {index + 1}: Name and date of birth are required",
        )


class MissingIdentityPhoto(RegistrationError):
    kind = "MissingIdentityPhoto"

    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__(f"Player {index + 1}: ID photo is required")

    def details(self) -> dict[str, object]:
        return {"index": self.index}


class InvalidIdentityPhoto(RegistrationError):
    kind = "InvalidIdentityPhoto"

    def __init__(self, index: int, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"Player {index + 1}: {reason}")

    def details(self) -> dict[str, object]:
        return {"index": self.index, "reason": self.reason}


class RosterSizeViolation(RegistrationError):
    kind = "RosterSizeViolation"

    def __init__(self, actual: int, minimum: int, maximum: int) -> None:
        self.actual = actual
        self.minimum = minimum
        self.maximum = maximum
        if actual < minimum:
            message = f"Minimum {minimum} players required"
        else:
            message = f"Maximum {maximum} players allowed"
        super().__init__(message)

    def details(self) -> dict[str, object]:
        return {"actual": self.actual, "min": self.minimum, "max": self.maximum}


class InvalidTier(RegistrationError):
    kind = "InvalidTier"

    def __init__(self, tier: str) -> None:
        self.tier = tier
        super().__init__(f"Unknown tier: {tier}")

    def details(self) -> dict[str, object]:
        return {"tier": self.tier}


class InvalidAmount(RegistrationError):
    kind = "InvalidAmount"

    def __init__(self, tier: str, amount: object) -> None:
        self.tier = tier
        self.amount = amount
        super().__init__("Invalid tier or amount")

    def details(self) -> dict[str, object]:
        return {"tier": self.tier, "amount": str(self.amount)}


class AgeEligibilityViolation(RegistrationError):
    kind = "AgeEligibilityViolation"

    def __init__(
        self,
        tier_display_name: str,
        min_age: int,
        max_age: int,
        violations: list[tuple[int, int]],
    ) -> None:
        self.min_age = min_age
        self.max_age = max_age
        self.violations = list(violations)
        super().__init__(
            f"Player ages must be within the {tier_display_name} tier age range "
            f"({min_age}-{max_age})"
        )

    def details(self) -> dict[str, object]:
        return {
            "min_age": self.min_age,
            "max_age": self.max_age,
            "players": [
                {"index": index, "age": age} for index, age in self.violations
            ],
        }


class DuplicateRegistration(RegistrationError):
    kind = "DuplicateRegistration"


class InvalidStatusTransition(RegistrationError):
    kind = "InvalidStatusTransition"

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move payment status from {current} to {requested}")

    def details(self) -> dict[str, object]:
        return {"current": self.current, "requested": self.requested}


class RecordNotFound(RegistrationError):
    kind = "RecordNotFound"


class UploadFailure(RegistrationError):
    kind = "UploadFailure"
    transient = True

    def __init__(self, message: str = TRANSIENT_MESSAGE) -> None:
        super().__init__(message)


class PersistenceError(RegistrationError):
    kind = "PersistenceError"
    transient = True

    def __init__(self, message: str = TRANSIENT_MESSAGE) -> None:
        super().__init__(message)


class DeliveryFailure(RegistrationError):
    """Raised when an email-only submission (contact form) could not be sent."""

    kind = "DeliveryFailure"
    transient = True

    def __init__(
        self,
        message: str = "Failed to send message. Please try again or contact support.",
    ) -> None:
        super().__init__(message)


class NotificationFailure(Exception):
    """Raised by notification senders; always logged and swallowed by workflows."""


__all__ = [
    "TRANSIENT_MESSAGE",
    "RegistrationError",
    "MissingRequiredField",
    "InvalidFieldValue",
    "InvalidPlayerField",
    "MissingPlayerField",
    "MissingIdentityPhoto",
    "InvalidIdentityPhoto",
    "RosterSizeViolation",
    "InvalidTier",
    "InvalidAmount",
    "AgeEligibilityViolation",
    "DuplicateRegistration",
    "InvalidStatusTransition",
    "RecordNotFound",
    "UploadFailure",
    "PersistenceError",
    "DeliveryFailure",
    "NotificationFailure",
]
