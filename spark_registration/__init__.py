"""Alhuda SPARK team, sponsor and contact registration services."""

from .ages import calculate_age
from .errors import (
    AgeEligibilityViolation,
    DuplicateRegistration,
    MissingIdentityPhoto,
    MissingPlayerField,
    MissingRequiredField,
    PersistenceError,
    RegistrationError,
    RosterSizeViolation,
    UploadFailure,
)
from .models import EmergencyContact, Player, Sponsor, Team, generate_team_id
from .payments import PaymentInstructions, resolve_payment_instructions
from .roster import RosterBuilder
from .storage import RegistrationStorage
from .tiers import TierPolicy, resolve_tier
from .uploads import LocalUploadStore, S3UploadStore, UploadedFile
from .workflow import SubmissionResult, TeamRegistrationWorkflow

__all__ = [
    "calculate_age",
    "AgeEligibilityViolation",
    "DuplicateRegistration",
    "MissingIdentityPhoto",
    "MissingPlayerField",
    "MissingRequiredField",
    "PersistenceError",
    "RegistrationError",
    "RosterSizeViolation",
    "UploadFailure",
    "EmergencyContact",
    "Player",
    "Sponsor",
    "Team",
    "generate_team_id",
    "PaymentInstructions",
    "resolve_payment_instructions",
    "RosterBuilder",
    "RegistrationStorage",
    "TierPolicy",
    "resolve_tier",
    "LocalUploadStore",
    "S3UploadStore",
    "UploadedFile",
    "SubmissionResult",
    "TeamRegistrationWorkflow",
]
