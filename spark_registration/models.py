from __future__ import annotations

import secrets
import string
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import ClassVar, Final

from .ages import calculate_age
from .errors import InvalidStatusTransition, RosterSizeViolation
from .tiers import TierPolicy, gender_display_name, resolve_sponsor_tier, resolve_tier

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

ROSTER_MIN_PLAYERS: Final = 5
ROSTER_MAX_PLAYERS: Final = 10

PAYMENT_METHODS: Final[tuple[str, ...]] = ("check", "zelle", "venmo", "zeffy")

PAYMENT_STATUSES: Final[tuple[str, ...]] = (
    "pending",
    "processing",
    "completed",
    "failed",
    "cancelled",
)
PAYMENT_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    "pending": frozenset({"processing", "failed", "cancelled"}),
    "processing": frozenset({"completed", "failed", "cancelled"}),
    "completed": frozenset(),
    "failed": frozenset(),
    "cancelled": frozenset(),
}

REGISTRATION_STATUSES: Final[tuple[str, ...]] = (
    "pending",
    "approved",
    "waitlisted",
    "rejected",
)
ACTIVE_REGISTRATION_STATUSES: Final[frozenset[str]] = frozenset(
    {"pending", "approved", "waitlisted"}
)
ACTIVE_SPONSOR_PAYMENT_STATUSES: Final[frozenset[str]] = frozenset(
    {"pending", "processing", "completed"}
)


_ID_ALPHABET = string.digits + string.ascii_uppercase


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(UTC).strftime(ISO_FORMAT)


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ID_ALPHABET[remainder])
    return "".join(reversed(digits))


def _generate_id(prefix: str, now_ms: int | None = None) -> str:
    timestamp = _base36(now_ms if now_ms is not None else time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(5))
    return f"{prefix}-{timestamp}-{suffix}"


def generate_team_id(now_ms: int | None = None) -> str:
    return _generate_id("TEAM", now_ms)


def generate_sponsor_id(now_ms: int | None = None) -> str:
    return _generate_id("SPR", now_ms)


def transition_payment_status(current: str, requested: str) -> str:
    if requested not in PAYMENT_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(current, requested)
    return requested


@dataclass(slots=True)
class StoredUpload:
    reference: str
    url: str
    original_name: str

    def to_dict(self) -> dict[str, object]:
        return {
            "reference": self.reference,
            "url": self.url,
            "original_name": self.original_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> StoredUpload:
        return cls(
            reference=str(data.get("reference", "")),
            url=str(data.get("url", "")),
            original_name=str(data.get("original_name", "")),
        )


@dataclass(slots=True)
class Player:
    name: str
    date_of_birth: date
    identity_photo: StoredUpload | None = None
    age_at_registration: int = 0

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "name": self.name,
            "date_of_birth": self.date_of_birth.isoformat(),
            "age_at_registration": self.age_at_registration,
        }
        if self.identity_photo is not None:
            data["identity_photo"] = self.identity_photo.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Player:
        photo_data = data.get("identity_photo")
        return cls(
            name=str(data.get("name", "")),
            date_of_birth=date.fromisoformat(str(data["date_of_birth"])),
            identity_photo=(
                StoredUpload.from_dict(photo_data)  # type: ignore[arg-type]
                if isinstance(photo_data, dict)
                else None
            ),
            age_at_registration=int(data.get("age_at_registration", 0)),
        )


@dataclass(slots=True)
class EmergencyContact:
    name: str
    phone: str
    relationship: str

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "phone": self.phone,
            "relationship": self.relationship,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> EmergencyContact:
        return cls(
            name=str(data.get("name", "")),
            phone=str(data.get("phone", "")),
            relationship=str(data.get("relationship", "")),
        )


@dataclass(slots=True)
class Team:
    team_id: str
    team_name: str
    organization: str
    city: str
    tier: str
    gender: str
    coach_name: str
    coach_email: str
    coach_phone: str
    players: list[Player]
    emergency_contact: EmergencyContact
    registration_fee: Decimal
    payment_method: str
    created_at: str
    payment_status: str = "pending"
    registration_status: str = "pending"
    special_requirements: str = ""
    comments: str = ""
    transaction_id: str | None = None
    paid_at: str | None = None
    updated_at: str | None = None

    PK_VALUE: ClassVar[str] = "TEAMS"
    SK_TEMPLATE: ClassVar[str] = "TEAM#%s"

    def __post_init__(self) -> None:
        count = len(self.players)
        if count < ROSTER_MIN_PLAYERS or count > ROSTER_MAX_PLAYERS:
            raise RosterSizeViolation(count, ROSTER_MIN_PLAYERS, ROSTER_MAX_PLAYERS)

    @classmethod
    def key(cls, team_id: str) -> dict[str, str]:
        return {"pk": cls.PK_VALUE, "sk": cls.SK_TEMPLATE % team_id}

    @property
    def policy(self) -> TierPolicy:
        return resolve_tier(self.tier)

    @property
    def tier_display_name(self) -> str:
        return self.policy.display_name

    @property
    def gender_display_name(self) -> str:
        return gender_display_name(self.gender)

    @property
    def player_count(self) -> int:
        return len(self.players)

    def compute_player_ages(self, as_of: date) -> None:
        for player in self.players:
            player.age_at_registration = calculate_age(player.date_of_birth, as_of)

    def age_violations(self) -> list[tuple[int, int]]:
        policy = self.policy
        return [
            (index, player.age_at_registration)
            for index, player in enumerate(self.players)
            if not policy.accepts_age(player.age_at_registration)
        ]

    def to_item(self) -> dict[str, object]:
        item = self.key(self.team_id)
        item.update(
            {
                "record_type": "team",
                "team_id": self.team_id,
                "team_name": self.team_name,
                "organization": self.organization,
                "city": self.city,
                "tier": self.tier,
                "gender": self.gender,
                "coach_name": self.coach_name,
                "coach_email": self.coach_email,
                "coach_phone": self.coach_phone,
                "players": [player.to_dict() for player in self.players],
                "emergency_contact": self.emergency_contact.to_dict(),
                "registration_fee": self.registration_fee,
                "payment_method": self.payment_method,
                "payment_status": self.payment_status,
                "registration_status": self.registration_status,
                "special_requirements": self.special_requirements,
                "comments": self.comments,
                "created_at": self.created_at,
            }
        )
        if self.transaction_id is not None:
            item["transaction_id"] = self.transaction_id
        if self.paid_at is not None:
            item["paid_at"] = self.paid_at
        if self.updated_at is not None:
            item["updated_at"] = self.updated_at
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Team:
        players_data: Iterable[dict[str, object]] = item.get("players", [])  # type: ignore[assignment]
        contact_data = item.get("emergency_contact") or {}
        transaction_id = item.get("transaction_id")
        paid_at = item.get("paid_at")
        updated_at = item.get("updated_at")
        return cls(
            team_id=str(item.get("team_id") or str(item["sk"]).split("#", 1)[1]),
            team_name=str(item.get("team_name", "")),
            organization=str(item.get("organization", "")),
            city=str(item.get("city", "")),
            tier=str(item.get("tier", "")),
            gender=str(item.get("gender", "")),
            coach_name=str(item.get("coach_name", "")),
            coach_email=str(item.get("coach_email", "")),
            coach_phone=str(item.get("coach_phone", "")),
            players=[Player.from_dict(data) for data in players_data],
            emergency_contact=EmergencyContact.from_dict(contact_data),  # type: ignore[arg-type]
            registration_fee=Decimal(str(item.get("registration_fee", "0"))),
            payment_method=str(item.get("payment_method", "")),
            created_at=str(item.get("created_at", "")),
            payment_status=str(item.get("payment_status", "pending")),
            registration_status=str(item.get("registration_status", "pending")),
            special_requirements=str(item.get("special_requirements", "")),
            comments=str(item.get("comments", "")),
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            paid_at=str(paid_at) if paid_at is not None else None,
            updated_at=str(updated_at) if updated_at is not None else None,
        )


@dataclass(slots=True)
class Sponsor:
    sponsor_id: str
    company_name: str
    contact_person: str
    email: str
    phone: str
    tier: str
    amount: Decimal
    payment_method: str
    created_at: str
    payment_status: str = "pending"
    address: str = ""
    website: str = ""
    comments: str = ""
    transaction_id: str | None = None
    paid_at: str | None = None
    updated_at: str | None = None

    PK_VALUE: ClassVar[str] = "SPONSORS"
    SK_TEMPLATE: ClassVar[str] = "SPONSOR#%s"

    @classmethod
    def key(cls, sponsor_id: str) -> dict[str, str]:
        return {"pk": cls.PK_VALUE, "sk": cls.SK_TEMPLATE % sponsor_id}

    @property
    def tier_display_name(self) -> str:
        return resolve_sponsor_tier(self.tier).display_name

    def to_item(self) -> dict[str, object]:
        item = self.key(self.sponsor_id)
        item.update(
            {
                "record_type": "sponsor",
                "sponsor_id": self.sponsor_id,
                "company_name": self.company_name,
                "contact_person": self.contact_person,
                "email": self.email,
                "phone": self.phone,
                "tier": self.tier,
                "amount": self.amount,
                "payment_method": self.payment_method,
                "payment_status": self.payment_status,
                "address": self.address,
                "website": self.website,
                "comments": self.comments,
                "created_at": self.created_at,
            }
        )
        if self.transaction_id is not None:
            item["transaction_id"] = self.transaction_id
        if self.paid_at is not None:
            item["paid_at"] = self.paid_at
        if self.updated_at is not None:
            item["updated_at"] = self.updated_at
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Sponsor:
        transaction_id = item.get("transaction_id")
        paid_at = item.get("paid_at")
        updated_at = item.get("updated_at")
        return cls(
            sponsor_id=str(
                item.get("sponsor_id") or str(item["sk"]).split("#", 1)[1]
            ),
            company_name=str(item.get("company_name", "")),
            contact_person=str(item.get("contact_person", "")),
            email=str(item.get("email", "")),
            phone=str(item.get("phone", "")),
            tier=str(item.get("tier", "")),
            amount=Decimal(str(item.get("amount", "0"))),
            payment_method=str(item.get("payment_method", "")),
            created_at=str(item.get("created_at", "")),
            payment_status=str(item.get("payment_status", "pending")),
            address=str(item.get("address", "")),
            website=str(item.get("website", "")),
            comments=str(item.get("comments", "")),
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            paid_at=str(paid_at) if paid_at is not None else None,
            updated_at=str(updated_at) if updated_at is not None else None,
        )


CONTACT_SUBJECT_LABELS: Final[dict[str, str]] = {
    "general": "General Inquiry",
    "membership": "Membership Information",
    "events": "Events & Programs",
    "volunteer": "Volunteer Opportunities",
    "donations": "Donations & Support",
    "media": "Media & Press",
    "other": "Other",
}
DEFAULT_CONTACT_SUBJECT = "General Inquiry"


@dataclass(slots=True)
class ContactMessage:
    first_name: str
    last_name: str
    email: str
    subject: str
    message: str
    phone: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def subject_label(self) -> str:
        return CONTACT_SUBJECT_LABELS.get(self.subject, DEFAULT_CONTACT_SUBJECT)

    def rows(self) -> list[tuple[str, str]]:
        return [
            ("Name", self.full_name),
            ("Email", self.email),
            ("Phone", self.phone or "Not provided"),
            ("Subject", self.subject_label),
            ("Message", self.message),
        ]


__all__ = [
    "ISO_FORMAT",
    "ROSTER_MIN_PLAYERS",
    "ROSTER_MAX_PLAYERS",
    "PAYMENT_METHODS",
    "PAYMENT_STATUSES",
    "PAYMENT_TRANSITIONS",
    "REGISTRATION_STATUSES",
    "ACTIVE_REGISTRATION_STATUSES",
    "ACTIVE_SPONSOR_PAYMENT_STATUSES",
    "StoredUpload",
    "Player",
    "EmergencyContact",
    "Team",
    "Sponsor",
    "CONTACT_SUBJECT_LABELS",
    "DEFAULT_CONTACT_SUBJECT",
    "ContactMessage",
    "utc_now_iso",
    "format_timestamp",
    "generate_team_id",
    "generate_sponsor_id",
    "transition_payment_status",
]
