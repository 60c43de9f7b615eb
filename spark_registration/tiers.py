from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Final

from .errors import InvalidTier


@dataclass(frozen=True, slots=True)
class TierPolicy:
    tier_id: str
    display_name: str
    min_age: int
    max_age: int
    registration_fee: Decimal
    requires_identity_photo: bool

    def accepts_age(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age


@dataclass(frozen=True, slots=True)
class SponsorTierPolicy:
    tier_id: str
    display_name: str
    amount: Decimal
    benefits: tuple[str, ...]


TEAM_TIERS: Final[dict[str, TierPolicy]] = {
    "elementary": TierPolicy(
        tier_id="elementary",
        display_name="Elementary School",
        min_age=6,
        max_age=10,
        registration_fee=Decimal("250"),
        requires_identity_photo=False,
    ),
    "middle": TierPolicy(
        tier_id="middle",
        display_name="Middle School",
        min_age=11,
        max_age=13,
        registration_fee=Decimal("300"),
        requires_identity_photo=False,
    ),
    "high_school": TierPolicy(
        tier_id="high_school",
        display_name="High School",
        min_age=14,
        max_age=18,
        registration_fee=Decimal("350"),
        requires_identity_photo=True,
    ),
}

GENDER_DISPLAY_NAMES: Final[dict[str, str]] = {
    "boys": "Boys",
    "girls": "Girls",
}

SPONSOR_TIERS: Final[dict[str, SponsorTierPolicy]] = {
    "diamond": SponsorTierPolicy(
        tier_id="diamond",
        display_name="Diamond",
        amount=Decimal("10000"),
        benefits=(
            "Premium logo placement on all marketing materials",
            "Main stage banner display throughout event",
            "10-minute presentation opportunity during opening ceremony",
            "VIP booth space at prime location",
            "20 complimentary event passes",
            "Full-page ad in tournament program",
            "Social media spotlight campaign",
            "Trophy presentation rights",
        ),
    ),
    "platinum": SponsorTierPolicy(
        tier_id="platinum",
        display_name="Platinum",
        amount=Decimal("5000"),
        benefits=(
            "Prominent logo placement on marketing materials",
            "Court-side banner display",
            "5-minute presentation during event",
            "Premium booth space",
            "15 complimentary event passes",
            "Half-page ad in tournament program",
            "Social media recognition",
            "Award presentation opportunity",
        ),
    ),
    "gold": SponsorTierPolicy(
        tier_id="gold",
        display_name="Gold",
        amount=Decimal("2500"),
        benefits=(
            "Logo on event website and program",
            "Venue banner display",
            "Standard booth space",
            "10 complimentary event passes",
            "Quarter-page ad in program",
            "Social media mentions",
            "Recognition during ceremonies",
        ),
    ),
    "silver": SponsorTierPolicy(
        tier_id="silver",
        display_name="Silver",
        amount=Decimal("1000"),
        benefits=(
            "Logo on event website",
            "Name listing in program",
            "5 complimentary event passes",
            "Certificate of appreciation",
            "Social media thank you post",
            "Recognition on sponsor board",
        ),
    ),
}


def _normalize(tier: str) -> str:
    return tier.strip().lower().replace("-", "_").replace(" ", "_")


def resolve_tier(tier: str) -> TierPolicy:
    policy = TEAM_TIERS.get(_normalize(tier))
    if policy is None:
        raise InvalidTier(tier)
    return policy


def resolve_sponsor_tier(tier: str) -> SponsorTierPolicy:
    policy = SPONSOR_TIERS.get(_normalize(tier))
    if policy is None:
        raise InvalidTier(tier)
    return policy


def gender_display_name(gender: str) -> str:
    return GENDER_DISPLAY_NAMES.get(gender, gender.title())


__all__ = [
    "TierPolicy",
    "SponsorTierPolicy",
    "TEAM_TIERS",
    "SPONSOR_TIERS",
    "GENDER_DISPLAY_NAMES",
    "resolve_tier",
    "resolve_sponsor_tier",
    "gender_display_name",
]
