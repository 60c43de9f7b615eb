"""Team registration submission handling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from botocore.exceptions import BotoCoreError, ClientError

from .config import DEFAULT_EVENT_TIMEZONE
from .errors import (
    AgeEligibilityViolation,
    DuplicateRegistration,
    PersistenceError,
    RegistrationError,
)
from .models import (
    EmergencyContact,
    StoredUpload,
    Team,
    format_timestamp,
    generate_team_id,
)
from .notifications import (
    NotificationSender,
    dispatch_best_effort,
    team_payment_instructions,
)
from .payments import PaymentInstructions, PaymentSettings
from .roster import RosterBuilder, RosterContext
from .storage import DUPLICATE_TEAM_MESSAGE, RegistrationStorage
from .tiers import resolve_tier
from .uploads import UploadedFile, rollback_uploads
from .validation import (
    normalize_email,
    optional_text,
    parse_gender,
    parse_payment_method,
    require_fields,
    validate_team_name,
)

log = logging.getLogger(__name__)

TEAM_REQUIRED_FIELDS = (
    "teamName",
    "organization",
    "city",
    "tier",
    "gender",
    "coachName",
    "coachEmail",
    "coachPhone",
    "paymentMethod",
)
EMERGENCY_CONTACT_FIELDS = ("name", "phone", "relationship")


@dataclass(slots=True)
class SubmissionResult:
    success: bool
    message: str
    reference_id: str | None = None
    reference_key: str = "teamId"
    instructions: PaymentInstructions | None = None
    error_kind: str | None = None
    transient: bool = False
    details: dict[str, object] = field(default_factory=dict)

    @classmethod
    def succeeded(
        cls,
        message: str,
        reference_id: str | None = None,
        instructions: PaymentInstructions | None = None,
        *,
        reference_key: str = "teamId",
    ) -> SubmissionResult:
        return cls(
            success=True,
            message=message,
            reference_id=reference_id,
            reference_key=reference_key,
            instructions=instructions,
        )

    @classmethod
    def failed(cls, error: RegistrationError) -> SubmissionResult:
        return cls(
            success=False,
            message=error.message,
            error_kind=error.kind,
            transient=error.transient,
            details=error.details(),
        )

    def to_dict(self) -> dict[str, object]:
        if not self.success:
            data: dict[str, object] = {
                "success": False,
                "errorKind": self.error_kind,
                "error": self.message,
            }
            if self.details:
                data["details"] = self.details
            return data
        data = {"success": True, "message": self.message}
        if self.reference_id is not None:
            data[self.reference_key] = self.reference_id
        if self.instructions is not None:
            data["instructions"] = self.instructions.to_dict()
        return data


def _emergency_contact_fields(payload: Mapping[str, object]) -> dict[str, object]:
    nested = payload.get("emergencyContact")
    if isinstance(nested, Mapping):
        return dict(nested)
    # Flat form encoding: emergencyContact[name], emergencyContact[phone], ...
    return {
        name: payload.get(f"emergencyContact[{name}]")
        for name in EMERGENCY_CONTACT_FIELDS
    }


def parse_emergency_contact(payload: Mapping[str, object]) -> EmergencyContact:
    raw = _emergency_contact_fields(payload)
    values = require_fields(
        raw,
        EMERGENCY_CONTACT_FIELDS,
        message="Emergency contact information is required",
    )
    return EmergencyContact(
        name=values["name"], phone=values["phone"], relationship=values["relationship"]
    )


class TeamRegistrationWorkflow:
    def __init__(
        self,
        storage: RegistrationStorage,
        roster_builder: RosterBuilder,
        notifier: NotificationSender,
        *,
        clock: Callable[[], datetime] | None = None,
        event_timezone: str = DEFAULT_EVENT_TIMEZONE,
        payment_settings: PaymentSettings | None = None,
        notification_timeout: float = 10.0,
    ) -> None:
        self._storage = storage
        self._roster_builder = roster_builder
        self._notifier = notifier
        self._clock = clock or (lambda: datetime.now(UTC))
        self._zone = ZoneInfo(event_timezone)
        self._payment_settings = payment_settings or PaymentSettings()
        self._notification_timeout = notification_timeout

    async def submit(
        self,
        payload: Mapping[str, object],
        files: Iterable[UploadedFile] = (),
    ) -> SubmissionResult:
        try:
            team = await self._register(payload, list(files))
        except RegistrationError as exc:
            if exc.transient:
                log.error("Team registration failed: %s", exc.kind)
            else:
                log.warning("Team registration rejected (%s): %s", exc.kind, exc.message)
            return SubmissionResult.failed(exc)

        await dispatch_best_effort(
            f"team {team.team_id}",
            [
                self._notifier.send_coach_confirmation(team),
                self._notifier.send_admin_alert(team),
            ],
            timeout=self._notification_timeout,
        )
        return SubmissionResult.succeeded(
            "Team registration saved successfully",
            team.team_id,
            team_payment_instructions(team, self._payment_settings),
        )

    async def _register(
        self, payload: Mapping[str, object], files: list[UploadedFile]
    ) -> Team:
        values = require_fields(
            payload, TEAM_REQUIRED_FIELDS, message="Missing required fields"
        )
        emergency_contact = parse_emergency_contact(payload)
        coach_email = normalize_email(values["coachEmail"], field="coachEmail")
        team_name = validate_team_name(values["teamName"])
        gender = parse_gender(values["gender"])
        payment_method = parse_payment_method(values["paymentMethod"])

        try:
            existing = await asyncio.to_thread(
                self._storage.find_active_team, coach_email, team_name
            )
        except (BotoCoreError, ClientError) as exc:
            log.error("Duplicate lookup failed for team %s: %s", team_name, exc)
            raise PersistenceError() from exc
        if existing is not None:
            raise DuplicateRegistration(DUPLICATE_TEAM_MESSAGE)

        policy = resolve_tier(values["tier"])
        submitted_at = self._clock()
        team_id = generate_team_id(int(submitted_at.timestamp() * 1000))
        log.info("Building roster for team %s (%s)", team_name, team_id)

        players_raw = payload.get("players")
        roster = await self._roster_builder.build(
            RosterContext(team_id=team_id, team_name=team_name, policy=policy),
            players_raw,  # type: ignore[arg-type]
            files,
        )

        team = Team(
            team_id=team_id,
            team_name=team_name,
            organization=values["organization"],
            city=values["city"],
            tier=policy.tier_id,
            gender=gender,
            coach_name=values["coachName"],
            coach_email=coach_email,
            coach_phone=values["coachPhone"],
            players=roster.players,
            emergency_contact=emergency_contact,
            registration_fee=policy.registration_fee,
            payment_method=payment_method,
            created_at=format_timestamp(submitted_at),
            special_requirements=optional_text(payload, "specialRequirements"),
            comments=optional_text(payload, "comments"),
        )
        team.compute_player_ages(submitted_at.astimezone(self._zone).date())
        violations = team.age_violations()
        if violations:
            await rollback_uploads(self._roster_builder.store, roster.uploads)
            raise AgeEligibilityViolation(
                policy.display_name, policy.min_age, policy.max_age, violations
            )

        await self._persist(team, roster.uploads)
        log.info(
            "Registered team %s (%s) with %d players",
            team.team_name,
            team.team_id,
            team.player_count,
        )
        return team

    async def _persist(self, team: Team, uploads: list[StoredUpload]) -> None:
        try:
            await asyncio.to_thread(self._storage.create_team, team)
        except DuplicateRegistration:
            await rollback_uploads(self._roster_builder.store, uploads)
            raise
        except (BotoCoreError, ClientError) as exc:
            log.error("Failed to persist team %s: %s", team.team_id, exc)
            await rollback_uploads(self._roster_builder.store, uploads)
            raise PersistenceError() from exc


__all__ = [
    "TEAM_REQUIRED_FIELDS",
    "EMERGENCY_CONTACT_FIELDS",
    "SubmissionResult",
    "TeamRegistrationWorkflow",
    "parse_emergency_contact",
]
