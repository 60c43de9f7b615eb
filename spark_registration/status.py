"""Back-office status changes for teams and sponsors."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    DuplicateRegistration,
    InvalidFieldValue,
    RecordNotFound,
)
from .models import (
    ACTIVE_REGISTRATION_STATUSES,
    REGISTRATION_STATUSES,
    Sponsor,
    Team,
    format_timestamp,
    transition_payment_status,
)
from .notifications import RegistrationNotifier, dispatch_best_effort
from .storage import DUPLICATE_TEAM_MESSAGE, RegistrationStorage

log = logging.getLogger(__name__)

PAYMENT_EVENTS = {
    "payment.completed": "completed",
    "payment.failed": "failed",
    "payment.cancelled": "cancelled",
}


def _advance_payment(current: str, target: str) -> str:
    # Gateways report completion without a separate processing signal.
    if target == "completed" and current == "pending":
        current = transition_payment_status(current, "processing")
    return transition_payment_status(current, target)


class RegistrationStatusService:
    def __init__(
        self,
        storage: RegistrationStorage,
        notifier: RegistrationNotifier | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        notification_timeout: float = 10.0,
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._clock = clock or (lambda: datetime.now(UTC))
        self._notification_timeout = notification_timeout

    def _now(self) -> str:
        return format_timestamp(self._clock())

    async def _load_team(self, team_id: str) -> Team:
        team = await asyncio.to_thread(self._storage.get_team, team_id)
        if team is None:
            raise RecordNotFound(f"Team {team_id} not found")
        return team

    async def _release_claim(self, team: Team) -> None:
        try:
            await asyncio.to_thread(
                self._storage.release_team_claim,
                team.coach_email,
                team.team_name,
                team.team_id,
            )
        except (BotoCoreError, ClientError) as exc:
            log.error("Failed to release claim for team %s: %s", team.team_id, exc)

    async def update_registration_status(self, team_id: str, status: str) -> Team:
        status = status.strip().lower()
        if status not in REGISTRATION_STATUSES:
            raise InvalidFieldValue(
                "registrationStatus",
                f"Registration status must be one of: {', '.join(REGISTRATION_STATUSES)}",
            )
        team = await self._load_team(team_id)
        previous = team.registration_status
        if previous == status:
            return team

        was_active = previous in ACTIVE_REGISTRATION_STATUSES
        now_active = status in ACTIVE_REGISTRATION_STATUSES
        claimed_now = not was_active and now_active
        if claimed_now:
            claimed = await asyncio.to_thread(
                self._storage.claim_team_name,
                team.coach_email,
                team.team_name,
                team.team_id,
            )
            if not claimed:
                raise DuplicateRegistration(DUPLICATE_TEAM_MESSAGE)

        team.registration_status = status
        team.updated_at = self._now()
        try:
            await asyncio.to_thread(self._storage.save_team, team)
        except (BotoCoreError, ClientError):
            if claimed_now:
                await self._release_claim(team)
            raise

        if was_active and not now_active:
            released = await asyncio.to_thread(
                self._storage.release_team_claim,
                team.coach_email,
                team.team_name,
                team.team_id,
            )
            if not released:
                log.warning("Claim for team %s was already reassigned", team.team_id)

        log.info("Team %s registration status %s -> %s", team_id, previous, status)
        return team

    async def apply_payment_event(
        self,
        reference_id: str,
        event: str,
        transaction_id: str | None = None,
    ) -> Team | Sponsor:
        target = PAYMENT_EVENTS.get(event)
        if target is None:
            raise InvalidFieldValue("event", f"Unsupported payment event: {event}")

        record: Team | Sponsor | None
        if reference_id.startswith("TEAM-"):
            record = await asyncio.to_thread(self._storage.get_team, reference_id)
        elif reference_id.startswith("SPR-"):
            record = await asyncio.to_thread(self._storage.get_sponsor, reference_id)
        else:
            record = None
        if record is None:
            raise RecordNotFound(f"No registration found for reference {reference_id}")

        previous = record.payment_status
        record.payment_status = _advance_payment(previous, target)
        record.updated_at = self._now()
        if target == "completed":
            record.paid_at = record.updated_at
            if transaction_id:
                record.transaction_id = transaction_id

        if isinstance(record, Team):
            await asyncio.to_thread(self._storage.save_team, record)
        else:
            await asyncio.to_thread(self._storage.save_sponsor, record)
        log.info(
            "Payment for %s moved %s -> %s", reference_id, previous, record.payment_status
        )

        if target == "completed" and self._notifier is not None:
            await dispatch_best_effort(
                f"payment {reference_id}",
                [self._notifier.send_payment_confirmation(record)],
                timeout=self._notification_timeout,
            )
        return record


__all__ = ["PAYMENT_EVENTS", "RegistrationStatusService"]
