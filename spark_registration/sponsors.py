from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime

from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    DuplicateRegistration,
    InvalidAmount,
    PersistenceError,
    RegistrationError,
)
from .models import Sponsor, format_timestamp, generate_sponsor_id
from .notifications import (
    RegistrationNotifier,
    dispatch_best_effort,
    sponsor_payment_instructions,
)
from .payments import PaymentSettings
from .storage import RegistrationStorage
from .tiers import resolve_sponsor_tier
from .validation import (
    normalize_email,
    optional_text,
    parse_amount,
    parse_payment_method,
    require_fields,
)
from .workflow import SubmissionResult

log = logging.getLogger(__name__)

SPONSOR_REQUIRED_FIELDS = (
    "companyName",
    "contactPerson",
    "email",
    "phone",
    "tier",
    "amount",
    "paymentMethod",
)
DUPLICATE_SPONSOR_MESSAGE = (
    "A sponsorship registration already exists for this email and tier combination"
)


class SponsorRegistrationWorkflow:
    def __init__(
        self,
        storage: RegistrationStorage,
        notifier: RegistrationNotifier,
        *,
        clock: Callable[[], datetime] | None = None,
        payment_settings: PaymentSettings | None = None,
        notification_timeout: float = 10.0,
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._clock = clock or (lambda: datetime.now(UTC))
        self._payment_settings = payment_settings or PaymentSettings()
        self._notification_timeout = notification_timeout

    async def submit(self, payload: Mapping[str, object]) -> SubmissionResult:
        try:
            sponsor = await self._register(payload)
        except RegistrationError as exc:
            if exc.transient:
                log.error("Sponsor registration failed: %s", exc.kind)
            else:
                log.warning(
                    "Sponsor registration rejected (%s): %s", exc.kind, exc.message
                )
            return SubmissionResult.failed(exc)

        await dispatch_best_effort(
            f"sponsor {sponsor.sponsor_id}",
            [
                self._notifier.send_sponsor_confirmation(sponsor),
                self._notifier.send_sponsor_admin_alert(sponsor),
            ],
            timeout=self._notification_timeout,
        )
        return SubmissionResult.succeeded(
            "Sponsor registration saved successfully",
            sponsor.sponsor_id,
            sponsor_payment_instructions(sponsor, self._payment_settings),
            reference_key="sponsorId",
        )

    async def _register(self, payload: Mapping[str, object]) -> Sponsor:
        values = require_fields(
            payload, SPONSOR_REQUIRED_FIELDS, message="Missing required fields"
        )
        email = normalize_email(values["email"])
        payment_method = parse_payment_method(values["paymentMethod"])
        policy = resolve_sponsor_tier(values["tier"])
        amount = parse_amount(values["amount"])
        if amount != policy.amount:
            raise InvalidAmount(policy.tier_id, amount)

        try:
            existing = await asyncio.to_thread(
                self._storage.find_active_sponsor,
                email,
                policy.tier_id,
                values["companyName"],
            )
        except (BotoCoreError, ClientError) as exc:
            log.error("Sponsor duplicate lookup failed for %s: %s", email, exc)
            raise PersistenceError() from exc
        if existing is not None:
            raise DuplicateRegistration(DUPLICATE_SPONSOR_MESSAGE)

        submitted_at = self._clock()
        sponsor = Sponsor(
            sponsor_id=generate_sponsor_id(int(submitted_at.timestamp() * 1000)),
            company_name=values["companyName"],
            contact_person=values["contactPerson"],
            email=email,
            phone=values["phone"],
            tier=policy.tier_id,
            amount=policy.amount,
            payment_method=payment_method,
            created_at=format_timestamp(submitted_at),
            address=optional_text(payload, "address"),
            website=optional_text(payload, "website"),
            comments=optional_text(payload, "comments"),
        )
        try:
            await asyncio.to_thread(self._storage.save_sponsor, sponsor)
        except (BotoCoreError, ClientError) as exc:
            log.error("Failed to persist sponsor %s: %s", sponsor.sponsor_id, exc)
            raise PersistenceError() from exc

        log.info(
            "Registered %s sponsor %s (%s)",
            policy.display_name,
            sponsor.company_name,
            sponsor.sponsor_id,
        )
        return sponsor


__all__ = [
    "SPONSOR_REQUIRED_FIELDS",
    "DUPLICATE_SPONSOR_MESSAGE",
    "SponsorRegistrationWorkflow",
]
