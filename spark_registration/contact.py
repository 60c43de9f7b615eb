from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from .errors import DeliveryFailure, NotificationFailure, RegistrationError
from .models import ContactMessage
from .notifications import RegistrationNotifier
from .validation import normalize_email, optional_text, require_fields
from .workflow import SubmissionResult

log = logging.getLogger(__name__)

CONTACT_REQUIRED_FIELDS = ("firstName", "lastName", "email", "subject", "message")
CONTACT_SUCCESS_MESSAGE = (
    "Your message has been sent successfully! We'll get back to you soon."
)


def parse_contact_message(payload: Mapping[str, object]) -> ContactMessage:
    values = require_fields(
        payload,
        CONTACT_REQUIRED_FIELDS,
        message="Please fill in all required fields",
    )
    return ContactMessage(
        first_name=values["firstName"],
        last_name=values["lastName"],
        email=normalize_email(values["email"]),
        subject=values["subject"].lower(),
        message=values["message"],
        phone=optional_text(payload, "phone"),
    )


class ContactFormHandler:
    def __init__(self, notifier: RegistrationNotifier, *, timeout: float = 10.0) -> None:
        self._notifier = notifier
        self._timeout = timeout

    async def submit(self, payload: Mapping[str, object]) -> SubmissionResult:
        try:
            message = parse_contact_message(payload)
            await self._deliver(message)
        except RegistrationError as exc:
            log.warning("Contact form rejected (%s): %s", exc.kind, exc.message)
            return SubmissionResult.failed(exc)

        log.info(
            "Contact form submitted by %s - subject: %s", message.email, message.subject
        )
        return SubmissionResult.succeeded(CONTACT_SUCCESS_MESSAGE)

    async def _deliver(self, message: ContactMessage) -> None:
        try:
            results = await asyncio.wait_for(
                asyncio.gather(
                    self._notifier.send_contact_message(message),
                    self._notifier.send_contact_auto_reply(message),
                    return_exceptions=True,
                ),
                timeout=self._timeout,
            )
        except TimeoutError as exc:
            log.error("Contact email delivery timed out for %s", message.email)
            raise DeliveryFailure() from exc

        for result in results:
            if isinstance(result, NotificationFailure):
                log.error("Contact email delivery failed: %s", result)
                raise DeliveryFailure() from result
            if isinstance(result, Exception):
                log.exception("Unexpected contact email error", exc_info=result)
                raise DeliveryFailure() from result
            if isinstance(result, BaseException):
                raise result


__all__ = [
    "CONTACT_REQUIRED_FIELDS",
    "CONTACT_SUCCESS_MESSAGE",
    "ContactFormHandler",
    "parse_contact_message",
]
