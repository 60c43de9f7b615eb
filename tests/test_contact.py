import asyncio
import smtplib
from unittest import mock

import pytest

from spark_registration.config import EmailConfig
from spark_registration.contact import (
    CONTACT_SUCCESS_MESSAGE,
    ContactFormHandler,
    parse_contact_message,
)
from spark_registration.notifications import RegistrationNotifier, SmtpMailer
from spark_registration.payments import PaymentSettings


def contact_payload(**overrides) -> dict[str, object]:
    payload: dict[str, object] = {
        "firstName": " Ada ",
        "lastName": "Lovelace",
        "email": "ADA@Example.com",
        "subject": "Volunteer",
        "message": "  I would like to help.  ",
    }
    payload.update(overrides)
    return payload


def test_parse_contact_message_trims_and_normalizes():
    message = parse_contact_message(contact_payload())

    assert message.first_name == "Ada"
    assert message.email == "ada@example.com"
    assert message.subject == "volunteer"
    assert message.subject_label == "Volunteer Opportunities"
    assert message.message == "I would like to help."
    assert message.phone == ""


@pytest.mark.asyncio
async def test_contact_sends_staff_message_and_auto_reply(notifier):
    handler = ContactFormHandler(notifier)

    result = await handler.submit(contact_payload(phone="317-555-0123"))

    assert result.success
    assert result.message == CONTACT_SUCCESS_MESSAGE
    assert sorted(notifier.kinds()) == ["auto_reply", "contact"]
    assert notifier.sent[0][1].phone == "317-555-0123"


@pytest.mark.asyncio
async def test_contact_validation_errors(notifier):
    handler = ContactFormHandler(notifier)

    missing = await handler.submit(contact_payload(message=""))
    invalid = await handler.submit(contact_payload(email="ada@example"))

    assert missing.error_kind == "MissingRequiredField"
    assert missing.message == "Please fill in all required fields"
    assert invalid.error_kind == "InvalidFieldValue"
    assert invalid.message == "Please enter a valid email address"
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_contact_delivery_failure_is_reported(notifier):
    notifier.failing = {"contact"}
    handler = ContactFormHandler(notifier)

    result = await handler.submit(contact_payload())

    assert not result.success
    assert result.error_kind == "DeliveryFailure"
    assert result.transient


class HangingNotifier:
    async def send_contact_message(self, message) -> None:
        await asyncio.sleep(5)

    async def send_contact_auto_reply(self, message) -> None:
        return None


@pytest.mark.asyncio
async def test_contact_delivery_timeout():
    handler = ContactFormHandler(HangingNotifier(), timeout=0.05)

    result = await handler.submit(contact_payload())

    assert result.error_kind == "DeliveryFailure"


class BrokenNotifier:
    async def send_contact_message(self, message) -> None:
        raise IndexError("no recipients")

    async def send_contact_auto_reply(self, message) -> None:
        return None


@pytest.mark.asyncio
async def test_unexpected_delivery_error_is_reported_as_delivery_failure():
    handler = ContactFormHandler(BrokenNotifier())

    result = await handler.submit(contact_payload())

    assert not result.success
    assert result.error_kind == "DeliveryFailure"


@pytest.mark.asyncio
async def test_contact_without_configured_recipient_fails_delivery(monkeypatch):
    config = EmailConfig(
        enabled=True,
        smtp_host="smtp.example.com",
        smtp_port=465,
        username=None,
        password=None,
        admin_recipients=[],
    )
    client = mock.MagicMock()
    client.__enter__.return_value = client
    monkeypatch.setattr(smtplib, "SMTP_SSL", mock.Mock(return_value=client))
    mailer = SmtpMailer(config)
    handler = ContactFormHandler(
        RegistrationNotifier(config, PaymentSettings(), mailer=mailer)
    )

    result = await handler.submit(contact_payload())

    assert result.error_kind == "DeliveryFailure"
