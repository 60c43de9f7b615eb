import logging
import smtplib
from datetime import date
from decimal import Decimal
from unittest import mock

import discord
import pytest

from spark_registration.config import EmailConfig
from spark_registration.errors import NotificationFailure
from spark_registration.models import (
    ContactMessage,
    EmergencyContact,
    Player,
    Sponsor,
    StoredUpload,
    Team,
)
from spark_registration.notifications import (
    DiscordAdminWebhook,
    OutgoingEmail,
    RegistrationNotifier,
    SmtpMailer,
    dispatch_best_effort,
    render_coach_confirmation,
    render_sponsor_confirmation,
    render_team_admin_alert,
    team_payment_instructions,
)
from spark_registration.payments import PaymentSettings


def email_config(enabled: bool = True, port: int = 465) -> EmailConfig:
    return EmailConfig(
        enabled=enabled,
        smtp_host="smtp.example.com",
        smtp_port=port,
        username="noreply@alhudaspark.org",
        password="secret",
        admin_recipients=["admin@alhudaspark.org", "ops@alhudaspark.org"],
    )


def sample_team(payment_method: str = "check") -> Team:
    players = [
        Player(f"Player <{i}>", date(2009, 5, 5), age_at_registration=16)
        for i in range(5)
    ]
    players[0].identity_photo = StoredUpload("k", "memory://k", "passport.png")
    return Team(
        team_id="TEAM-1-ABCDE",
        team_name="Falcons & Co",
        organization="Alhuda Academy",
        city="Indianapolis",
        tier="high_school",
        gender="boys",
        coach_name="Sam",
        coach_email="coach@example.com",
        coach_phone="555",
        players=players,
        emergency_contact=EmergencyContact("Pat", "556", "Parent"),
        registration_fee=Decimal("350"),
        payment_method=payment_method,
        created_at="2025-10-15T16:00:00.000000Z",
        special_requirements="Wheelchair access",
    )


def sample_sponsor() -> Sponsor:
    return Sponsor(
        sponsor_id="SPR-1-ABCDE",
        company_name="Acme",
        contact_person="Jo",
        email="jo@acme.test",
        phone="555",
        tier="diamond",
        amount=Decimal("10000"),
        payment_method="zelle",
        created_at="2025-10-15T16:00:00.000000Z",
    )


def test_coach_confirmation_contents():
    team = sample_team()
    instructions = team_payment_instructions(team, PaymentSettings())

    subject, text, html = render_coach_confirmation(team, instructions)

    assert subject == "Team Registration Confirmation - Falcons & Co - Alhuda SPARK 2025"
    assert "Team Registration - Falcons & Co" in text
    assert "1. Player <0> (16 years)" in text
    assert "Falcons &amp; Co" in html
    assert "Player &lt;0&gt;" in html
    assert "Payment by Check" in html


def test_admin_alert_mentions_follow_up_and_photos():
    subject, text, _ = render_team_admin_alert(sample_team("venmo"))

    assert subject == "New Team Registration - Falcons & Co (High School)"
    assert "Check Venmo account for incoming payment." in text
    assert "passport.png" in text
    assert "Wheelchair access" in text


def test_sponsor_confirmation_lists_benefits():
    subject, text, _ = render_sponsor_confirmation(sample_sponsor(), None)
    assert "Diamond Sponsorship" in subject
    assert "- Trophy presentation rights" in text


@pytest.mark.asyncio
async def test_disabled_email_only_logs(caplog):
    notifier = RegistrationNotifier(email_config(enabled=False), PaymentSettings())

    with caplog.at_level(logging.INFO, logger="spark_registration.notifications"):
        await notifier.send_coach_confirmation(sample_team())

    assert "[EMAIL DISABLED] Team Registration Confirmation" in caplog.text


@pytest.mark.asyncio
async def test_notifier_routes_messages_through_mailer():
    mailer = mock.AsyncMock(spec=SmtpMailer)
    notifier = RegistrationNotifier(email_config(), PaymentSettings(), mailer=mailer)

    await notifier.send_admin_alert(sample_team())
    await notifier.send_contact_message(
        ContactMessage("Ada", "L", "ada@example.com", "events", "Hello")
    )

    admin_email, contact_email = [call.args[0] for call in mailer.send.await_args_list]
    assert admin_email.to == ["admin@alhudaspark.org", "ops@alhudaspark.org"]
    assert contact_email.to == ["noreply@alhudaspark.org"]
    assert contact_email.reply_to == "ada@example.com"
    assert contact_email.subject == "Website Contact: Events & Programs"


@pytest.mark.asyncio
async def test_staff_alert_posts_to_webhook_and_reports_failures():
    mailer = mock.AsyncMock(spec=SmtpMailer)
    webhook = mock.AsyncMock(spec=DiscordAdminWebhook)
    webhook.send.side_effect = NotificationFailure("webhook down")
    notifier = RegistrationNotifier(
        email_config(), PaymentSettings(), mailer=mailer, webhook=webhook
    )

    with pytest.raises(NotificationFailure, match="webhook down"):
        await notifier.send_sponsor_admin_alert(sample_sponsor())

    mailer.send.assert_awaited_once()
    title, rows = webhook.send.await_args.args
    assert title.startswith("New Diamond Sponsor Registration")
    assert ("Company", "Acme") in rows


@pytest.mark.asyncio
async def test_smtp_mailer_sends_multipart_message(monkeypatch):
    client = mock.MagicMock()
    client.__enter__.return_value = client
    smtp_ssl = mock.Mock(return_value=client)
    monkeypatch.setattr(smtplib, "SMTP_SSL", smtp_ssl)

    await SmtpMailer(email_config()).send(
        OutgoingEmail(to=["coach@example.com"], subject="Hi", text="plain", html="<p>x</p>")
    )

    smtp_ssl.assert_called_once()
    client.login.assert_called_once_with("noreply@alhudaspark.org", "secret")
    message = client.send_message.call_args.args[0]
    assert message["To"] == "coach@example.com"
    assert message.is_multipart()


@pytest.mark.asyncio
async def test_smtp_failure_becomes_notification_failure(monkeypatch):
    client = mock.MagicMock()
    client.__enter__.return_value = client
    client.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
    monkeypatch.setattr(smtplib, "SMTP", mock.Mock(return_value=client))

    with pytest.raises(NotificationFailure):
        await SmtpMailer(email_config(port=587)).send(
            OutgoingEmail(to=["x@example.com"], subject="Hi", text="t", html="h")
        )
    client.starttls.assert_called_once()


@pytest.mark.asyncio
async def test_discord_webhook_sends_embed(monkeypatch):
    webhook = mock.Mock()
    from_url = mock.Mock(return_value=webhook)
    monkeypatch.setattr(discord.SyncWebhook, "from_url", from_url)

    await DiscordAdminWebhook("https://discord.test/api/webhooks/1/abc").send(
        "New Team Registration", [("Team", "Falcons"), ("Coach Email", "")]
    )

    from_url.assert_called_once_with("https://discord.test/api/webhooks/1/abc")
    embed = webhook.send.call_args.kwargs["embed"]
    assert embed.title == "New Team Registration"
    assert [(field.name, field.value) for field in embed.fields] == [
        ("Team", "Falcons"),
        ("Coach Email", "-"),
    ]


@pytest.mark.asyncio
async def test_dispatch_best_effort_counts_failures(caplog):
    async def ok():
        return None

    async def broken():
        raise NotificationFailure("nope")

    with caplog.at_level(logging.WARNING):
        failures = await dispatch_best_effort("team X", [ok(), broken()], timeout=1)

    assert failures == 1
    assert "Notification for team X failed: nope" in caplog.text
