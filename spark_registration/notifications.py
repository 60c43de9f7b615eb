"""Email and staff-alert delivery for registrations and contact messages."""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
import ssl
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

import discord

from .config import EmailConfig
from .errors import NotificationFailure
from .models import ContactMessage, Sponsor, Team
from .payments import (
    PaymentInstructions,
    PaymentSettings,
    format_amount,
    resolve_payment_instructions,
)
from .tiers import resolve_sponsor_tier


log = logging.getLogger(__name__)

EVENT_NAME = "Alhuda SPARK 2025"
EVENT_FOOTER = (
    "Alhuda SPARK Basketball Tournament 2025 | November 1-2, 2025 | "
    "Mojo Up, Noblesville, IN"
)
SUPPORT_EMAIL = "teams@alhudaspark.org"
SUPPORT_PHONE = "(317) 537-7245"

PAYMENT_FOLLOW_UP = {
    "check": "Watch for check arrival via mail.",
    "zelle": "Check Zelle account for incoming transfer.",
    "venmo": "Check Venmo account for incoming payment.",
    "zeffy": "Payment is handled by the hosted checkout; watch for its confirmation.",
}


class NotificationSender(Protocol):
    async def send_coach_confirmation(self, team: Team) -> None: ...

    async def send_admin_alert(self, team: Team) -> None: ...


@dataclass(slots=True)
class OutgoingEmail:
    to: list[str]
    subject: str
    text: str
    html: str
    reply_to: str | None = None
    sender_name: str | None = None


def team_check_memo(team: Team) -> str:
    return f"Team Registration - {team.team_name}"


def sponsor_check_memo(sponsor: Sponsor) -> str:
    return f"{sponsor.tier_display_name} Sponsorship - {sponsor.company_name}"


def team_payment_instructions(
    team: Team, settings: PaymentSettings
) -> PaymentInstructions | None:
    return resolve_payment_instructions(
        team.payment_method,
        team.registration_fee,
        team.team_id,
        team.team_name,
        check_memo=team_check_memo(team),
        settings=settings,
    )


def sponsor_payment_instructions(
    sponsor: Sponsor, settings: PaymentSettings
) -> PaymentInstructions | None:
    return resolve_payment_instructions(
        sponsor.payment_method,
        sponsor.amount,
        sponsor.sponsor_id,
        sponsor.company_name,
        check_memo=sponsor_check_memo(sponsor),
        settings=settings,
    )


# ---------- Rendering ----------


def _html_rows(rows: Sequence[tuple[str, str]]) -> str:
    return "".join(
        f"<tr><td><strong>{html.escape(label)}</strong></td>"
        f"<td>{html.escape(value)}</td></tr>"
        for label, value in rows
    )


def _html_table(rows: Sequence[tuple[str, str]]) -> str:
    return f"<table>{_html_rows(rows)}</table>"


def _text_rows(rows: Sequence[tuple[str, str]]) -> str:
    return "\n".join(f"{label}: {value}" for label, value in rows)


def _wrap_html(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body>"
        f"<h2>{html.escape(title)}</h2>{body}"
        f"<p><small>{html.escape(EVENT_FOOTER)}</small></p>"
        "</body></html>"
    )


def _instructions_html(instructions: PaymentInstructions | None) -> str:
    if instructions is None:
        return ""
    return (
        f"<h3>{html.escape(instructions.title)}</h3>"
        f"<p>{html.escape(instructions.text)}</p>"
        f"{_html_table(list(instructions.details))}"
    )


def _team_rows(team: Team) -> list[tuple[str, str]]:
    return [
        ("Team ID", team.team_id),
        ("Team Name", team.team_name),
        ("Organization", team.organization),
        ("City", team.city),
        ("Tier", team.tier_display_name),
        ("Gender", team.gender_display_name),
        ("Player Count", str(team.player_count)),
        ("Registration Fee", format_amount(team.registration_fee)),
        ("Payment Method", team.payment_method.capitalize()),
    ]


def _emergency_rows(team: Team) -> list[tuple[str, str]]:
    contact = team.emergency_contact
    return [
        ("Name", contact.name),
        ("Phone", contact.phone),
        ("Relationship", contact.relationship),
    ]


def render_coach_confirmation(
    team: Team, instructions: PaymentInstructions | None
) -> tuple[str, str, str]:
    subject = f"Team Registration Confirmation - {team.team_name} - {EVENT_NAME}"
    roster_text = "\n".join(
        f"{index}. {player.name} ({player.age_at_registration} years)"
        for index, player in enumerate(team.players, start=1)
    )
    next_steps = [
        "Complete your payment using the instructions provided",
        "Our team will review your registration and player documents",
        "You'll receive confirmation once payment is received and documents are approved",
        "Tournament schedule and group assignments will be sent closer to the event date",
    ]
    text_parts = [
        f"Dear Coach {team.coach_name},",
        "",
        f"Thank you for registering {team.team_name} for {EVENT_NAME}!",
        "",
        _text_rows(_team_rows(team)),
    ]
    if instructions is not None:
        text_parts.extend(["", instructions.as_text()])
    text_parts.extend(
        [
            "",
            f"Registered Players ({team.player_count})",
            roster_text,
            "",
            "Emergency Contact",
            _text_rows(_emergency_rows(team)),
            "",
            "Next Steps",
            *(f"{index}. {step}" for index, step in enumerate(next_steps, start=1)),
            "",
            f"Questions? Email {SUPPORT_EMAIL} or call {SUPPORT_PHONE}.",
        ]
    )

    roster_html = _html_table(
        [
            (f"{index}. {player.name}", f"{player.age_at_registration} years")
            for index, player in enumerate(team.players, start=1)
        ]
    )
    body = (
        f"<p>Dear Coach {html.escape(team.coach_name)},</p>"
        f"<p>Thank you for registering <strong>{html.escape(team.team_name)}</strong> "
        f"for {EVENT_NAME}!</p>"
        f"{_html_table(_team_rows(team))}"
        f"{_instructions_html(instructions)}"
        f"<h3>Registered Players ({team.player_count})</h3>{roster_html}"
        f"<h3>Emergency Contact</h3>{_html_table(_emergency_rows(team))}"
        "<h3>Next Steps</h3><ol>"
        + "".join(f"<li>{html.escape(step)}</li>" for step in next_steps)
        + "</ol>"
        f"<p>Email: {SUPPORT_EMAIL}<br>Phone: {SUPPORT_PHONE}</p>"
    )
    return subject, "\n".join(text_parts), _wrap_html("Team Registration Confirmed!", body)


def render_team_admin_alert(team: Team) -> tuple[str, str, str]:
    subject = f"New Team Registration - {team.team_name} ({team.tier_display_name})"
    coach_rows = [
        ("Coach Name", team.coach_name),
        ("Coach Email", team.coach_email),
        ("Coach Phone", team.coach_phone),
    ]
    roster_rows = [
        (
            f"{index}. {player.name}",
            f"age {player.age_at_registration}; ID photo: "
            + (player.identity_photo.original_name if player.identity_photo else "none"),
        )
        for index, player in enumerate(team.players, start=1)
    ]
    extra_rows: list[tuple[str, str]] = []
    if team.special_requirements:
        extra_rows.append(("Special Requirements", team.special_requirements))
    if team.comments:
        extra_rows.append(("Additional Comments", team.comments))
    follow_up = PAYMENT_FOLLOW_UP.get(team.payment_method, "")

    text = "\n\n".join(
        part
        for part in [
            _text_rows(_team_rows(team) + [("Registration Date", team.created_at)]),
            _text_rows(coach_rows),
            "Emergency Contact\n" + _text_rows(_emergency_rows(team)),
            "Players\n" + _text_rows(roster_rows),
            _text_rows(extra_rows),
            f"Action required: {follow_up} Player ID photos need verification.",
        ]
        if part
    )
    body = (
        f"<h3>Team Information</h3>{_html_table(_team_rows(team))}"
        f"<h3>Coach Information</h3>{_html_table(coach_rows)}"
        f"<h3>Emergency Contact</h3>{_html_table(_emergency_rows(team))}"
        f"<h3>Players</h3>{_html_table(roster_rows)}"
        + (_html_table(extra_rows) if extra_rows else "")
        + f"<p><strong>Action Required:</strong> {html.escape(follow_up)} "
        "Player ID photos need verification.</p>"
    )
    return subject, text, _wrap_html("New Team Registration", body)


def _sponsor_rows(sponsor: Sponsor) -> list[tuple[str, str]]:
    rows = [
        ("Sponsor ID", sponsor.sponsor_id),
        ("Company", sponsor.company_name),
        ("Contact Person", sponsor.contact_person),
        ("Email", sponsor.email),
        ("Phone", sponsor.phone),
        ("Tier", sponsor.tier_display_name),
        ("Amount", format_amount(sponsor.amount)),
        ("Payment Method", sponsor.payment_method.capitalize()),
    ]
    if sponsor.address:
        rows.append(("Address", sponsor.address))
    if sponsor.website:
        rows.append(("Website", sponsor.website))
    return rows


def render_sponsor_confirmation(
    sponsor: Sponsor, instructions: PaymentInstructions | None
) -> tuple[str, str, str]:
    policy = resolve_sponsor_tier(sponsor.tier)
    subject = (
        f"Thank You for Your {policy.display_name} Sponsorship - {EVENT_NAME}"
    )
    text_parts = [
        f"Dear {sponsor.contact_person},",
        "",
        f"Thank you for sponsoring {EVENT_NAME} at the {policy.display_name} level.",
        "",
        _text_rows(_sponsor_rows(sponsor)),
    ]
    if instructions is not None:
        text_parts.extend(["", instructions.as_text()])
    text_parts.extend(["", "Your sponsorship benefits:"])
    text_parts.extend(f"- {benefit}" for benefit in policy.benefits)
    body = (
        f"<p>Dear {html.escape(sponsor.contact_person)},</p>"
        f"{_html_table(_sponsor_rows(sponsor))}"
        f"{_instructions_html(instructions)}"
        "<h3>Your Sponsorship Benefits</h3><ul>"
        + "".join(f"<li>{html.escape(benefit)}</li>" for benefit in policy.benefits)
        + "</ul>"
    )
    return subject, "\n".join(text_parts), _wrap_html("Thank You!", body)


def render_sponsor_admin_alert(sponsor: Sponsor) -> tuple[str, str, str]:
    subject = (
        f"New {sponsor.tier_display_name} Sponsor Registration - {sponsor.company_name}"
    )
    rows = _sponsor_rows(sponsor)
    if sponsor.comments:
        rows.append(("Comments", sponsor.comments))
    follow_up = PAYMENT_FOLLOW_UP.get(sponsor.payment_method, "")
    text = f"{_text_rows(rows)}\n\nAction required: {follow_up}"
    body = (
        f"{_html_table(rows)}"
        f"<p><strong>Action Required:</strong> {html.escape(follow_up)}</p>"
    )
    return subject, text, _wrap_html("New Sponsor Registration", body)


def render_payment_confirmation(
    name: str, reference_id: str, amount: str, transaction_id: str | None
) -> tuple[str, str, str]:
    subject = f"Payment Confirmed - {EVENT_NAME}"
    rows = [("Reference", reference_id), ("Amount", amount)]
    if transaction_id:
        rows.append(("Transaction ID", transaction_id))
    text = f"Dear {name},\n\nWe have received your payment.\n\n{_text_rows(rows)}"
    body = (
        f"<p>Dear {html.escape(name)},</p><p>We have received your payment.</p>"
        f"{_html_table(rows)}"
    )
    return subject, text, _wrap_html("Payment Confirmed", body)


# ---------- Transports ----------


class SmtpMailer:
    def __init__(self, config: EmailConfig) -> None:
        self._config = config

    def _build(self, email: OutgoingEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr(
            (email.sender_name or self._config.sender_name, self._config.sender_address or "")
        )
        message["To"] = ", ".join(email.to)
        message["Subject"] = email.subject
        if email.reply_to:
            message["Reply-To"] = email.reply_to
        message.set_content(email.text)
        message.add_alternative(email.html, subtype="html")
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        host = self._config.smtp_host
        port = self._config.smtp_port
        if port == 465:
            client: smtplib.SMTP = smtplib.SMTP_SSL(
                host, port, context=ssl.create_default_context(), timeout=30
            )
        else:
            client = smtplib.SMTP(host, port, timeout=30)
        with client:
            if port != 465:
                client.starttls(context=ssl.create_default_context())
            if self._config.username and self._config.password:
                client.login(self._config.username, self._config.password)
            client.send_message(message)

    async def send(self, email: OutgoingEmail) -> None:
        if not email.to:
            raise NotificationFailure(f"No recipients for '{email.subject}'")
        message = self._build(email)
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationFailure(
                f"SMTP delivery failed for '{email.subject}': {exc}"
            ) from exc


class DiscordAdminWebhook:
    """Posts staff alerts to a Discord channel webhook."""

    def __init__(self, url: str) -> None:
        self._url = url

    def _send_sync(self, embed: discord.Embed) -> None:
        webhook = discord.SyncWebhook.from_url(self._url)
        webhook.send(embed=embed, username="SPARK Registrations")

    async def send(self, title: str, rows: Sequence[tuple[str, str]]) -> None:
        embed = discord.Embed(
            title=title,
            color=discord.Color.gold(),
            timestamp=datetime.now(UTC),
        )
        for label, value in rows[:25]:
            embed.add_field(name=label, value=(value or "-")[:1024], inline=True)
        try:
            await asyncio.to_thread(self._send_sync, embed)
        except (discord.DiscordException, ValueError) as exc:
            raise NotificationFailure(f"Discord webhook delivery failed: {exc}") from exc


class RegistrationNotifier:
    """Delivers registration and contact notifications.

    When email is disabled the rendered subject lines are only logged, which
    keeps local development free of SMTP credentials.
    """

    def __init__(
        self,
        config: EmailConfig,
        payment_settings: PaymentSettings,
        *,
        mailer: SmtpMailer | None = None,
        webhook: DiscordAdminWebhook | None = None,
    ) -> None:
        self._config = config
        self._payment_settings = payment_settings
        self._mailer = mailer
        self._webhook = webhook

    async def _deliver(self, email: OutgoingEmail) -> None:
        if not self._config.enabled or self._mailer is None:
            log.info("[EMAIL DISABLED] %s -> %s", email.subject, ", ".join(email.to))
            return
        await self._mailer.send(email)

    async def _alert_staff(
        self, subject: str, text: str, body: str, rows: Sequence[tuple[str, str]]
    ) -> None:
        deliveries = [
            self._deliver(
                OutgoingEmail(
                    to=list(self._config.admin_recipients),
                    subject=subject,
                    text=text,
                    html=body,
                    sender_name=f"{self._config.sender_name} System",
                )
            )
        ]
        if self._webhook is not None:
            deliveries.append(self._webhook.send(subject, rows))
        results = await asyncio.gather(*deliveries, return_exceptions=True)
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            raise NotificationFailure(
                "; ".join(str(error) for error in errors)
            ) from errors[0]

    async def send_coach_confirmation(self, team: Team) -> None:
        instructions = team_payment_instructions(team, self._payment_settings)
        subject, text, body = render_coach_confirmation(team, instructions)
        await self._deliver(
            OutgoingEmail(to=[team.coach_email], subject=subject, text=text, html=body)
        )

    async def send_admin_alert(self, team: Team) -> None:
        subject, text, body = render_team_admin_alert(team)
        await self._alert_staff(subject, text, body, _team_rows(team))

    async def send_sponsor_confirmation(self, sponsor: Sponsor) -> None:
        instructions = sponsor_payment_instructions(sponsor, self._payment_settings)
        subject, text, body = render_sponsor_confirmation(sponsor, instructions)
        await self._deliver(
            OutgoingEmail(to=[sponsor.email], subject=subject, text=text, html=body)
        )

    async def send_sponsor_admin_alert(self, sponsor: Sponsor) -> None:
        subject, text, body = render_sponsor_admin_alert(sponsor)
        await self._alert_staff(subject, text, body, _sponsor_rows(sponsor))

    async def send_payment_confirmation(self, record: Team | Sponsor) -> None:
        if isinstance(record, Team):
            name, email = record.coach_name, record.coach_email
            reference, amount = record.team_id, record.registration_fee
        else:
            name, email = record.contact_person, record.email
            reference, amount = record.sponsor_id, record.amount
        subject, text, body = render_payment_confirmation(
            name, reference, format_amount(amount), record.transaction_id
        )
        await self._deliver(
            OutgoingEmail(to=[email], subject=subject, text=text, html=body)
        )

    async def send_contact_message(self, message: ContactMessage) -> None:
        recipients = (
            [self._config.sender_address]
            if self._config.sender_address
            else list(self._config.admin_recipients[:1])
        )
        rows = message.rows()
        await self._deliver(
            OutgoingEmail(
                to=recipients,
                subject=f"Website Contact: {message.subject_label}",
                text=_text_rows(rows),
                html=_wrap_html("New Contact Form Submission", _html_table(rows)),
                reply_to=message.email,
                sender_name=f"{message.first_name} {message.last_name}",
            )
        )

    async def send_contact_auto_reply(self, message: ContactMessage) -> None:
        text = (
            f"Dear {message.first_name},\n\n"
            "Thank you for reaching out to Alhuda SPARK! We have received your "
            f"message regarding {message.subject_label} and will respond within "
            f"24 hours.\n\nUrgent questions: {SUPPORT_PHONE}"
        )
        body = (
            f"<p>Dear {html.escape(message.first_name)},</p>"
            "<p>Thank you for reaching out to Alhuda SPARK! We have received your "
            f"message regarding <strong>{html.escape(message.subject_label)}</strong> "
            "and will respond within 24 hours.</p>"
            f"<p>Urgent questions: {SUPPORT_PHONE}</p>"
        )
        await self._deliver(
            OutgoingEmail(
                to=[message.email],
                subject="Thank you for contacting Alhuda SPARK",
                text=text,
                html=_wrap_html("Thank You for Contacting Us", body),
            )
        )


async def dispatch_best_effort(
    description: str, coros: Sequence, *, timeout: float
) -> int:
    """Await notification coroutines under a timeout; log and count failures."""
    if not coros:
        return 0
    try:
        results = await asyncio.wait_for(
            asyncio.gather(*coros, return_exceptions=True), timeout=timeout
        )
    except TimeoutError:
        log.warning("Notifications for %s timed out after %.1fs", description, timeout)
        return len(coros)
    failures = 0
    for result in results:
        if isinstance(result, BaseException):
            failures += 1
            log.warning("Notification for %s failed: %s", description, result)
    return failures


__all__ = [
    "NotificationSender",
    "OutgoingEmail",
    "SmtpMailer",
    "DiscordAdminWebhook",
    "RegistrationNotifier",
    "team_payment_instructions",
    "sponsor_payment_instructions",
    "render_coach_confirmation",
    "render_team_admin_alert",
    "render_sponsor_confirmation",
    "render_sponsor_admin_alert",
    "render_payment_confirmation",
    "dispatch_best_effort",
]
