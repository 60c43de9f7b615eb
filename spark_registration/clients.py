"""Construct AWS, SMTP and Discord collaborators from :class:`AppConfig`."""

from __future__ import annotations

from dataclasses import dataclass

import boto3

from .config import AppConfig
from .contact import ContactFormHandler
from .notifications import DiscordAdminWebhook, RegistrationNotifier, SmtpMailer
from .roster import RosterBuilder
from .sponsors import SponsorRegistrationWorkflow
from .status import RegistrationStatusService
from .storage import RegistrationStorage
from .uploads import LocalUploadStore, S3UploadStore, UploadStore
from .workflow import TeamRegistrationWorkflow


def build_table(config: AppConfig):
    dynamodb = boto3.resource("dynamodb", region_name=config.aws_region)
    return dynamodb.Table(config.table_name)


def build_upload_store(config: AppConfig) -> UploadStore:
    uploads = config.uploads
    if uploads.backend == "s3":
        s3 = boto3.client("s3", region_name=config.aws_region)
        return S3UploadStore(s3, uploads.bucket or "", uploads.prefix)
    return LocalUploadStore(uploads.directory)


def build_notifier(config: AppConfig) -> RegistrationNotifier:
    mailer = SmtpMailer(config.email) if config.email.enabled else None
    webhook = (
        DiscordAdminWebhook(config.admin_webhook_url)
        if config.admin_webhook_url
        else None
    )
    return RegistrationNotifier(
        config.email, config.payments, mailer=mailer, webhook=webhook
    )


@dataclass(slots=True)
class Services:
    storage: RegistrationStorage
    teams: TeamRegistrationWorkflow
    sponsors: SponsorRegistrationWorkflow
    contact: ContactFormHandler
    status: RegistrationStatusService


def build_services(config: AppConfig) -> Services:
    storage = RegistrationStorage(build_table(config))
    notifier = build_notifier(config)
    timeout = config.notification_timeout
    return Services(
        storage=storage,
        teams=TeamRegistrationWorkflow(
            storage,
            RosterBuilder(build_upload_store(config)),
            notifier,
            event_timezone=config.event_timezone,
            payment_settings=config.payments,
            notification_timeout=timeout,
        ),
        sponsors=SponsorRegistrationWorkflow(
            storage,
            notifier,
            payment_settings=config.payments,
            notification_timeout=timeout,
        ),
        contact=ContactFormHandler(notifier, timeout=timeout),
        status=RegistrationStatusService(
            storage, notifier, notification_timeout=timeout
        ),
    )


__all__ = [
    "Services",
    "build_table",
    "build_upload_store",
    "build_notifier",
    "build_services",
]
