from unittest import mock

import boto3
import pytest

from spark_registration import clients
from spark_registration.config import AppConfig, EmailConfig, UploadConfig
from spark_registration.notifications import DiscordAdminWebhook, SmtpMailer
from spark_registration.payments import PaymentSettings
from spark_registration.uploads import LocalUploadStore, S3UploadStore


def app_config(*, backend: str = "local", email: bool = False, webhook: str | None = None):
    return AppConfig(
        table_name="spark-registrations",
        aws_region="us-east-2",
        uploads=UploadConfig(
            backend=backend, directory="uploads", bucket="spark-ids", prefix="ids"
        ),
        email=EmailConfig(
            enabled=email,
            smtp_host="smtp.example.com",
            smtp_port=465,
            username="noreply@alhudaspark.org",
            password="secret",
        ),
        payments=PaymentSettings(),
        admin_webhook_url=webhook,
        event_timezone="America/Indiana/Indianapolis",
        notification_timeout=5.0,
    )


@pytest.fixture
def fake_boto3(monkeypatch):
    resource = mock.Mock()
    client = mock.Mock()
    monkeypatch.setattr(boto3, "resource", mock.Mock(return_value=resource))
    monkeypatch.setattr(boto3, "client", mock.Mock(return_value=client))
    return resource, client


def test_build_upload_store_selects_backend(fake_boto3):
    assert isinstance(clients.build_upload_store(app_config()), LocalUploadStore)

    store = clients.build_upload_store(app_config(backend="s3"))
    assert isinstance(store, S3UploadStore)
    boto3.client.assert_called_once_with("s3", region_name="us-east-2")


def test_build_notifier_wires_optional_transports():
    plain = clients.build_notifier(app_config())
    assert plain._mailer is None
    assert plain._webhook is None

    full = clients.build_notifier(
        app_config(email=True, webhook="https://discord.test/api/webhooks/1/x")
    )
    assert isinstance(full._mailer, SmtpMailer)
    assert isinstance(full._webhook, DiscordAdminWebhook)


def test_build_services_shares_storage(fake_boto3):
    resource, _ = fake_boto3

    services = clients.build_services(app_config())

    resource.Table.assert_called_once_with("spark-registrations")
    assert services.storage._table is resource.Table.return_value
    assert services.teams._storage is services.storage
    assert services.status._storage is services.storage
    assert services.teams._notification_timeout == 5.0
