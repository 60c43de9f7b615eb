#!/usr/bin/env python3
"""Update a team's registration status or record a payment outcome.

Examples::

    update_registration.py status TEAM-M1ABCD-X7Y8Z approved
    update_registration.py payment SPR-M1ABCD-X7Y8Z payment.completed --transaction 4411
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import sys

from botocore.exceptions import BotoCoreError, ClientError

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:  # pragma: no cover - simple environment setup
    sys.path.insert(0, str(ROOT_DIR))

from spark_registration.clients import build_notifier, build_table
from spark_registration.config import AppConfig
from spark_registration.errors import RegistrationError
from spark_registration.models import REGISTRATION_STATUSES
from spark_registration.status import PAYMENT_EVENTS, RegistrationStatusService
from spark_registration.storage import RegistrationStorage

log = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="Change a team's registration status")
    status.add_argument("team_id")
    status.add_argument("status", choices=REGISTRATION_STATUSES)

    payment = subparsers.add_parser("payment", help="Apply a payment event")
    payment.add_argument("reference_id", help="TEAM-... or SPR-... identifier")
    payment.add_argument("event", choices=sorted(PAYMENT_EVENTS))
    payment.add_argument("--transaction", help="Gateway or bank transaction id")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, service: RegistrationStatusService) -> str:
    if args.command == "status":
        team = await service.update_registration_status(args.team_id, args.status)
        return f"{team.team_id} registration status is now {team.registration_status}"
    record = await service.apply_payment_event(
        args.reference_id, args.event, args.transaction
    )
    return f"{args.reference_id} payment status is now {record.payment_status}"


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    config = AppConfig.load()
    service = RegistrationStatusService(
        RegistrationStorage(build_table(config)),
        build_notifier(config),
        notification_timeout=config.notification_timeout,
    )
    try:
        message = asyncio.run(run(args, service))
    except RegistrationError as exc:
        raise SystemExit(f"{exc.kind}: {exc.message}") from exc
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network failure
        log.error("AWS request failed: %s", exc)
        raise SystemExit(2) from exc
    print(message)


if __name__ == "__main__":
    main()
