#!/usr/bin/env python3
"""List team or sponsor registrations stored in DynamoDB.

Prints one line per registration, or the raw records with ``--json``.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import pathlib
import sys
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:  # pragma: no cover - simple environment setup
    sys.path.insert(0, str(ROOT_DIR))

from spark_registration.models import REGISTRATION_STATUSES, Sponsor, Team
from spark_registration.payments import format_amount
from spark_registration.storage import RegistrationStorage

log = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--table",
        default=os.getenv("REGISTRATION_TABLE_NAME"),
        help="DynamoDB table name (defaults to REGISTRATION_TABLE_NAME)",
    )
    parser.add_argument(
        "--region",
        default=os.getenv("AWS_REGION"),
        help="AWS region (defaults to boto3's resolution order)",
    )
    parser.add_argument("--profile", help="Optional AWS profile to use")
    parser.add_argument(
        "--sponsors",
        action="store_true",
        help="List sponsors instead of teams",
    )
    parser.add_argument(
        "--status",
        choices=REGISTRATION_STATUSES,
        help="Only list teams with this registration status",
    )
    parser.add_argument("--json", action="store_true", help="Emit JSON records")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO), format="%(message)s"
    )


def describe_team(team: Team) -> str:
    return (
        f"{team.team_id}  {team.team_name} ({team.tier_display_name}, "
        f"{team.gender_display_name})  coach={team.coach_email}  "
        f"players={team.player_count}  fee={format_amount(team.registration_fee)}  "
        f"payment={team.payment_method}/{team.payment_status}  "
        f"status={team.registration_status}"
    )


def describe_sponsor(sponsor: Sponsor) -> str:
    return (
        f"{sponsor.sponsor_id}  {sponsor.company_name} ({sponsor.tier_display_name})  "
        f"contact={sponsor.email}  amount={format_amount(sponsor.amount)}  "
        f"payment={sponsor.payment_method}/{sponsor.payment_status}"
    )


def _json_default(value: Any) -> Any:
    return str(value)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    if not args.table:
        raise SystemExit("No DynamoDB table specified; pass --table or set REGISTRATION_TABLE_NAME")

    session_kwargs: dict[str, Any] = {}
    if args.profile:
        session_kwargs["profile_name"] = args.profile
    if args.region:
        session_kwargs["region_name"] = args.region
    session = boto3.Session(**session_kwargs)
    storage = RegistrationStorage(session.resource("dynamodb").Table(args.table))

    try:
        if args.sponsors:
            records: list[Team] | list[Sponsor] = storage.list_sponsors()
        else:
            records = storage.list_teams(registration_status=args.status)
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network failure
        log.error("AWS request failed: %s", exc)
        raise SystemExit(2) from exc

    if args.json:
        print(
            json.dumps(
                [record.to_item() for record in records],
                indent=2,
                default=_json_default,
            )
        )
        return

    for record in records:
        if isinstance(record, Team):
            print(describe_team(record))
        else:
            print(describe_sponsor(record))
    log.info("%d registration(s) listed", len(records))


if __name__ == "__main__":
    main()
