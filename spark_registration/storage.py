from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, ClassVar

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from .errors import DuplicateRegistration
from .models import (
    ACTIVE_REGISTRATION_STATUSES,
    ACTIVE_SPONSOR_PAYMENT_STATUSES,
    ISO_FORMAT,
    Sponsor,
    Team,
    utc_now_iso,
)

log = logging.getLogger(__name__)

DUPLICATE_TEAM_MESSAGE = "A team with this name and coach email already exists"
STALE_CLAIM_AFTER = timedelta(minutes=15)


def _is_conditional_failure(exc: ClientError) -> bool:
    code = exc.response.get("Error", {}).get("Code")
    return code == "ConditionalCheckFailedException"


def _parse_timestamp(value: object) -> datetime | None:
    try:
        return datetime.strptime(str(value), ISO_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        return None


class TeamClaim:
    """Uniqueness marker for an active (coach email, team name) pair."""

    PK_VALUE: ClassVar[str] = "TEAM_CLAIMS"
    SK_TEMPLATE: ClassVar[str] = "CLAIM#%s#%s"
    ACTIVE: ClassVar[str] = "active"
    RELEASED: ClassVar[str] = "released"

    @classmethod
    def key(cls, coach_email: str, team_name: str) -> dict[str, str]:
        return {
            "pk": cls.PK_VALUE,
            "sk": cls.SK_TEMPLATE
            % (coach_email.strip().lower(), " ".join(team_name.split()).casefold()),
        }


class RegistrationStorage:
    def __init__(self, table, *, stale_claim_after: timedelta = STALE_CLAIM_AFTER) -> None:
        self._table = table
        self._stale_claim_after = stale_claim_after

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Registration table is not configured")

    def _query_all(self, pk_value: str, sk_prefix: str) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": Key("pk").eq(pk_value)
            & Key("sk").begins_with(sk_prefix),
            "Select": "ALL_ATTRIBUTES",
        }
        items: list[dict[str, Any]] = []
        while True:
            resp = self._table.query(**kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items

    # ----- Team claims -----
    def _claim_is_stale(self, claim: dict[str, Any]) -> bool:
        holder = self.get_team(str(claim.get("team_id", "")))
        if holder is not None:
            return holder.registration_status not in ACTIVE_REGISTRATION_STATUSES
        # A missing team may still be mid-create; only old claims are abandoned.
        claimed_at = _parse_timestamp(claim.get("claimed_at"))
        if claimed_at is None:
            return True
        return datetime.now(UTC) - claimed_at >= self._stale_claim_after

    def _take_over_claim(self, item: dict[str, object], team_id: str) -> bool:
        resp = self._table.get_item(Key={"pk": item["pk"], "sk": item["sk"]})
        claim = resp.get("Item")
        if not claim:
            return False
        holder_id = str(claim.get("team_id", ""))
        if holder_id == team_id:
            return True
        if not self._claim_is_stale(claim):
            return False
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression=Attr("team_id").eq(holder_id)
                & Attr("claim_status").eq(TeamClaim.ACTIVE),
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        log.warning("Team %s took over stale claim held by %s", team_id, holder_id)
        return True

    def claim_team_name(self, coach_email: str, team_name: str, team_id: str) -> bool:
        self.ensure_table()
        item: dict[str, object] = TeamClaim.key(coach_email, team_name)
        item.update(
            {
                "team_id": team_id,
                "claim_status": TeamClaim.ACTIVE,
                "claimed_at": utc_now_iso(),
            }
        )
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression=Attr("pk").not_exists()
                | Attr("claim_status").eq(TeamClaim.RELEASED),
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return self._take_over_claim(item, team_id)
            raise
        return True

    def release_team_claim(self, coach_email: str, team_name: str, team_id: str) -> bool:
        self.ensure_table()
        item: dict[str, object] = TeamClaim.key(coach_email, team_name)
        item.update(
            {
                "team_id": team_id,
                "claim_status": TeamClaim.RELEASED,
                "released_at": utc_now_iso(),
            }
        )
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression=Attr("team_id").eq(team_id),
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        return True

    # ----- Teams -----
    def get_team(self, team_id: str) -> Team | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Team.key(team_id))
        item = resp.get("Item")
        if not item:
            return None
        return Team.from_item(item)

    def find_active_team(self, coach_email: str, team_name: str) -> Team | None:
        self.ensure_table()
        resp = self._table.get_item(Key=TeamClaim.key(coach_email, team_name))
        claim = resp.get("Item")
        if not claim or claim.get("claim_status") != TeamClaim.ACTIVE:
            return None
        team = self.get_team(str(claim.get("team_id", "")))
        if team is None or team.registration_status not in ACTIVE_REGISTRATION_STATUSES:
            return None
        return team

    def create_team(self, team: Team) -> Team:
        """Persist a new team, enforcing (coach email, team name) uniqueness."""
        if not self.claim_team_name(team.coach_email, team.team_name, team.team_id):
            raise DuplicateRegistration(DUPLICATE_TEAM_MESSAGE)
        try:
            self._table.put_item(
                Item=team.to_item(),
                ConditionExpression=Attr("pk").not_exists(),
            )
        except (BotoCoreError, ClientError):
            try:
                self.release_team_claim(team.coach_email, team.team_name, team.team_id)
            except (BotoCoreError, ClientError) as exc:
                log.error("Failed to release claim for team %s: %s", team.team_id, exc)
            raise
        return team

    def save_team(self, team: Team) -> None:
        self.ensure_table()
        self._table.put_item(Item=team.to_item())

    def list_teams(self, *, registration_status: str | None = None) -> list[Team]:
        self.ensure_table()
        items = self._query_all(Team.PK_VALUE, "TEAM#")
        teams = [Team.from_item(item) for item in items]
        if registration_status is not None:
            teams = [
                team for team in teams if team.registration_status == registration_status
            ]
        teams.sort(key=lambda team: (team.created_at, team.team_id))
        return teams

    # ----- Sponsors -----
    def get_sponsor(self, sponsor_id: str) -> Sponsor | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Sponsor.key(sponsor_id))
        item = resp.get("Item")
        if not item:
            return None
        return Sponsor.from_item(item)

    def save_sponsor(self, sponsor: Sponsor) -> None:
        self.ensure_table()
        self._table.put_item(Item=sponsor.to_item())

    def list_sponsors(self) -> list[Sponsor]:
        self.ensure_table()
        items = self._query_all(Sponsor.PK_VALUE, "SPONSOR#")
        sponsors = [Sponsor.from_item(item) for item in items]
        sponsors.sort(key=lambda sponsor: (sponsor.created_at, sponsor.sponsor_id))
        return sponsors

    def find_active_sponsor(
        self, email: str, tier: str, company_name: str
    ) -> Sponsor | None:
        email = email.strip().lower()
        company_key = company_name.strip().casefold()
        for sponsor in self.list_sponsors():
            if (
                sponsor.email == email
                and sponsor.tier == tier
                and sponsor.company_name.strip().casefold() == company_key
                and sponsor.payment_status in ACTIVE_SPONSOR_PAYMENT_STATUSES
            ):
                return sponsor
        return None


__all__ = [
    "DUPLICATE_TEAM_MESSAGE",
    "STALE_CLAIM_AFTER",
    "TeamClaim",
    "RegistrationStorage",
]
