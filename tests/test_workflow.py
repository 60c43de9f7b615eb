import asyncio
import re
from datetime import UTC, datetime

import pytest

from spark_registration.errors import TRANSIENT_MESSAGE
from spark_registration.roster import RosterBuilder
from spark_registration.workflow import TeamRegistrationWorkflow

TEAM_ID_PATTERN = re.compile(r"^TEAM-[0-9A-Z]+-[0-9A-Z]{5}$")


@pytest.mark.asyncio
async def test_successful_registration(workflow, storage, notifier, make_payload):
    payload = make_payload()
    payload["players"][2]["playerName"] = "  Zaid  "

    result = await workflow.submit(payload)

    assert result.success, result.message
    assert TEAM_ID_PATTERN.match(result.reference_id)
    team = storage.get_team(result.reference_id)
    assert team is not None
    assert [player.name for player in team.players] == [
        "Player 1", "Player 2", "Zaid", "Player 4", "Player 5",
    ]
    assert all(player.age_at_registration == 12 for player in team.players)
    assert team.coach_email == "coach@example.com"
    assert team.payment_status == "pending"
    assert team.registration_status == "pending"
    assert team.registration_fee == 300
    assert team.created_at == "2025-10-15T16:00:00.000000Z"
    assert sorted(notifier.kinds()) == ["admin", "coach"]

    assert result.instructions.detail("Memo") == result.reference_id
    data = result.to_dict()
    assert data["teamId"] == result.reference_id
    assert data["instructions"]["method"] == "zelle"


@pytest.mark.asyncio
async def test_check_instructions_use_team_memo(workflow, make_payload):
    result = await workflow.submit(make_payload(payment_method="check"))
    assert result.instructions.detail("Memo") == "Team Registration - Falcons"


@pytest.mark.asyncio
async def test_hosted_gateway_returns_no_instructions(workflow, make_payload):
    result = await workflow.submit(make_payload(payment_method="zeffy"))
    assert result.success
    assert result.instructions is None
    assert "instructions" not in result.to_dict()


@pytest.mark.asyncio
async def test_flat_emergency_contact_fields_are_accepted(workflow, make_payload):
    payload = make_payload()
    del payload["emergencyContact"]
    payload.update(
        {
            "emergencyContact[name]": "Pat",
            "emergencyContact[phone]": "555",
            "emergencyContact[relationship]": "Aunt",
        }
    )
    result = await workflow.submit(payload)
    assert result.success


@pytest.mark.asyncio
async def test_missing_required_fields(workflow, upload_store, make_payload):
    payload = make_payload(teamName="", coachPhone="  ")
    result = await workflow.submit(payload)

    assert not result.success
    assert result.error_kind == "MissingRequiredField"
    assert result.details == {"fields": ["teamName", "coachPhone"]}
    assert upload_store.objects == {}


@pytest.mark.asyncio
async def test_missing_emergency_contact(workflow, make_payload):
    payload = make_payload()
    payload["emergencyContact"] = {"name": "Pat", "phone": "555"}
    result = await workflow.submit(payload)

    assert result.error_kind == "MissingRequiredField"
    assert result.message == "Emergency contact information is required"


@pytest.mark.asyncio
async def test_unknown_tier_fails_before_uploads(workflow, upload_store, make_payload, make_photos):
    result = await workflow.submit(make_payload(tier="college"), make_photos(5))

    assert result.error_kind == "InvalidTier"
    assert upload_store.objects == {}
    assert upload_store.deleted == []


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [4, 11])
async def test_roster_size_violation_leaves_nothing_behind(
    workflow, table, upload_store, make_payload, make_photos, count
):
    payload = make_payload(tier="high_school", players=count, dob="2009-05-05")
    result = await workflow.submit(payload, make_photos(count))

    assert result.error_kind == "RosterSizeViolation"
    assert result.details["actual"] == count
    assert upload_store.objects == {}
    assert table.records("TEAMS") == []


@pytest.mark.asyncio
async def test_missing_identity_photo_for_high_school(
    workflow, table, upload_store, make_payload, make_photos
):
    payload = make_payload(tier="high_school", dob="2009-05-05")
    result = await workflow.submit(payload, make_photos(4))

    assert result.error_kind == "MissingIdentityPhoto"
    assert result.details == {"index": 4}
    assert upload_store.objects == {}
    assert table.records("TEAMS") == []


@pytest.mark.asyncio
async def test_age_violation_rolls_back_uploads(
    workflow, table, upload_store, notifier, make_payload, make_photos
):
    payload = make_payload(tier="high_school", dob="2009-05-05")
    payload["players"][3]["dateOfBirth"] = "2012-06-01"

    result = await workflow.submit(payload, make_photos(5))

    assert result.error_kind == "AgeEligibilityViolation"
    assert "High School" in result.message
    assert result.details["players"] == [{"index": 3, "age": 13}]
    assert len(upload_store.deleted) == 5
    assert upload_store.objects == {}
    assert table.records("TEAMS") == []
    assert table.records("TEAM_CLAIMS") == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_age_uses_event_local_date(storage, upload_store, notifier, make_payload):
    # 02:00 UTC on Nov 1 is still Oct 31 in Indianapolis.
    workflow = TeamRegistrationWorkflow(
        storage,
        RosterBuilder(upload_store),
        notifier,
        clock=lambda: datetime(2025, 11, 1, 2, 0, tzinfo=UTC),
    )

    result = await workflow.submit(make_payload(tier="elementary", dob="2014-11-01"))

    assert result.success, result.message
    team = storage.get_team(result.reference_id)
    assert {player.age_at_registration for player in team.players} == {10}


@pytest.mark.asyncio
async def test_duplicate_submission_is_rejected(
    workflow, table, upload_store, make_payload, make_photos
):
    payload = make_payload(tier="high_school", dob="2009-05-05")
    first = await workflow.submit(payload, make_photos(5))
    second = await workflow.submit(
        make_payload(tier="high_school", dob="2009-05-05", coach_email="coach@EXAMPLE.com"),
        make_photos(5),
    )

    assert first.success
    assert second.error_kind == "DuplicateRegistration"
    assert len(table.records("TEAMS")) == 1
    assert len(upload_store.objects) == 5


@pytest.mark.asyncio
async def test_concurrent_duplicate_caught_by_claim(
    workflow, storage, table, upload_store, make_payload, make_photos, monkeypatch
):
    await workflow.submit(make_payload(tier="high_school", dob="2009-05-05"), make_photos(5))
    stored_before = set(upload_store.objects)
    monkeypatch.setattr(storage, "find_active_team", lambda *_args: None)

    result = await workflow.submit(
        make_payload(tier="high_school", dob="2009-05-05"), make_photos(5)
    )

    assert result.error_kind == "DuplicateRegistration"
    assert set(upload_store.objects) == stored_before
    assert len(table.records("TEAMS")) == 1


@pytest.mark.asyncio
async def test_persistence_failure_is_transient_and_rolls_back(
    workflow, table, upload_store, notifier, make_payload, make_photos
):
    table.fail_puts_for = {"TEAMS"}

    result = await workflow.submit(
        make_payload(tier="high_school", dob="2009-05-05"), make_photos(5)
    )

    assert result.error_kind == "PersistenceError"
    assert result.transient
    assert result.message == TRANSIENT_MESSAGE
    assert upload_store.objects == {}
    assert notifier.sent == []
    claims = table.records("TEAM_CLAIMS")
    assert [claim["claim_status"] for claim in claims] == ["released"]


@pytest.mark.asyncio
async def test_upload_failure_is_transient(workflow, upload_store, make_payload, make_photos):
    upload_store.fail_on = {"player-1-"}

    result = await workflow.submit(
        make_payload(tier="high_school", dob="2009-05-05"), make_photos(5)
    )

    assert result.error_kind == "UploadFailure"
    assert result.transient
    assert upload_store.objects == {}


@pytest.mark.asyncio
async def test_notification_failures_do_not_fail_registration(
    workflow, storage, notifier, make_payload
):
    notifier.failing = {"coach", "admin"}

    result = await workflow.submit(make_payload())

    assert result.success
    assert storage.get_team(result.reference_id) is not None


class SlowNotifier:
    async def send_coach_confirmation(self, team) -> None:
        await asyncio.sleep(5)

    async def send_admin_alert(self, team) -> None:
        await asyncio.sleep(5)


@pytest.mark.asyncio
async def test_slow_notifications_are_bounded_by_timeout(
    storage, upload_store, make_payload
):
    workflow = TeamRegistrationWorkflow(
        storage,
        RosterBuilder(upload_store),
        SlowNotifier(),
        clock=lambda: datetime(2025, 10, 15, 16, 0, tzinfo=UTC),
        notification_timeout=0.05,
    )

    result = await asyncio.wait_for(workflow.submit(make_payload()), timeout=2)

    assert result.success
