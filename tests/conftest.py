from __future__ import annotations

from datetime import UTC, datetime

import pytest
from botocore.exceptions import ClientError

from spark_registration.errors import NotificationFailure, UploadFailure
from spark_registration.models import StoredUpload
from spark_registration.roster import RosterBuilder
from spark_registration.storage import RegistrationStorage
from spark_registration.uploads import UploadedFile
from spark_registration.workflow import TeamRegistrationWorkflow

SUBMITTED_AT = datetime(2025, 10, 15, 16, 0, tzinfo=UTC)

MIDDLE_SCHOOL_DOB = "2013-01-01"
HIGH_SCHOOL_DOB = "2009-05-05"
ELEMENTARY_DOB = "2017-03-03"


def _conditional_failure(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ConditionalCheckFailedException",
                "Message": "The conditional request failed",
            }
        },
        operation,
    )


def _matches(condition, item: dict[str, object] | None) -> bool:
    expression = condition.get_expression()
    operator = expression["operator"]
    values = expression["values"]
    if operator == "OR":
        return _matches(values[0], item) or _matches(values[1], item)
    if operator == "AND":
        return _matches(values[0], item) and _matches(values[1], item)
    if operator == "attribute_not_exists":
        return item is None or values[0].name not in item
    if operator == "attribute_exists":
        return item is not None and values[0].name in item
    if operator == "=":
        return item is not None and item.get(values[0].name) == values[1]
    raise NotImplementedError(operator)  # pragma: no cover - helper


class FakeTable:
    def __init__(self, *, page_size: int | None = None) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.page_size = page_size
        self.fail_puts_for: set[str] = set()
        self.queries = 0

    def get_item(self, *, Key):
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": dict(item)} if item is not None else {}

    def put_item(self, *, Item, ConditionExpression=None):
        if Item["pk"] in self.fail_puts_for:
            raise ClientError(
                {"Error": {"Code": "InternalServerError", "Message": "boom"}},
                "PutItem",
            )
        key = (Item["pk"], Item["sk"])
        if ConditionExpression is not None and not _matches(
            ConditionExpression, self.items.get(key)
        ):
            raise _conditional_failure("PutItem")
        self.items[key] = dict(Item)

    def query(self, *, KeyConditionExpression, ExclusiveStartKey=None, **_kwargs):
        self.queries += 1
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression._values:  # type: ignore[attr-defined]
            key, value = condition._values  # type: ignore[attr-defined]
            if key.name == "pk":  # pragma: no branch - helper
                pk_value = value
            elif key.name == "sk":
                sk_prefix = value
        keys = [
            key
            for key in sorted(self.items)
            if key[0] == pk_value and key[1].startswith(sk_prefix)
        ]
        if ExclusiveStartKey is not None:
            start = (ExclusiveStartKey["pk"], ExclusiveStartKey["sk"])
            keys = [key for key in keys if key > start]
        response: dict[str, object] = {}
        if self.page_size is not None and len(keys) > self.page_size:
            keys = keys[: self.page_size]
            response["LastEvaluatedKey"] = {"pk": keys[-1][0], "sk": keys[-1][1]}
        response["Items"] = [dict(self.items[key]) for key in keys]
        return response

    def records(self, pk_value: str) -> list[dict[str, object]]:
        return [item for key, item in sorted(self.items.items()) if key[0] == pk_value]


class FakeUploadStore:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_on: set[str] = set()
        self.undeletable: set[str] = set()
        self.deleted: list[str] = []

    async def store(self, upload: UploadedFile, key: str) -> StoredUpload:
        if any(marker in key for marker in self.fail_on):
            raise UploadFailure()
        self.objects[key] = upload.data
        return StoredUpload(
            reference=key, url=f"memory://{key}", original_name=upload.filename
        )

    async def delete(self, reference: str) -> bool:
        self.deleted.append(reference)
        if reference in self.undeletable:
            return False
        self.objects.pop(reference, None)
        return True


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, object]] = []
        self.failing: set[str] = set()

    async def _record(self, kind: str, payload: object) -> None:
        if kind in self.failing:
            raise NotificationFailure(f"{kind} delivery failed")
        self.sent.append((kind, payload))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.sent]

    async def send_coach_confirmation(self, team) -> None:
        await self._record("coach", team)

    async def send_admin_alert(self, team) -> None:
        await self._record("admin", team)

    async def send_sponsor_confirmation(self, sponsor) -> None:
        await self._record("sponsor", sponsor)

    async def send_sponsor_admin_alert(self, sponsor) -> None:
        await self._record("sponsor_admin", sponsor)

    async def send_payment_confirmation(self, record) -> None:
        await self._record("payment", record)

    async def send_contact_message(self, message) -> None:
        await self._record("contact", message)

    async def send_contact_auto_reply(self, message) -> None:
        await self._record("auto_reply", message)


def photo(index: int, *, content_type: str = "image/jpeg", data: bytes = b"jpeg") -> UploadedFile:
    return UploadedFile(
        field_name=f"players[{index}][idPhoto]",
        filename=f"player{index}.jpg",
        content_type=content_type,
        data=data,
    )


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def storage(table: FakeTable) -> RegistrationStorage:
    return RegistrationStorage(table)


@pytest.fixture
def upload_store() -> FakeUploadStore:
    return FakeUploadStore()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def workflow(storage, upload_store, notifier) -> TeamRegistrationWorkflow:
    return TeamRegistrationWorkflow(
        storage,
        RosterBuilder(upload_store),
        notifier,
        clock=lambda: SUBMITTED_AT,
        notification_timeout=1.0,
    )


@pytest.fixture
def make_payload():
    def _make(
        *,
        tier: str = "middle",
        players: int = 5,
        dob: str = MIDDLE_SCHOOL_DOB,
        team_name: str = "Falcons",
        coach_email: str = "Coach@Example.com",
        payment_method: str = "zelle",
        **overrides: object,
    ) -> dict[str, object]:
        payload: dict[str, object] = {
            "teamName": team_name,
            "organization": "Alhuda Academy",
            "city": "Indianapolis",
            "tier": tier,
            "gender": "boys",
            "coachName": "Sam Coach",
            "coachEmail": coach_email,
            "coachPhone": "317-555-0100",
            "paymentMethod": payment_method,
            "emergencyContact": {
                "name": "Pat Parent",
                "phone": "317-555-0101",
                "relationship": "Parent",
            },
            "players": [
                {"playerName": f"Player {index + 1}", "dateOfBirth": dob}
                for index in range(players)
            ],
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def make_photos():
    def _make(count: int) -> list[UploadedFile]:
        return [photo(index) for index in range(count)]

    return _make


@pytest.fixture
def make_photo():
    return photo
