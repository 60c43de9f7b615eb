from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .errors import (
    InvalidIdentityPhoto,
    MissingIdentityPhoto,
    MissingPlayerField,
    RosterSizeViolation,
    UploadFailure,
)
from .models import ROSTER_MAX_PLAYERS, ROSTER_MIN_PLAYERS, Player, StoredUpload
from .tiers import TierPolicy
from .uploads import UploadedFile, UploadStore, build_upload_key, rollback_uploads
from .validation import clean_text, parse_date_of_birth

log = logging.getLogger(__name__)

MAX_PHOTO_BYTES = 5 * 1024 * 1024
_PHOTO_FIELD_PATTERN = re.compile(r"^players\[(\d+)\]\[idPhoto\]$")

RawPlayers = Sequence[Mapping[str, object]] | Mapping[object, Mapping[str, object]]


@dataclass(slots=True)
class RosterContext:
    team_id: str
    team_name: str
    policy: TierPolicy


@dataclass(slots=True)
class RosterBuildResult:
    players: list[Player]
    uploads: list[StoredUpload]


@dataclass(slots=True)
class _PendingPlayer:
    index: int
    name: str
    player: Player
    photo: UploadedFile | None


def iter_player_fields(raw_players: RawPlayers | None) -> Iterable[Mapping[str, object]]:
    """Yield field groups for index 0, 1, ... until the first gap."""
    if not raw_players:
        return
    index = 0
    while True:
        if isinstance(raw_players, Mapping):
            group = raw_players.get(index, raw_players.get(str(index)))
        else:
            group = raw_players[index] if index < len(raw_players) else None
        if not isinstance(group, Mapping):
            return
        yield group
        index += 1


def photos_by_index(files: Iterable[UploadedFile]) -> dict[int, UploadedFile]:
    photos: dict[int, UploadedFile] = {}
    for upload in files:
        match = _PHOTO_FIELD_PATTERN.match(upload.field_name)
        if match is None:
            log.debug("Ignoring unexpected upload field %s", upload.field_name)
            continue
        photos.setdefault(int(match.group(1)), upload)
    return photos


class RosterBuilder:
    def __init__(
        self,
        store: UploadStore,
        *,
        min_players: int = ROSTER_MIN_PLAYERS,
        max_players: int = ROSTER_MAX_PLAYERS,
        max_photo_bytes: int = MAX_PHOTO_BYTES,
    ) -> None:
        self._store = store
        self._min_players = min_players
        self._max_players = max_players
        self._max_photo_bytes = max_photo_bytes

    @property
    def store(self) -> UploadStore:
        return self._store

    def _check_photo(self, index: int, photo: UploadedFile) -> None:
        if not photo.data:
            raise InvalidIdentityPhoto(index, "ID photo file is empty")
        if not (photo.content_type or "").lower().startswith("image/"):
            raise InvalidIdentityPhoto(index, "Only image files are allowed")
        if photo.size > self._max_photo_bytes:
            limit_mb = self._max_photo_bytes // (1024 * 1024)
            raise InvalidIdentityPhoto(index, f"ID photo must be {limit_mb}MB or smaller")

    def _parse(
        self,
        context: RosterContext,
        groups: Sequence[Mapping[str, object]],
        photos: dict[int, UploadedFile],
    ) -> list[_PendingPlayer]:
        pending: list[_PendingPlayer] = []
        for index, fields in enumerate(groups):
            name = clean_text(fields.get("playerName"))
            raw_dob = clean_text(fields.get("dateOfBirth"))
            if not name:
                raise MissingPlayerField(index, "playerName")
            if not raw_dob:
                raise MissingPlayerField(index, "dateOfBirth")
            date_of_birth = parse_date_of_birth(raw_dob, index)

            photo = photos.get(index)
            if photo is None and context.policy.requires_identity_photo:
                raise MissingIdentityPhoto(index)
            if photo is not None:
                self._check_photo(index, photo)

            pending.append(
                _PendingPlayer(
                    index=index,
                    name=name,
                    player=Player(name=name, date_of_birth=date_of_birth),
                    photo=photo,
                )
            )
        return pending

    async def _upload_all(
        self, context: RosterContext, pending: list[_PendingPlayer]
    ) -> list[StoredUpload]:
        targets = [entry for entry in pending if entry.photo is not None]
        results = await asyncio.gather(
            *(
                self._store.store(
                    entry.photo,  # type: ignore[arg-type]
                    build_upload_key(
                        context.team_name,
                        context.team_id,
                        entry.name,
                        entry.index,
                        entry.photo.filename,  # type: ignore[union-attr]
                    ),
                )
                for entry in targets
            ),
            return_exceptions=True,
        )

        stored: list[StoredUpload] = []
        failure: BaseException | None = None
        for entry, result in zip(targets, results):
            if isinstance(result, BaseException):
                log.warning(
                    "Upload failed for player %d of team %s: %s",
                    entry.index + 1,
                    context.team_id,
                    result,
                )
                failure = failure or result
                continue
            entry.player.identity_photo = result
            stored.append(result)

        if failure is not None:
            await rollback_uploads(self._store, stored)
            if isinstance(failure, UploadFailure):
                raise failure
            raise UploadFailure() from failure
        return stored

    async def build(
        self,
        context: RosterContext,
        raw_players: RawPlayers | None,
        files: Iterable[UploadedFile] = (),
    ) -> RosterBuildResult:
        """Validate the roster, store identity photos, and return the players.

        The roster size is checked before any per-player field or photo, and
        every player is validated before anything is stored, so validation
        failures leave no uploads behind. Photos for indexes outside the
        roster are ignored. If a store call fails, uploads that already
        succeeded for this attempt are deleted before the error is raised.
        """
        groups = list(iter_player_fields(raw_players))
        count = len(groups)
        if count < self._min_players or count > self._max_players:
            log.warning(
                "Roster size %d outside [%d, %d] for team %s",
                count,
                self._min_players,
                self._max_players,
                context.team_id,
            )
            raise RosterSizeViolation(count, self._min_players, self._max_players)

        pending = self._parse(context, groups, photos_by_index(files))
        stored = await self._upload_all(context, pending)
        return RosterBuildResult(
            players=[entry.player for entry in pending], uploads=stored
        )


__all__ = [
    "MAX_PHOTO_BYTES",
    "RosterContext",
    "RosterBuildResult",
    "RosterBuilder",
    "iter_player_fields",
    "photos_by_index",
]
