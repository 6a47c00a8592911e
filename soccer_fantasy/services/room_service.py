"""
Room-centric service: creation, joining, capacity, join codes, deletion cascade.

Capacity invariant: current_participants <= max_participants after every mutation.
The membership insert and the guarded counter increment commit together, so a
failed join leaves neither behind.
"""
from __future__ import annotations

import random
import sqlite3
from typing import Any

from soccer_fantasy.clock import Clock, SystemClock
from soccer_fantasy.config import Settings, get_settings
from soccer_fantasy.errors import (
    AlreadyMember,
    InvalidRoomTransition,
    NotRoomCreator,
    RoomFull,
    RoomNotFound,
    ValidationFailure,
)
from soccer_fantasy.logging_config import get_logger
from soccer_fantasy.models import Room, RoomStatus, RoomVisibility
from soccer_fantasy.persistence.db import transaction
from soccer_fantasy.persistence.repositories import (
    MembershipRepository,
    RoomRepository,
    StandingRepository,
    SubstitutionRepository,
    TeamRepository,
    UserRepository,
)
from soccer_fantasy.services.codes import generate_unique_code

logger = get_logger(__name__)

DEFAULT_LEAGUE = "premier_league"
DEFAULT_ROOM_SIZE = 20
RECENT_JOINERS = 5

# ---------- Valid transitions ----------

_VALID_TRANSITIONS: dict[str, set[str]] = {
    RoomStatus.UPCOMING: {RoomStatus.ACTIVE},
    RoomStatus.ACTIVE: {RoomStatus.COMPLETED},
    RoomStatus.COMPLETED: set(),
}


# ---------- RoomService ----------


class RoomService:
    """
    Domain logic for rooms and memberships.
    Persistence is delegated to repositories; each public method is one transaction.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()
        self._rng = rng
        self._room_repo = RoomRepository()
        self._member_repo = MembershipRepository()
        self._team_repo = TeamRepository()
        self._sub_repo = SubstitutionRepository()
        self._standing_repo = StandingRepository()
        self._user_repo = UserRepository()

    def _require(self, conn: sqlite3.Connection, room_id: str) -> Room:
        room = self._room_repo.get(conn, room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    def _unique_code(self, conn: sqlite3.Connection) -> str:
        return generate_unique_code(
            lambda c: self._room_repo.code_exists(conn, c),
            rng=self._rng,
            clock=self._clock,
            max_attempts=self._settings.code_attempts,
        )

    # ---------- Create / join ----------

    def create_room(
        self,
        conn: sqlite3.Connection,
        name: str,
        visibility: str,
        max_participants: int,
        creator_id: str,
        league: str,
        status: str = RoomStatus.UPCOMING.value,
    ) -> Room:
        """
        Create a room with its creator as the first member (current_participants = 1).
        Private rooms get a unique join code; public rooms have none.
        """
        visibility = RoomVisibility(visibility).value
        if max_participants < 1:
            raise ValidationFailure(f"max_participants must be at least 1 (got {max_participants})")
        with transaction(conn):
            now = self._clock.now()
            self._user_repo.ensure(conn, creator_id, now)
            code = self._unique_code(conn) if visibility == RoomVisibility.PRIVATE.value else None
            room = self._room_repo.create(
                conn,
                name=name,
                visibility=visibility,
                max_participants=max_participants,
                creator_id=creator_id,
                league=league,
                code=code,
                status=status,
                current_participants=1,
                created_at=now,
            )
            self._member_repo.create(conn, room.id, creator_id, joined_at=now)
        logger.info("Room created: id=%s visibility=%s code=%s creator=%s", room.id, visibility, code, creator_id)
        return room

    def join_room(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        room_id: str | None = None,
        code: str | None = None,
    ) -> Room:
        """Join by room id or by join code. RoomNotFound, AlreadyMember or RoomFull on failure."""
        if room_id is None and code is None:
            raise ValidationFailure("Either room_id or code is required")
        with transaction(conn):
            if room_id is not None:
                room = self._room_repo.get(conn, room_id)
            else:
                room = self._room_repo.get_by_code(conn, code.strip().upper())
            if room is None:
                raise RoomNotFound(room_id or code)
            if self._member_repo.get(conn, room.id, user_id) is not None:
                raise AlreadyMember(user_id, room.id)
            now = self._clock.now()
            if not self._room_repo.increment_participants(conn, room.id, now):
                raise RoomFull(room.id, room.max_participants)
            self._user_repo.ensure(conn, user_id, now)
            self._member_repo.create(conn, room.id, user_id, joined_at=now)
            joined = self._require(conn, room.id)
        logger.info(
            "User %s joined room %s (%d/%d)",
            user_id, joined.id, joined.current_participants, joined.max_participants,
        )
        return joined

    def create_default_room(self, conn: sqlite3.Connection, user_id: str, league: str = DEFAULT_LEAGUE) -> Room:
        """First-run room: a public 20-seat room. Users who already belong to a room get that room back."""
        with transaction(conn):
            existing = self._member_repo.list_by_user(conn, user_id)
            if existing:
                return self._require(conn, existing[0].room_id)
            return self.create_room(
                conn,
                name=f"Default {league.replace('_', ' ').upper()} League",
                visibility=RoomVisibility.PUBLIC.value,
                max_participants=DEFAULT_ROOM_SIZE,
                creator_id=user_id,
                league=league,
                status=RoomStatus.ACTIVE.value,
            )

    # ---------- Creator-only ----------

    def delete_room(self, conn: sqlite3.Connection, room_id: str, user_id: str) -> None:
        """
        Creator only. Removes substitutions, memberships, teams and standings,
        then the room, as one unit: any failure leaves everything in place.
        """
        with transaction(conn):
            room = self._require(conn, room_id)
            if room.creator_id != user_id:
                raise NotRoomCreator("delete the room")
            subs = self._sub_repo.delete_by_room(conn, room_id)
            members = self._member_repo.delete_by_room(conn, room_id)
            teams = self._team_repo.delete_by_room(conn, room_id)
            standings = self._standing_repo.delete_by_room(conn, room_id)
            self._room_repo.delete(conn, room_id)
        logger.info(
            "Room deleted: id=%s (memberships=%d teams=%d substitutions=%d standings=%d)",
            room_id, members, teams, subs, standings,
        )

    def regenerate_code(self, conn: sqlite3.Connection, room_id: str, user_id: str) -> str:
        with transaction(conn):
            room = self._require(conn, room_id)
            if room.creator_id != user_id:
                raise NotRoomCreator("regenerate the code")
            code = self._unique_code(conn)
            self._room_repo.update_code(conn, room_id, code, self._clock.now())
        logger.info("Room code regenerated: id=%s code=%s", room_id, code)
        return code

    def transition_room_status(self, conn: sqlite3.Connection, room_id: str, new_status: str) -> Room:
        """upcoming -> active -> completed."""
        with transaction(conn):
            room = self._require(conn, room_id)
            allowed = _VALID_TRANSITIONS.get(RoomStatus(room.status), set())
            if new_status not in allowed:
                raise InvalidRoomTransition(
                    f"Invalid transition: {room.status} -> {new_status}. "
                    f"Allowed from {room.status}: {sorted(s.value for s in allowed)}"
                )
            self._room_repo.update_status(conn, room_id, new_status, self._clock.now())
            updated = self._require(conn, room_id)
        logger.info("Room %s status: %s -> %s", room_id, room.status, new_status)
        return updated

    # ---------- Reads ----------

    def get_room(self, conn: sqlite3.Connection, room_id: str) -> Room:
        return self._require(conn, room_id)

    def get_room_by_code(self, conn: sqlite3.Connection, code: str) -> Room:
        room = self._room_repo.get_by_code(conn, code.strip().upper())
        if room is None:
            raise RoomNotFound(code)
        return room

    def get_room_with_members(self, conn: sqlite3.Connection, room_id: str) -> dict[str, Any]:
        """Room plus members ordered by rank (unranked last, then by join time)."""
        room = self._require(conn, room_id)
        members = self._member_repo.list_by_room(conn, room_id)
        members.sort(key=lambda m: (m.rank is None, m.rank or 0, m.joined_at, m.user_id))
        out = []
        for m in members:
            user = self._user_repo.get(conn, m.user_id)
            d = m.to_dict()
            d["user_name"] = user.name if user else None
            out.append(d)
        result = room.to_dict()
        result["members"] = out
        return result

    def list_public_rooms(self, conn: sqlite3.Connection, league: str | None = None, limit: int = 20) -> list[Room]:
        return self._room_repo.list_public(conn, league=league, limit=limit)

    def list_user_rooms(self, conn: sqlite3.Connection, user_id: str) -> list[dict[str, Any]]:
        """Rooms the user belongs to, each with the user's cached points and rank."""
        out = []
        for m in self._member_repo.list_by_user(conn, user_id):
            room = self._room_repo.get(conn, m.room_id)
            if room is None:
                continue
            d = room.to_dict()
            d["user_points"] = m.total_points
            d["user_rank"] = m.rank
            out.append(d)
        return out

    def sharing_info(self, conn: sqlite3.Connection, room_id: str) -> dict[str, Any] | None:
        """Join code, counts, the 5 most recent joiners and the share link. None for rooms without a code."""
        room = self._require(conn, room_id)
        if not room.code:
            return None
        creator = self._user_repo.get(conn, room.creator_id)
        recent = []
        for m in self._member_repo.list_recent(conn, room_id, limit=RECENT_JOINERS):
            user = self._user_repo.get(conn, m.user_id)
            recent.append({"user_id": m.user_id, "name": user.name if user else None, "joined_at": m.joined_at.isoformat()})
        return {
            "code": room.code,
            "room_name": room.name,
            "league": room.league,
            "creator": creator.name if creator else None,
            "member_count": room.current_participants,
            "max_members": room.max_participants,
            "recent_members": recent,
            "share_url": f"{self._settings.share_base_url}/join/{room.code}",
        }
