"""
Roster snapshots: save (validate + upsert), captaincy changes, points from the scoring feed.
One Team per (user, gameweek, room); re-submission overwrites the roster.
"""
from __future__ import annotations

import sqlite3
from typing import Any

from soccer_fantasy.catalog import lookup_for
from soccer_fantasy.clock import Clock, SystemClock
from soccer_fantasy.errors import FantasyError, NotAMember, RoomNotFound, TeamNotFound
from soccer_fantasy.logging_config import get_logger
from soccer_fantasy.models import RosterSubmission, Team
from soccer_fantasy.persistence.db import transaction
from soccer_fantasy.persistence.repositories import (
    GameweekRepository,
    MembershipRepository,
    RoomRepository,
    TeamRepository,
)
from soccer_fantasy.services.roster_validator import (
    check_deadline,
    validate_captaincy,
    validate_formation,
    validate_roster,
)

logger = get_logger(__name__)


class TeamService:
    """
    Domain logic for roster snapshots.
    Structural rules run first; the deadline gate is always evaluated last.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._team_repo = TeamRepository()
        self._room_repo = RoomRepository()
        self._member_repo = MembershipRepository()
        self._gameweek_repo = GameweekRepository()

    def _assert_member(self, conn: sqlite3.Connection, user_id: str, room_id: str) -> None:
        if self._room_repo.get(conn, room_id) is None:
            raise RoomNotFound(room_id)
        if self._member_repo.get(conn, room_id, user_id) is None:
            raise NotAMember(user_id, room_id)

    def save_roster(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        gameweek_id: str,
        room_id: str,
        submission: RosterSubmission,
    ) -> Team:
        """
        Validate and store the user's roster for (gameweek, room).
        Creates the Team on first save; afterwards overwrites the roster while keeping
        substitution_tokens_used and total_points.
        """
        with transaction(conn):
            lookup = lookup_for(conn, [pid for _, _, pid in submission.slots()])
            validate_roster(submission, lookup)
            self._assert_member(conn, user_id, room_id)
            check_deadline(self._gameweek_repo.get(conn, gameweek_id), gameweek_id, self._clock)

            now = self._clock.now()
            existing = self._team_repo.get_for(conn, user_id, gameweek_id, room_id)
            if existing is None:
                team = self._team_repo.create(conn, user_id, gameweek_id, room_id, submission, submitted_at=now)
                logger.info("Roster created: user=%s gameweek=%s room=%s", user_id, gameweek_id, room_id)
            else:
                self._team_repo.overwrite_roster(conn, existing.id, submission, submitted_at=now)
                team = self.get_team_by_id(conn, existing.id)
                logger.info("Roster overwritten: team=%s user=%s", existing.id, user_id)
        return team

    def update_captains(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        gameweek_id: str,
        room_id: str,
        captain_id: str,
        vice_captain_id: str,
    ) -> Team:
        with transaction(conn):
            team = self._team_repo.get_for(conn, user_id, gameweek_id, room_id)
            if team is None:
                raise TeamNotFound()
            validate_captaincy(team.roster.starting_xi(), captain_id, vice_captain_id)
            check_deadline(self._gameweek_repo.get(conn, gameweek_id), gameweek_id, self._clock)
            self._team_repo.update_captains(conn, team.id, captain_id, vice_captain_id, self._clock.now())
            updated = self.get_team_by_id(conn, team.id)
        logger.info("Captaincy updated: team=%s captain=%s vice=%s", team.id, captain_id, vice_captain_id)
        return updated

    def get_team(self, conn: sqlite3.Connection, user_id: str, gameweek_id: str, room_id: str) -> Team | None:
        return self._team_repo.get_for(conn, user_id, gameweek_id, room_id)

    def get_team_by_id(self, conn: sqlite3.Connection, team_id: str) -> Team:
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise TeamNotFound()
        return team

    def get_team_summary(
        self, conn: sqlite3.Connection, user_id: str, league: str, room_id: str | None = None
    ) -> dict[str, Any] | None:
        """
        The league's active gameweek and the user's team for it.
        Without room_id the user's earliest-joined room in that league is used.
        None when the league has no active gameweek.
        """
        gameweek = self._gameweek_repo.get_active(conn, league)
        if gameweek is None:
            return None
        if room_id is None:
            for membership in self._member_repo.list_by_user(conn, user_id):
                room = self._room_repo.get(conn, membership.room_id)
                if room is not None and room.league == league:
                    room_id = room.id
                    break
        team = self._team_repo.get_for(conn, user_id, gameweek.id, room_id) if room_id else None
        return {
            "gameweek": gameweek,
            "room_id": room_id,
            "team": team,
            "has_submitted_team": team is not None and team.is_submitted,
        }

    @staticmethod
    def check_formation(formation: str, def_count: int, mid_count: int, fwd_count: int) -> tuple[bool, list[str]]:
        """Formation-only pre-check for clients building a roster. Returns (is_valid, errors)."""
        try:
            validate_formation(formation, def_count, mid_count, fwd_count)
        except FantasyError as e:
            return False, [str(e)]
        return True, []

    def record_points(self, conn: sqlite3.Connection, team_id: str, points: float) -> Team:
        """Store the gameweek points computed by the external scoring feed."""
        with transaction(conn):
            team = self._team_repo.get(conn, team_id)
            if team is None:
                raise TeamNotFound()
            self._team_repo.update_points(conn, team_id, float(points), self._clock.now())
            updated = self.get_team_by_id(conn, team_id)
        logger.info("Points recorded: team=%s points=%s", team_id, points)
        return updated
