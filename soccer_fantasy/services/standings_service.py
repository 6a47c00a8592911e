"""
Standings aggregator: per-(room, gameweek) ranks and cumulative totals.

Full recompute every time, so running it twice gives identical rows.
Ranking: gameweek points descending, ties broken by user id ascending.
Cumulative total: this gameweek's points plus the member's total at the latest
earlier gameweek (by number) of the same season that has a standing in this room.
Totals restart with each season. Gameweeks are ordered by (season, number), season
labels sorting chronologically ("2024/25" < "2025/26").
"""
from __future__ import annotations

import sqlite3

from soccer_fantasy.clock import Clock, SystemClock
from soccer_fantasy.errors import GameweekNotFound, RoomNotFound
from soccer_fantasy.logging_config import get_logger
from soccer_fantasy.models import Gameweek, Standing
from soccer_fantasy.persistence.db import transaction
from soccer_fantasy.persistence.repositories import (
    GameweekRepository,
    MembershipRepository,
    RoomRepository,
    StandingRepository,
    TeamRepository,
)

logger = get_logger(__name__)


def rank_members(points_by_user: dict[str, float]) -> list[tuple[str, float, int]]:
    """(user_id, points, rank) sorted by points desc, then user_id. Ranks are 1-based positions."""
    ordered = sorted(points_by_user.items(), key=lambda kv: (-kv[1], kv[0]))
    return [(user_id, points, i + 1) for i, (user_id, points) in enumerate(ordered)]


class StandingsService:
    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._room_repo = RoomRepository()
        self._member_repo = MembershipRepository()
        self._team_repo = TeamRepository()
        self._gameweek_repo = GameweekRepository()
        self._standing_repo = StandingRepository()

    def recompute_standings(self, conn: sqlite3.Connection, room_id: str, gameweek_id: str) -> list[Standing]:
        """
        Rebuild standings for (room, gameweek) and refresh the membership cache.
        Members without a team for the gameweek score 0. The cache is only moved
        forward: recomputing an older gameweek leaves a newer cached total alone.
        """
        with transaction(conn):
            if self._room_repo.get(conn, room_id) is None:
                raise RoomNotFound(room_id)
            gameweek = self._gameweek_repo.get(conn, gameweek_id)
            if gameweek is None:
                raise GameweekNotFound(gameweek_id)

            members = self._member_repo.list_by_room(conn, room_id)
            teams = {t.user_id: t for t in self._team_repo.list_by_room_gameweek(conn, room_id, gameweek_id)}
            points = {m.user_id: (teams[m.user_id].total_points if m.user_id in teams else 0.0) for m in members}

            now = self._clock.now()
            standings: list[Standing] = []
            for user_id, gw_points, rank in rank_members(points):
                previous = self._standing_repo.latest_before(
                    conn, room_id, user_id, gameweek.league, gameweek.season, gameweek.number
                )
                total = (previous.total_points if previous else 0.0) + gw_points
                standing = Standing(
                    room_id=room_id,
                    gameweek_id=gameweek_id,
                    user_id=user_id,
                    gameweek_points=gw_points,
                    total_points=total,
                    rank=rank,
                )
                self._standing_repo.upsert(conn, standing, now)
                standings.append(standing)

            by_user = {m.user_id: m for m in members}
            for s in standings:
                if self._cache_is_not_newer(conn, by_user[s.user_id].last_recomputed_gameweek_id, gameweek):
                    self._member_repo.update_cache(conn, room_id, s.user_id, s.total_points, s.rank, gameweek_id)
        logger.info(
            "Standings recomputed: room=%s gameweek=%d members=%d", room_id, gameweek.number, len(standings)
        )
        return standings

    def _cache_is_not_newer(
        self, conn: sqlite3.Connection, marker_gameweek_id: str | None, gameweek: Gameweek
    ) -> bool:
        if marker_gameweek_id is None:
            return True
        marker = self._gameweek_repo.get(conn, marker_gameweek_id)
        return marker is None or (gameweek.season, gameweek.number) >= (marker.season, marker.number)

    def get_standings(self, conn: sqlite3.Connection, room_id: str, gameweek_id: str) -> list[Standing]:
        """Stored standings for (room, gameweek), ordered by rank."""
        return self._standing_repo.list_by_room_gameweek(conn, room_id, gameweek_id)
