"""
Gameweek lifecycle: upcoming -> active -> completed.
At most one active gameweek per league; activating one completes the others first.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta

from soccer_fantasy.clock import Clock, SystemClock
from soccer_fantasy.config import Settings, get_settings
from soccer_fantasy.errors import GameweekNotFound, InvalidGameweekTransition, NoGameweeksConfigured
from soccer_fantasy.logging_config import get_logger
from soccer_fantasy.models import Gameweek, GameweekStatus
from soccer_fantasy.persistence.db import transaction
from soccer_fantasy.persistence.repositories import GameweekRepository

logger = get_logger(__name__)

# ---------- Valid transitions ----------

_VALID_TRANSITIONS: dict[str, set[str]] = {
    GameweekStatus.UPCOMING: {GameweekStatus.ACTIVE},
    GameweekStatus.ACTIVE: {GameweekStatus.COMPLETED},
    GameweekStatus.COMPLETED: set(),
}


# ---------- GameweekService ----------


class GameweekService:
    """
    Domain logic for gameweeks: status transitions, the single-active rule, deadlines.
    Persistence is delegated to GameweekRepository.
    """

    def __init__(self, clock: Clock | None = None, settings: Settings | None = None) -> None:
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()
        self._repo = GameweekRepository()

    def _require(self, conn: sqlite3.Connection, gameweek_id: str) -> Gameweek:
        gw = self._repo.get(conn, gameweek_id)
        if gw is None:
            raise GameweekNotFound(gameweek_id)
        return gw

    @staticmethod
    def _assert_transition(gw: Gameweek, new_status: str) -> None:
        allowed = _VALID_TRANSITIONS.get(GameweekStatus(gw.status), set())
        if new_status not in allowed:
            raise InvalidGameweekTransition(
                f"Invalid transition for gameweek {gw.number}: {gw.status} -> {new_status}"
            )

    def create_gameweek(
        self,
        conn: sqlite3.Connection,
        number: int,
        league: str,
        season: str,
        deadline: datetime,
    ) -> Gameweek:
        with transaction(conn):
            gw = self._repo.create(
                conn, number=number, league=league, season=season, deadline=deadline, created_at=self._clock.now()
            )
        logger.info("Gameweek created: league=%s number=%d id=%s", league, number, gw.id)
        return gw

    def get(self, conn: sqlite3.Connection, gameweek_id: str) -> Gameweek:
        return self._require(conn, gameweek_id)

    def list_gameweeks(self, conn: sqlite3.Connection, league: str, season: str | None = None) -> list[Gameweek]:
        return self._repo.list_by_league(conn, league, season=season)

    def get_current_active(self, conn: sqlite3.Connection, league: str) -> Gameweek | None:
        return self._repo.get_active(conn, league)

    def get_next(self, conn: sqlite3.Connection, league: str) -> Gameweek | None:
        """Upcoming gameweek with the earliest deadline still in the future (ties: number, then id)."""
        now = self._clock.now()
        candidates = [
            gw
            for gw in self._repo.list_by_league(conn, league, status=GameweekStatus.UPCOMING.value)
            if gw.deadline > now
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda gw: (gw.deadline, gw.number, gw.id))

    def activate(self, conn: sqlite3.Connection, gameweek_id: str) -> Gameweek:
        """
        Make gameweek_id the league's only active gameweek.
        Every other active gameweek of the league is completed first, in the same transaction.
        Activating the already-active gameweek is a no-op.
        """
        with transaction(conn):
            gw = self._require(conn, gameweek_id)
            if gw.is_active:
                return gw
            self._assert_transition(gw, GameweekStatus.ACTIVE)
            now = self._clock.now()
            for other in self._repo.list_active(conn, gw.league):
                self._repo.update_status(conn, other.id, GameweekStatus.COMPLETED.value, is_active=False, now=now)
                logger.info("Gameweek completed: league=%s number=%d", other.league, other.number)
            self._repo.update_status(conn, gw.id, GameweekStatus.ACTIVE.value, is_active=True, now=now)
            activated = self._require(conn, gw.id)
        logger.info("Gameweek activated: league=%s number=%d id=%s", gw.league, gw.number, gw.id)
        return activated

    def complete(self, conn: sqlite3.Connection, gameweek_id: str) -> Gameweek:
        with transaction(conn):
            gw = self._require(conn, gameweek_id)
            self._assert_transition(gw, GameweekStatus.COMPLETED)
            self._repo.update_status(
                conn, gw.id, GameweekStatus.COMPLETED.value, is_active=False, now=self._clock.now()
            )
            completed = self._require(conn, gw.id)
        logger.info("Gameweek completed: league=%s number=%d", gw.league, gw.number)
        return completed

    def activate_first_if_none(self, conn: sqlite3.Connection, league: str) -> Gameweek:
        """
        Bootstrap: return the active gameweek if there is one. Otherwise take the
        lowest-numbered upcoming gameweek, move its deadline to now + the configured
        window (7 days by default) and activate it.
        """
        with transaction(conn):
            active = self._repo.get_active(conn, league)
            if active is not None:
                return active
            if self._repo.count_by_league(conn, league) == 0:
                raise NoGameweeksConfigured(league)
            upcoming = self._repo.list_by_league(conn, league, status=GameweekStatus.UPCOMING.value)
            if not upcoming:
                raise InvalidGameweekTransition(f"No upcoming gameweek left to activate for league: {league}")
            first = upcoming[0]
            now = self._clock.now()
            deadline = now + timedelta(days=self._settings.first_gameweek_window_days)
            self._repo.update_deadline(conn, first.id, deadline, now)
            activated = self.activate(conn, first.id)
        logger.info("Bootstrapped league %s with gameweek %d (deadline %s)", league, first.number, deadline.isoformat())
        return activated

    def is_deadline_passed(self, conn: sqlite3.Connection, gameweek_id: str) -> bool:
        """True once now >= deadline. Unknown gameweeks report False."""
        gw = self._repo.get(conn, gameweek_id)
        if gw is None:
            return False
        return gw.deadline <= self._clock.now()
