"""
Shared fixtures: temporary DB per test, a fixed clock, a small player catalog,
and a 4-4-2 roster factory.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure project root on path
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from soccer_fantasy.catalog import add_player
from soccer_fantasy.clock import FixedClock
from soccer_fantasy.config import Settings
from soccer_fantasy.models import Player, PlayerId, Position, RosterSubmission
from soccer_fantasy.persistence.db import get_connection, init_db, set_db_path
from soccer_fantasy.services import GameweekService, RoomService

LEAGUE = "premier_league"
SEASON = "2025/26"
START = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)


def _players(prefix: str, position: Position, n: int, team: str) -> list[Player]:
    return [
        Player(id=PlayerId(f"{prefix}{i}"), name=f"{prefix.upper()} {i}", position=position, real_team=team)
        for i in range(1, n + 1)
    ]


CATALOG: list[Player] = (
    _players("gk", Position.GK, 3, "Arsenal")
    + _players("def", Position.DEF, 7, "Chelsea")
    + _players("mid", Position.MID, 7, "Liverpool")
    + _players("fwd", Position.FWD, 5, "Everton")
)


def build_roster(**overrides) -> RosterSubmission:
    """Valid 4-4-2: gk1 / def1-4 / mid1-4 / fwd1-2, bench gk2 def5 mid5 fwd3, captain mid1, vice fwd1."""
    fields = dict(
        formation="4-4-2",
        goalkeeper=PlayerId("gk1"),
        defenders=[PlayerId(f"def{i}") for i in range(1, 5)],
        midfielders=[PlayerId(f"mid{i}") for i in range(1, 5)],
        forwards=[PlayerId("fwd1"), PlayerId("fwd2")],
        bench_goalkeeper=PlayerId("gk2"),
        bench_defender=PlayerId("def5"),
        bench_midfielder=PlayerId("mid5"),
        bench_forward=PlayerId("fwd3"),
        captain_id=PlayerId("mid1"),
        vice_captain_id=PlayerId("fwd1"),
    )
    fields.update(overrides)
    return RosterSubmission(**fields)


@pytest.fixture
def db_conn(tmp_path):
    """Temporary DB with the full schema."""
    db_path = tmp_path / "fantasy_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def settings():
    return Settings(
        db_path=None,
        share_base_url="https://fantasy.example.test",
        cors_origins=(),
        substitution_cap=2,
        code_attempts=10,
        first_gameweek_window_days=7,
        log_level="INFO",
    )


@pytest.fixture
def catalog(db_conn):
    for p in CATALOG:
        add_player(db_conn, p)
    return {p.id: p for p in CATALOG}


@pytest.fixture
def make_roster():
    return build_roster


@pytest.fixture
def lookup():
    """In-memory player lookup over CATALOG (no database)."""
    return {p.id: p for p in CATALOG}.get


@pytest.fixture
def gameweek_service(clock, settings):
    return GameweekService(clock=clock, settings=settings)


@pytest.fixture
def room_service(clock, settings):
    return RoomService(clock=clock, settings=settings)


@pytest.fixture
def gameweek(db_conn, gameweek_service, clock):
    """Gameweek 1, deadline three days ahead of the fixed clock."""
    return gameweek_service.create_gameweek(db_conn, 1, LEAGUE, SEASON, clock.now() + timedelta(days=3))


@pytest.fixture
def room(db_conn, room_service):
    """Private room for up to 4, created by alice."""
    return room_service.create_room(db_conn, "Friday Five-a-side", "private", 4, "alice", LEAGUE)
