#!/usr/bin/env python3
"""
Demo: load players → create room → everyone joins → save rosters → substitute →
record points → recompute standings.
Run from project root: python3 scripts/demo_gameweek.py
"""
from __future__ import annotations

import random
import sys
from datetime import timedelta
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from soccer_fantasy.catalog import load_players_into_db
from soccer_fantasy.clock import SystemClock
from soccer_fantasy.logging_config import setup_logging
from soccer_fantasy.models import PlayerId, RosterSubmission
from soccer_fantasy.persistence import get_connection, init_db
from soccer_fantasy.persistence.db import set_db_path
from soccer_fantasy.services import (
    GameweekService,
    RoomService,
    StandingsService,
    SubstitutionService,
    TeamService,
)

LEAGUE = "premier_league"


def _roster(captain: str) -> RosterSubmission:
    return RosterSubmission(
        formation="4-4-2",
        goalkeeper=PlayerId("raya"),
        defenders=[PlayerId(p) for p in ("saliba", "gabriel", "van_dijk", "gvardiol")],
        midfielders=[PlayerId(p) for p in ("salah", "saka", "palmer", "mbeumo")],
        forwards=[PlayerId("haaland"), PlayerId("isak")],
        bench_goalkeeper=PlayerId("alisson"),
        bench_defender=PlayerId("cucurella"),
        bench_midfielder=PlayerId("rice"),
        bench_forward=PlayerId("watkins"),
        captain_id=PlayerId(captain),
        vice_captain_id=PlayerId("saka"),
    )


def main() -> None:
    setup_logging()
    # Use data/demo.db for the demo (distinct from fantasy.db)
    db_path = PROJECT_ROOT / "data" / "demo.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path=db_path)

    clock = SystemClock()
    conn = get_connection()
    try:
        load_players_into_db(conn, PROJECT_ROOT / "data" / "players.json")

        gameweeks = GameweekService(clock=clock)
        for n in (1, 2, 3):
            gameweeks.create_gameweek(conn, n, LEAGUE, "2025/26", clock.now() + timedelta(days=7 * n))
        gw = gameweeks.activate_first_if_none(conn, LEAGUE)
        print(f"Active gameweek: {gw.number} (deadline {gw.deadline.isoformat()})")

        rooms = RoomService(clock=clock)
        room = rooms.create_room(conn, "Demo League", "private", 4, "alice", LEAGUE)
        print(f"Created room {room.name} with code {room.code}")
        for user in ("bob", "carol"):
            rooms.join_room(conn, user, code=room.code)

        teams = TeamService(clock=clock)
        saved = {}
        for user, captain in (("alice", "salah"), ("bob", "haaland"), ("carol", "palmer")):
            saved[user] = teams.save_roster(conn, user, gw.id, room.id, _roster(captain))
        print(f"Saved {len(saved)} rosters")

        subs = SubstitutionService(clock=clock)
        team = subs.apply_substitution(conn, "bob", gw.id, room.id, "isak", "wood")
        print(f"bob swapped isak -> wood ({subs.tokens_remaining(team)} tokens left)")

        rng = random.Random(2025)
        for user, t in saved.items():
            teams.record_points(conn, t.id, rng.randint(30, 90))

        standings = StandingsService(clock=clock).recompute_standings(conn, room.id, gw.id)
        print("Standings:")
        for s in standings:
            print(f"  {s.rank}. {s.user_id:<6} {s.gameweek_points:>5.1f} pts (total {s.total_points:.1f})")

        summary = teams.get_team_summary(conn, "carol", LEAGUE)
        print(f"carol submitted for gameweek {summary['gameweek'].number}: {summary['has_submitted_team']}")

        share = rooms.sharing_info(conn, room.id)
        if share:
            print(f"Invite link: {share['share_url']}")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
