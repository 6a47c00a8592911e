"""
Player catalog: the read side the roster rules depend on, plus JSON loading
for local databases. Real data ingestion happens elsewhere; this only accepts
an already-prepared player list.

JSON format:
    {"players": [{"id": "...", "name": "...", "position": "MID", "real_team": "...",
                  "injured": false, "suspended": false}, ...]}
"""
from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Callable

from soccer_fantasy.errors import PlayerNotFound
from soccer_fantasy.logging_config import get_logger
from soccer_fantasy.models import Player, PlayerId, Position
from soccer_fantasy.persistence.db import transaction
from soccer_fantasy.persistence.repositories import PlayerRepository

logger = get_logger(__name__)

_repo = PlayerRepository()


def _slug(name: str) -> str:
    """Stable id from player name (lowercase, spaces to underscores)."""
    return name.strip().lower().replace(" ", "_").replace("-", "_")


def player_from_dict(d: dict[str, Any]) -> Player:
    name = d["name"]
    return Player(
        id=PlayerId(d.get("id") or _slug(name)),
        name=name,
        position=Position(str(d["position"]).upper()),
        real_team=d.get("real_team", ""),
        injured=bool(d.get("injured", False)),
        suspended=bool(d.get("suspended", False)),
        total_goals=int(d.get("total_goals", 0)),
        total_assists=int(d.get("total_assists", 0)),
        total_points=int(d.get("total_points", 0)),
    )


def load_players_into_db(conn: sqlite3.Connection, players_path: Path) -> int:
    """Load (insert or replace) players from a JSON file. Returns the number loaded."""
    data = json.loads(Path(players_path).read_text())
    players = [player_from_dict(d) for d in data.get("players", [])]
    with transaction(conn):
        for p in players:
            _repo.upsert(conn, p)
    logger.info("Loaded %d players from %s", len(players), players_path)
    return len(players)


def add_player(conn: sqlite3.Connection, player: Player) -> Player:
    with transaction(conn):
        return _repo.upsert(conn, player)


def get_player(conn: sqlite3.Connection, player_id: str) -> Player | None:
    """Fetch one player by id."""
    return _repo.get(conn, player_id)


def list_players(
    conn: sqlite3.Connection,
    position: str | None = None,
    real_team: str | None = None,
    search: str | None = None,
    limit: int | None = None,
) -> list[Player]:
    """Players ordered by total points, optionally filtered by position, team or name."""
    return _repo.list_filtered(conn, position=position, real_team=real_team, search=search, limit=limit)


def _patch_player(conn: sqlite3.Connection, player_id: str, fields: dict[str, Any]) -> Player:
    changes = {k: v for k, v in fields.items() if v is not None}
    with transaction(conn):
        if not _repo.patch(conn, player_id, **changes):
            raise PlayerNotFound(player_id)
        player = _repo.get(conn, player_id)
    if player is None:
        raise PlayerNotFound(player_id)
    logger.info("Player %s updated: %s", player_id, changes)
    return player


def update_player_status(
    conn: sqlite3.Connection,
    player_id: str,
    injured: bool | None = None,
    suspended: bool | None = None,
) -> Player:
    """Availability flags. Fields left as None are unchanged."""
    return _patch_player(conn, player_id, {"injured": injured, "suspended": suspended})


def update_player_stats(
    conn: sqlite3.Connection,
    player_id: str,
    goals: int | None = None,
    assists: int | None = None,
    points: int | None = None,
) -> Player:
    """Season totals from the stats feed. Fields left as None are unchanged."""
    return _patch_player(
        conn, player_id, {"total_goals": goals, "total_assists": assists, "total_points": points}
    )


def lookup_for(conn: sqlite3.Connection, player_ids: list[str]) -> Callable[[str], Player | None]:
    """
    Lookup function over one batch fetch, for the pure roster rules.
    Ids outside the batch resolve to None.
    """
    players = _repo.get_many(conn, player_ids)
    return players.get
