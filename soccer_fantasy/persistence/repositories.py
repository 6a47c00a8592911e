"""
Repository interfaces for fantasy data.
No business logic, only read/write operations.
Repositories never commit: callers group writes with persistence.db.transaction.
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime

from soccer_fantasy.clock import ensure_utc
from soccer_fantasy.models import (
    Gameweek,
    Membership,
    Player,
    PlayerId,
    Position,
    Room,
    RosterSubmission,
    Standing,
    Substitution,
    Team,
    User,
)


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return ensure_utc(datetime.fromisoformat(s.replace("Z", "+00:00")))


def _iso(dt: datetime) -> str:
    return ensure_utc(dt).isoformat()


# ---------- UserRepository ----------


class UserRepository:
    """CRUD for users. No credentials."""

    def create(self, conn: sqlite3.Connection, name: str, created_at: datetime, id: str | None = None) -> User:
        uid = id or str(uuid.uuid4())
        now = _iso(created_at)
        conn.execute("INSERT INTO users (id, name, created_at) VALUES (?, ?, ?)", (uid, name, now))
        return User(id=uid, name=name, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute("SELECT id, name, created_at FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return User(id=row["id"], name=row["name"], created_at=_parse_datetime(row["created_at"]))

    def ensure(self, conn: sqlite3.Connection, user_id: str, now: datetime, name: str | None = None) -> User:
        """Return the user, creating a placeholder row on first sight."""
        user = self.get(conn, user_id)
        if user is None:
            user = self.create(conn, name=name or f"User {user_id[:8]}", created_at=now, id=user_id)
        return user


# ---------- PlayerRepository ----------

_PLAYER_COLS = "id, name, position, real_team, injured, suspended, total_goals, total_assists, total_points"
_PLAYER_MUTABLE = {"injured", "suspended", "total_goals", "total_assists", "total_points"}


def _row_to_player(r: sqlite3.Row) -> Player:
    return Player(
        id=PlayerId(r["id"]),
        name=r["name"],
        position=Position(r["position"]),
        real_team=r["real_team"],
        injured=bool(r["injured"]),
        suspended=bool(r["suspended"]),
        total_goals=r["total_goals"],
        total_assists=r["total_assists"],
        total_points=r["total_points"],
    )


class PlayerRepository:
    """Read/write for the player catalog."""

    def upsert(self, conn: sqlite3.Connection, player: Player) -> Player:
        conn.execute(
            f"INSERT OR REPLACE INTO players ({_PLAYER_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                player.id,
                player.name,
                player.position.value,
                player.real_team,
                1 if player.injured else 0,
                1 if player.suspended else 0,
                player.total_goals,
                player.total_assists,
                player.total_points,
            ),
        )
        return player

    def get(self, conn: sqlite3.Connection, player_id: str) -> Player | None:
        row = conn.execute(f"SELECT {_PLAYER_COLS} FROM players WHERE id = ?", (player_id,)).fetchone()
        if row is None:
            return None
        return _row_to_player(row)

    def get_many(self, conn: sqlite3.Connection, player_ids: list[str]) -> dict[str, Player]:
        """Players keyed by id; unknown ids are simply absent."""
        ids = list(dict.fromkeys(player_ids))
        if not ids:
            return {}
        marks = ", ".join("?" for _ in ids)
        rows = conn.execute(f"SELECT {_PLAYER_COLS} FROM players WHERE id IN ({marks})", ids).fetchall()
        return {r["id"]: _row_to_player(r) for r in rows}

    def patch(self, conn: sqlite3.Connection, player_id: str, **fields) -> bool:
        """Update only the given mutable columns. False when the player does not exist."""
        unknown = set(fields) - _PLAYER_MUTABLE
        if unknown:
            raise ValueError(f"Not a mutable player field: {sorted(unknown)}")
        if not fields:
            return self.get(conn, player_id) is not None
        cols = sorted(fields)
        values = [int(fields[c]) if isinstance(fields[c], bool) else fields[c] for c in cols]
        cur = conn.execute(
            f"UPDATE players SET {', '.join(f'{c} = ?' for c in cols)} WHERE id = ?",
            (*values, player_id),
        )
        return cur.rowcount == 1

    def list_filtered(
        self,
        conn: sqlite3.Connection,
        position: str | None = None,
        real_team: str | None = None,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[Player]:
        """Players ordered by total_points desc, then name."""
        clauses: list[str] = []
        args: list = []
        if position:
            clauses.append("position = ?")
            args.append(position)
        if real_team:
            clauses.append("real_team = ?")
            args.append(real_team)
        if search:
            clauses.append("LOWER(name) LIKE ?")
            args.append(f"%{search.lower()}%")
        sql = f"SELECT {_PLAYER_COLS} FROM players"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY total_points DESC, name"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return [_row_to_player(r) for r in conn.execute(sql, args).fetchall()]


# ---------- RoomRepository ----------

_ROOM_COLS = (
    "id, name, visibility, code, max_participants, current_participants, "
    "creator_id, league, status, created_at, updated_at"
)


def _row_to_room(r: sqlite3.Row) -> Room:
    return Room(
        id=r["id"],
        name=r["name"],
        visibility=r["visibility"],
        code=r["code"],
        max_participants=r["max_participants"],
        current_participants=r["current_participants"],
        creator_id=r["creator_id"],
        league=r["league"],
        status=r["status"],
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]),
    )


class RoomRepository:
    """CRUD for rooms. No business logic."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        visibility: str,
        max_participants: int,
        creator_id: str,
        league: str,
        created_at: datetime,
        code: str | None = None,
        status: str = "upcoming",
        current_participants: int = 0,
        id: str | None = None,
    ) -> Room:
        rid = id or str(uuid.uuid4())
        now = _iso(created_at)
        conn.execute(
            f"INSERT INTO rooms ({_ROOM_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (rid, name, visibility, code, max_participants, current_participants,
             creator_id, league, status, now, now),
        )
        return Room(
            id=rid, name=name, visibility=visibility, code=code,
            max_participants=max_participants, current_participants=current_participants,
            creator_id=creator_id, league=league, status=status,
            created_at=_parse_datetime(now), updated_at=_parse_datetime(now),
        )

    def get(self, conn: sqlite3.Connection, room_id: str) -> Room | None:
        row = conn.execute(f"SELECT {_ROOM_COLS} FROM rooms WHERE id = ?", (room_id,)).fetchone()
        if row is None:
            return None
        return _row_to_room(row)

    def get_by_code(self, conn: sqlite3.Connection, code: str) -> Room | None:
        row = conn.execute(f"SELECT {_ROOM_COLS} FROM rooms WHERE code = ?", (code,)).fetchone()
        if row is None:
            return None
        return _row_to_room(row)

    def code_exists(self, conn: sqlite3.Connection, code: str) -> bool:
        return conn.execute("SELECT 1 FROM rooms WHERE code = ?", (code,)).fetchone() is not None

    def list_public(self, conn: sqlite3.Connection, league: str | None = None, limit: int = 20) -> list[Room]:
        if league:
            rows = conn.execute(
                f"SELECT {_ROOM_COLS} FROM rooms WHERE visibility = 'public' AND league = ? ORDER BY created_at DESC LIMIT ?",
                (league, limit),
            ).fetchall()
        else:
            rows = conn.execute(
                f"SELECT {_ROOM_COLS} FROM rooms WHERE visibility = 'public' ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_room(r) for r in rows]

    def update_code(self, conn: sqlite3.Connection, room_id: str, code: str, now: datetime) -> None:
        conn.execute("UPDATE rooms SET code = ?, updated_at = ? WHERE id = ?", (code, _iso(now), room_id))

    def update_status(self, conn: sqlite3.Connection, room_id: str, status: str, now: datetime) -> None:
        conn.execute("UPDATE rooms SET status = ?, updated_at = ? WHERE id = ?", (status, _iso(now), room_id))

    def increment_participants(self, conn: sqlite3.Connection, room_id: str, now: datetime) -> bool:
        """+1 only while below capacity. False when the room was already full."""
        cur = conn.execute(
            "UPDATE rooms SET current_participants = current_participants + 1, updated_at = ? "
            "WHERE id = ? AND current_participants < max_participants",
            (_iso(now), room_id),
        )
        return cur.rowcount == 1

    def delete(self, conn: sqlite3.Connection, room_id: str) -> None:
        conn.execute("DELETE FROM rooms WHERE id = ?", (room_id,))


# ---------- MembershipRepository ----------

_MEMBERSHIP_COLS = "room_id, user_id, total_points, rank, joined_at, last_recomputed_gameweek_id"


def _row_to_membership(r: sqlite3.Row) -> Membership:
    return Membership(
        room_id=r["room_id"],
        user_id=r["user_id"],
        total_points=r["total_points"],
        rank=r["rank"],
        joined_at=_parse_datetime(r["joined_at"]),
        last_recomputed_gameweek_id=r["last_recomputed_gameweek_id"],
    )


class MembershipRepository:
    """CRUD for memberships. One per (user, room)."""

    def create(self, conn: sqlite3.Connection, room_id: str, user_id: str, joined_at: datetime) -> Membership:
        now = _iso(joined_at)
        conn.execute(
            "INSERT INTO memberships (room_id, user_id, total_points, rank, joined_at) VALUES (?, ?, 0, NULL, ?)",
            (room_id, user_id, now),
        )
        return Membership(room_id=room_id, user_id=user_id, total_points=0.0, joined_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, room_id: str, user_id: str) -> Membership | None:
        row = conn.execute(
            f"SELECT {_MEMBERSHIP_COLS} FROM memberships WHERE room_id = ? AND user_id = ?",
            (room_id, user_id),
        ).fetchone()
        if row is None:
            return None
        return _row_to_membership(row)

    def list_by_room(self, conn: sqlite3.Connection, room_id: str) -> list[Membership]:
        rows = conn.execute(
            f"SELECT {_MEMBERSHIP_COLS} FROM memberships WHERE room_id = ? ORDER BY joined_at, user_id",
            (room_id,),
        ).fetchall()
        return [_row_to_membership(r) for r in rows]

    def list_by_user(self, conn: sqlite3.Connection, user_id: str) -> list[Membership]:
        rows = conn.execute(
            f"SELECT {_MEMBERSHIP_COLS} FROM memberships WHERE user_id = ? ORDER BY joined_at, rowid",
            (user_id,),
        ).fetchall()
        return [_row_to_membership(r) for r in rows]

    def list_recent(self, conn: sqlite3.Connection, room_id: str, limit: int = 5) -> list[Membership]:
        rows = conn.execute(
            f"SELECT {_MEMBERSHIP_COLS} FROM memberships WHERE room_id = ? ORDER BY joined_at DESC, rowid DESC LIMIT ?",
            (room_id, limit),
        ).fetchall()
        return [_row_to_membership(r) for r in rows]

    def count_by_room(self, conn: sqlite3.Connection, room_id: str) -> int:
        return conn.execute("SELECT COUNT(*) FROM memberships WHERE room_id = ?", (room_id,)).fetchone()[0]

    def update_cache(
        self,
        conn: sqlite3.Connection,
        room_id: str,
        user_id: str,
        total_points: float,
        rank: int,
        gameweek_id: str,
    ) -> None:
        conn.execute(
            "UPDATE memberships SET total_points = ?, rank = ?, last_recomputed_gameweek_id = ? "
            "WHERE room_id = ? AND user_id = ?",
            (total_points, rank, gameweek_id, room_id, user_id),
        )

    def delete_by_room(self, conn: sqlite3.Connection, room_id: str) -> int:
        return conn.execute("DELETE FROM memberships WHERE room_id = ?", (room_id,)).rowcount


# ---------- GameweekRepository ----------

_GAMEWEEK_COLS = "id, number, league, season, deadline, status, is_active, created_at, updated_at"


def _row_to_gameweek(r: sqlite3.Row) -> Gameweek:
    return Gameweek(
        id=r["id"],
        number=r["number"],
        league=r["league"],
        season=r["season"],
        deadline=_parse_datetime(r["deadline"]),
        status=r["status"],
        is_active=bool(r["is_active"]),
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]),
    )


class GameweekRepository:
    """CRUD for gameweeks. No business logic."""

    def create(
        self,
        conn: sqlite3.Connection,
        number: int,
        league: str,
        season: str,
        deadline: datetime,
        created_at: datetime,
        id: str | None = None,
    ) -> Gameweek:
        gid = id or str(uuid.uuid4())
        now = _iso(created_at)
        conn.execute(
            f"INSERT INTO gameweeks ({_GAMEWEEK_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (gid, number, league, season, _iso(deadline), "upcoming", 0, now, now),
        )
        return Gameweek(
            id=gid, number=number, league=league, season=season,
            deadline=ensure_utc(deadline), status="upcoming", is_active=False,
            created_at=_parse_datetime(now), updated_at=_parse_datetime(now),
        )

    def get(self, conn: sqlite3.Connection, gameweek_id: str) -> Gameweek | None:
        row = conn.execute(f"SELECT {_GAMEWEEK_COLS} FROM gameweeks WHERE id = ?", (gameweek_id,)).fetchone()
        if row is None:
            return None
        return _row_to_gameweek(row)

    def get_active(self, conn: sqlite3.Connection, league: str) -> Gameweek | None:
        row = conn.execute(
            f"SELECT {_GAMEWEEK_COLS} FROM gameweeks WHERE league = ? AND is_active = 1",
            (league,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_gameweek(row)

    def list_active(self, conn: sqlite3.Connection, league: str) -> list[Gameweek]:
        rows = conn.execute(
            f"SELECT {_GAMEWEEK_COLS} FROM gameweeks WHERE league = ? AND is_active = 1",
            (league,),
        ).fetchall()
        return [_row_to_gameweek(r) for r in rows]

    def list_by_league(
        self, conn: sqlite3.Connection, league: str, season: str | None = None, status: str | None = None
    ) -> list[Gameweek]:
        """Gameweeks ordered by number, then id."""
        sql = f"SELECT {_GAMEWEEK_COLS} FROM gameweeks WHERE league = ?"
        args: list = [league]
        if season:
            sql += " AND season = ?"
            args.append(season)
        if status:
            sql += " AND status = ?"
            args.append(status)
        sql += " ORDER BY number, id"
        return [_row_to_gameweek(r) for r in conn.execute(sql, args).fetchall()]

    def count_by_league(self, conn: sqlite3.Connection, league: str) -> int:
        return conn.execute("SELECT COUNT(*) FROM gameweeks WHERE league = ?", (league,)).fetchone()[0]

    def update_status(
        self, conn: sqlite3.Connection, gameweek_id: str, status: str, is_active: bool, now: datetime
    ) -> None:
        conn.execute(
            "UPDATE gameweeks SET status = ?, is_active = ?, updated_at = ? WHERE id = ?",
            (status, 1 if is_active else 0, _iso(now), gameweek_id),
        )

    def update_deadline(self, conn: sqlite3.Connection, gameweek_id: str, deadline: datetime, now: datetime) -> None:
        conn.execute(
            "UPDATE gameweeks SET deadline = ?, updated_at = ? WHERE id = ?",
            (_iso(deadline), _iso(now), gameweek_id),
        )


# ---------- TeamRepository ----------

_TEAM_COLS = (
    "id, user_id, gameweek_id, room_id, formation, goalkeeper, defenders, midfielders, forwards, "
    "bench_goalkeeper, bench_defender, bench_midfielder, bench_forward, captain_id, vice_captain_id, "
    "substitution_tokens_used, total_points, is_submitted, submitted_at, created_at, updated_at"
)


def _row_to_team(r: sqlite3.Row) -> Team:
    roster = RosterSubmission(
        formation=r["formation"],
        goalkeeper=PlayerId(r["goalkeeper"]),
        defenders=[PlayerId(p) for p in json.loads(r["defenders"])],
        midfielders=[PlayerId(p) for p in json.loads(r["midfielders"])],
        forwards=[PlayerId(p) for p in json.loads(r["forwards"])],
        bench_goalkeeper=PlayerId(r["bench_goalkeeper"]),
        bench_defender=PlayerId(r["bench_defender"]),
        bench_midfielder=PlayerId(r["bench_midfielder"]),
        bench_forward=PlayerId(r["bench_forward"]),
        captain_id=PlayerId(r["captain_id"]),
        vice_captain_id=PlayerId(r["vice_captain_id"]),
    )
    return Team(
        id=r["id"],
        user_id=r["user_id"],
        gameweek_id=r["gameweek_id"],
        room_id=r["room_id"],
        roster=roster,
        substitution_tokens_used=r["substitution_tokens_used"],
        total_points=r["total_points"],
        is_submitted=bool(r["is_submitted"]),
        submitted_at=_parse_datetime(r["submitted_at"]) if r["submitted_at"] else None,
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]),
    )


def _roster_values(roster: RosterSubmission) -> tuple:
    return (
        roster.formation,
        roster.goalkeeper,
        json.dumps(list(roster.defenders)),
        json.dumps(list(roster.midfielders)),
        json.dumps(list(roster.forwards)),
        roster.bench_goalkeeper,
        roster.bench_defender,
        roster.bench_midfielder,
        roster.bench_forward,
        roster.captain_id,
        roster.vice_captain_id,
    )


class TeamRepository:
    """CRUD for roster snapshots. One per (user, gameweek, room)."""

    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        gameweek_id: str,
        room_id: str,
        roster: RosterSubmission,
        submitted_at: datetime,
        substitution_tokens_used: int = 0,
        total_points: float = 0.0,
        id: str | None = None,
    ) -> Team:
        tid = id or str(uuid.uuid4())
        now = _iso(submitted_at)
        conn.execute(
            f"INSERT INTO teams ({_TEAM_COLS}) VALUES ({', '.join('?' for _ in range(21))})",
            (tid, user_id, gameweek_id, room_id, *_roster_values(roster),
             substitution_tokens_used, total_points, 1, _iso(submitted_at), now, now),
        )
        return Team(
            id=tid, user_id=user_id, gameweek_id=gameweek_id, room_id=room_id, roster=roster,
            substitution_tokens_used=substitution_tokens_used, total_points=total_points, is_submitted=True,
            created_at=ensure_utc(submitted_at), updated_at=ensure_utc(submitted_at),
            submitted_at=ensure_utc(submitted_at),
        )

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute(f"SELECT {_TEAM_COLS} FROM teams WHERE id = ?", (team_id,)).fetchone()
        if row is None:
            return None
        return _row_to_team(row)

    def get_for(self, conn: sqlite3.Connection, user_id: str, gameweek_id: str, room_id: str) -> Team | None:
        row = conn.execute(
            f"SELECT {_TEAM_COLS} FROM teams WHERE user_id = ? AND gameweek_id = ? AND room_id = ?",
            (user_id, gameweek_id, room_id),
        ).fetchone()
        if row is None:
            return None
        return _row_to_team(row)

    def list_by_room_gameweek(self, conn: sqlite3.Connection, room_id: str, gameweek_id: str) -> list[Team]:
        rows = conn.execute(
            f"SELECT {_TEAM_COLS} FROM teams WHERE room_id = ? AND gameweek_id = ? ORDER BY user_id",
            (room_id, gameweek_id),
        ).fetchall()
        return [_row_to_team(r) for r in rows]

    def list_ids_by_room(self, conn: sqlite3.Connection, room_id: str) -> list[str]:
        rows = conn.execute("SELECT id FROM teams WHERE room_id = ?", (room_id,)).fetchall()
        return [r["id"] for r in rows]

    def overwrite_roster(
        self, conn: sqlite3.Connection, team_id: str, roster: RosterSubmission, submitted_at: datetime
    ) -> None:
        """Replace the roster fields only; tokens and points stay as they are."""
        conn.execute(
            "UPDATE teams SET formation = ?, goalkeeper = ?, defenders = ?, midfielders = ?, forwards = ?, "
            "bench_goalkeeper = ?, bench_defender = ?, bench_midfielder = ?, bench_forward = ?, "
            "captain_id = ?, vice_captain_id = ?, is_submitted = 1, submitted_at = ?, updated_at = ? WHERE id = ?",
            (*_roster_values(roster), _iso(submitted_at), _iso(submitted_at), team_id),
        )

    def update_captains(
        self, conn: sqlite3.Connection, team_id: str, captain_id: str, vice_captain_id: str, now: datetime
    ) -> None:
        conn.execute(
            "UPDATE teams SET captain_id = ?, vice_captain_id = ?, updated_at = ? WHERE id = ?",
            (captain_id, vice_captain_id, _iso(now), team_id),
        )

    def apply_substitution(
        self, conn: sqlite3.Connection, team_id: str, roster: RosterSubmission, tokens_used: int, now: datetime
    ) -> None:
        """Store the swapped roster together with the new token count."""
        conn.execute(
            "UPDATE teams SET formation = ?, goalkeeper = ?, defenders = ?, midfielders = ?, forwards = ?, "
            "bench_goalkeeper = ?, bench_defender = ?, bench_midfielder = ?, bench_forward = ?, "
            "captain_id = ?, vice_captain_id = ?, substitution_tokens_used = ?, updated_at = ? WHERE id = ?",
            (*_roster_values(roster), tokens_used, _iso(now), team_id),
        )

    def update_points(self, conn: sqlite3.Connection, team_id: str, total_points: float, now: datetime) -> None:
        conn.execute(
            "UPDATE teams SET total_points = ?, updated_at = ? WHERE id = ?",
            (total_points, _iso(now), team_id),
        )

    def delete_by_room(self, conn: sqlite3.Connection, room_id: str) -> int:
        return conn.execute("DELETE FROM teams WHERE room_id = ?", (room_id,)).rowcount

    def count_by_room(self, conn: sqlite3.Connection, room_id: str) -> int:
        return conn.execute("SELECT COUNT(*) FROM teams WHERE room_id = ?", (room_id,)).fetchone()[0]


# ---------- SubstitutionRepository ----------


class SubstitutionRepository:
    """Append-only history of applied substitutions."""

    def create(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        user_id: str,
        gameweek_id: str,
        player_out_id: str,
        player_in_id: str,
        made_at: datetime,
        id: str | None = None,
    ) -> Substitution:
        sid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO substitutions (id, team_id, user_id, gameweek_id, player_out_id, player_in_id, made_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (sid, team_id, user_id, gameweek_id, player_out_id, player_in_id, _iso(made_at)),
        )
        return Substitution(
            id=sid, team_id=team_id, user_id=user_id, gameweek_id=gameweek_id,
            player_out_id=PlayerId(player_out_id), player_in_id=PlayerId(player_in_id),
            made_at=ensure_utc(made_at),
        )

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[Substitution]:
        rows = conn.execute(
            "SELECT id, team_id, user_id, gameweek_id, player_out_id, player_in_id, made_at "
            "FROM substitutions WHERE team_id = ? ORDER BY made_at, rowid",
            (team_id,),
        ).fetchall()
        return [
            Substitution(
                id=r["id"], team_id=r["team_id"], user_id=r["user_id"], gameweek_id=r["gameweek_id"],
                player_out_id=PlayerId(r["player_out_id"]), player_in_id=PlayerId(r["player_in_id"]),
                made_at=_parse_datetime(r["made_at"]),
            )
            for r in rows
        ]

    def delete_by_room(self, conn: sqlite3.Connection, room_id: str) -> int:
        return conn.execute(
            "DELETE FROM substitutions WHERE team_id IN (SELECT id FROM teams WHERE room_id = ?)",
            (room_id,),
        ).rowcount


# ---------- StandingRepository ----------

_STANDING_COLS = "room_id, gameweek_id, user_id, gameweek_points, total_points, rank"


def _row_to_standing(r: sqlite3.Row) -> Standing:
    return Standing(
        room_id=r["room_id"],
        gameweek_id=r["gameweek_id"],
        user_id=r["user_id"],
        gameweek_points=r["gameweek_points"],
        total_points=r["total_points"],
        rank=r["rank"],
    )


class StandingRepository:
    """Per-(room, gameweek, user) standings. Upsert by key."""

    def upsert(self, conn: sqlite3.Connection, standing: Standing, now: datetime) -> None:
        stamp = _iso(now)
        conn.execute(
            "INSERT INTO standings (room_id, gameweek_id, user_id, gameweek_points, total_points, rank, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT (room_id, gameweek_id, user_id) DO UPDATE SET "
            "gameweek_points = excluded.gameweek_points, total_points = excluded.total_points, "
            "rank = excluded.rank, updated_at = excluded.updated_at",
            (standing.room_id, standing.gameweek_id, standing.user_id,
             standing.gameweek_points, standing.total_points, standing.rank, stamp, stamp),
        )

    def get(self, conn: sqlite3.Connection, room_id: str, gameweek_id: str, user_id: str) -> Standing | None:
        row = conn.execute(
            f"SELECT {_STANDING_COLS} FROM standings WHERE room_id = ? AND gameweek_id = ? AND user_id = ?",
            (room_id, gameweek_id, user_id),
        ).fetchone()
        if row is None:
            return None
        return _row_to_standing(row)

    def list_by_room_gameweek(self, conn: sqlite3.Connection, room_id: str, gameweek_id: str) -> list[Standing]:
        rows = conn.execute(
            f"SELECT {_STANDING_COLS} FROM standings WHERE room_id = ? AND gameweek_id = ? ORDER BY rank, user_id",
            (room_id, gameweek_id),
        ).fetchall()
        return [_row_to_standing(r) for r in rows]

    def latest_before(
        self, conn: sqlite3.Connection, room_id: str, user_id: str, league: str, season: str, before_number: int
    ) -> Standing | None:
        """The user's standing for the latest gameweek of the same season numbered below before_number."""
        row = conn.execute(
            "SELECT s.room_id, s.gameweek_id, s.user_id, s.gameweek_points, s.total_points, s.rank "
            "FROM standings s JOIN gameweeks g ON g.id = s.gameweek_id "
            "WHERE s.room_id = ? AND s.user_id = ? AND g.league = ? AND g.season = ? AND g.number < ? "
            "ORDER BY g.number DESC, g.id DESC LIMIT 1",
            (room_id, user_id, league, season, before_number),
        ).fetchone()
        if row is None:
            return None
        return _row_to_standing(row)

    def delete_by_room(self, conn: sqlite3.Connection, room_id: str) -> int:
        return conn.execute("DELETE FROM standings WHERE room_id = ?", (room_id,)).rowcount

    def count_by_room(self, conn: sqlite3.Connection, room_id: str) -> int:
        return conn.execute("SELECT COUNT(*) FROM standings WHERE room_id = ?", (room_id,)).fetchone()[0]
