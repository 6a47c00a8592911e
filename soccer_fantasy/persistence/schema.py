"""
SQLite schema for fantasy entities.
Migration-friendly: each table created with IF NOT EXISTS.
Timestamps are ISO-8601 UTC strings.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """


def players_schema() -> str:
    """Player catalog. position: GK | DEF | MID | FWD."""
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        position TEXT NOT NULL,
        real_team TEXT NOT NULL,
        injured INTEGER NOT NULL DEFAULT 0,
        suspended INTEGER NOT NULL DEFAULT 0,
        total_goals INTEGER NOT NULL DEFAULT 0,
        total_assists INTEGER NOT NULL DEFAULT 0,
        total_points INTEGER NOT NULL DEFAULT 0
    );
    CREATE INDEX IF NOT EXISTS ix_players_position ON players(position);
    CREATE INDEX IF NOT EXISTS ix_players_real_team ON players(real_team);
    """


def rooms_schema() -> str:
    """Fantasy leagues. visibility: public | private. status: upcoming | active | completed. code only for private."""
    return """
    CREATE TABLE IF NOT EXISTS rooms (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        visibility TEXT NOT NULL,
        code TEXT,
        max_participants INTEGER NOT NULL,
        current_participants INTEGER NOT NULL DEFAULT 0,
        creator_id TEXT NOT NULL,
        league TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'upcoming',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        CHECK (current_participants <= max_participants),
        FOREIGN KEY (creator_id) REFERENCES users(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_rooms_code ON rooms(code) WHERE code IS NOT NULL;
    CREATE INDEX IF NOT EXISTS ix_rooms_creator ON rooms(creator_id);
    CREATE INDEX IF NOT EXISTS ix_rooms_visibility ON rooms(visibility);
    CREATE INDEX IF NOT EXISTS ix_rooms_league ON rooms(league);
    """


def memberships_schema() -> str:
    """One membership per (user, room). total_points / rank mirror the latest standing."""
    return """
    CREATE TABLE IF NOT EXISTS memberships (
        room_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        total_points REAL NOT NULL DEFAULT 0,
        rank INTEGER,
        joined_at TEXT NOT NULL,
        PRIMARY KEY (user_id, room_id),
        FOREIGN KEY (room_id) REFERENCES rooms(id),
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_memberships_room ON memberships(room_id);
    """
    # last_recomputed_gameweek_id added via migration


def gameweeks_schema() -> str:
    """Scoring windows. status: upcoming | active | completed. At most one is_active per league."""
    return """
    CREATE TABLE IF NOT EXISTS gameweeks (
        id TEXT PRIMARY KEY,
        number INTEGER NOT NULL,
        league TEXT NOT NULL,
        season TEXT NOT NULL,
        deadline TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'upcoming',
        is_active INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_gameweeks_league_season ON gameweeks(league, season);
    CREATE INDEX IF NOT EXISTS ix_gameweeks_status ON gameweeks(status);
    CREATE UNIQUE INDEX IF NOT EXISTS ix_gameweeks_one_active ON gameweeks(league) WHERE is_active = 1;
    """


def teams_schema() -> str:
    """Roster snapshot per (user, gameweek, room). Line lists stored as JSON arrays."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        gameweek_id TEXT NOT NULL,
        room_id TEXT NOT NULL,
        formation TEXT NOT NULL,
        goalkeeper TEXT NOT NULL,
        defenders TEXT NOT NULL,
        midfielders TEXT NOT NULL,
        forwards TEXT NOT NULL,
        bench_goalkeeper TEXT NOT NULL,
        bench_defender TEXT NOT NULL,
        bench_midfielder TEXT NOT NULL,
        bench_forward TEXT NOT NULL,
        captain_id TEXT NOT NULL,
        vice_captain_id TEXT NOT NULL,
        substitution_tokens_used INTEGER NOT NULL DEFAULT 0,
        total_points REAL NOT NULL DEFAULT 0,
        is_submitted INTEGER NOT NULL DEFAULT 1,
        submitted_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (gameweek_id) REFERENCES gameweeks(id),
        FOREIGN KEY (room_id) REFERENCES rooms(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_teams_user_gameweek_room ON teams(user_id, gameweek_id, room_id);
    CREATE INDEX IF NOT EXISTS ix_teams_room ON teams(room_id);
    CREATE INDEX IF NOT EXISTS ix_teams_gameweek ON teams(gameweek_id);
    """


def substitutions_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS substitutions (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        gameweek_id TEXT NOT NULL,
        player_out_id TEXT NOT NULL,
        player_in_id TEXT NOT NULL,
        made_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (player_out_id) REFERENCES players(id),
        FOREIGN KEY (player_in_id) REFERENCES players(id)
    );
    CREATE INDEX IF NOT EXISTS ix_substitutions_team ON substitutions(team_id);
    CREATE INDEX IF NOT EXISTS ix_substitutions_user_gameweek ON substitutions(user_id, gameweek_id);
    """


def standings_schema() -> str:
    """Derived per-(room, gameweek, user) points and rank."""
    return """
    CREATE TABLE IF NOT EXISTS standings (
        room_id TEXT NOT NULL,
        gameweek_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        gameweek_points REAL NOT NULL,
        total_points REAL NOT NULL,
        rank INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (room_id, gameweek_id, user_id),
        FOREIGN KEY (room_id) REFERENCES rooms(id),
        FOREIGN KEY (gameweek_id) REFERENCES gameweeks(id)
    );
    CREATE INDEX IF NOT EXISTS ix_standings_room_rank ON standings(room_id, rank);
    CREATE INDEX IF NOT EXISTS ix_standings_user ON standings(user_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order: users, players, rooms, memberships, gameweeks, teams, substitutions, standings."""
    return "\n".join([
        users_schema(),
        players_schema(),
        rooms_schema(),
        memberships_schema(),
        gameweeks_schema(),
        teams_schema(),
        substitutions_schema(),
        standings_schema(),
    ])
