"""
Data models for the soccer fantasy engine.
Domain objects only; no persistence or API logic.

Room-centric architecture: users join rooms (fantasy leagues); each room follows
a real-world league whose gameweeks are the scoring windows; a user submits one
roster snapshot per (gameweek, room).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, NewType

PlayerId = NewType("PlayerId", str)


# ---------- Player position ----------
class Position(str, Enum):
    GK = "GK"
    DEF = "DEF"
    MID = "MID"
    FWD = "FWD"


# ---------- Formations: label -> (defenders, midfielders, forwards) ----------
FORMATIONS: dict[str, tuple[int, int, int]] = {
    "4-3-3": (4, 3, 3),
    "4-4-2": (4, 4, 2),
    "3-5-2": (3, 5, 2),
    "4-5-1": (4, 5, 1),
    "3-4-3": (3, 4, 3),
    "5-3-2": (5, 3, 2),
    "5-4-1": (5, 4, 1),
}


# ---------- Room visibility / status ----------
class RoomVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class RoomStatus(str, Enum):
    """Room lifecycle: upcoming → active → completed."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


# ---------- Gameweek status (state machine) ----------
class GameweekStatus(str, Enum):
    """Gameweek lifecycle: upcoming → active → completed."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


# ---------- User ----------
@dataclass
class User:
    """A fantasy app user. Created on first action; no credentials stored."""
    id: str
    name: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Player ----------
@dataclass
class Player:
    """
    A real-world player from the catalog.
    Identity (id, name, position) is immutable; availability and stats change.
    """
    id: PlayerId
    name: str
    position: Position
    real_team: str
    injured: bool = False
    suspended: bool = False
    total_goals: int = 0
    total_assists: int = 0
    total_points: int = 0

    @property
    def available(self) -> bool:
        return not (self.injured or self.suspended)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position.value,
            "real_team": self.real_team,
            "injured": self.injured,
            "suspended": self.suspended,
            "total_goals": self.total_goals,
            "total_assists": self.total_assists,
            "total_points": self.total_points,
        }


# ---------- Room (fantasy league) ----------
@dataclass
class Room:
    """
    Competition instance users join directly or via code.
    Invariant: current_participants <= max_participants.
    code is set only for private rooms.
    """
    id: str
    name: str
    visibility: str  # RoomVisibility value
    max_participants: int
    current_participants: int
    creator_id: str
    league: str  # real-world league key, e.g. "premier_league"
    status: str  # RoomStatus value
    created_at: datetime
    updated_at: datetime
    code: str | None = None

    @property
    def is_full(self) -> bool:
        return self.current_participants >= self.max_participants

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "visibility": self.visibility,
            "max_participants": self.max_participants,
            "current_participants": self.current_participants,
            "creator_id": self.creator_id,
            "league": self.league,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.code is not None:
            d["code"] = self.code
        return d


# ---------- Membership ----------
@dataclass
class Membership:
    """
    One user's membership in one room.
    total_points and rank are a cache of the latest Standing; last_recomputed_gameweek_id
    marks which gameweek that cache reflects.
    """
    room_id: str
    user_id: str
    total_points: float
    joined_at: datetime
    rank: int | None = None
    last_recomputed_gameweek_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "user_id": self.user_id,
            "total_points": self.total_points,
            "rank": self.rank,
            "joined_at": self.joined_at.isoformat(),
            "last_recomputed_gameweek_id": self.last_recomputed_gameweek_id,
        }


# ---------- Gameweek ----------
@dataclass
class Gameweek:
    """
    One scoring window for a real-world league.
    At most one gameweek per league has is_active = True.
    """
    id: str
    number: int
    league: str
    season: str
    deadline: datetime
    status: str  # GameweekStatus value
    is_active: bool
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "league": self.league,
            "season": self.season,
            "deadline": self.deadline.isoformat(),
            "status": self.status,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# ---------- Roster submission (input to validation) ----------
@dataclass
class RosterSubmission:
    """
    The user-supplied part of a roster: formation, starting XI by line,
    one bench player per position, captain and vice-captain.
    """
    formation: str
    goalkeeper: PlayerId
    defenders: list[PlayerId]
    midfielders: list[PlayerId]
    forwards: list[PlayerId]
    bench_goalkeeper: PlayerId
    bench_defender: PlayerId
    bench_midfielder: PlayerId
    bench_forward: PlayerId
    captain_id: PlayerId
    vice_captain_id: PlayerId

    def starting_xi(self) -> list[PlayerId]:
        return [self.goalkeeper, *self.defenders, *self.midfielders, *self.forwards]

    def bench(self) -> list[PlayerId]:
        return [self.bench_goalkeeper, self.bench_defender, self.bench_midfielder, self.bench_forward]

    def slots(self) -> list[tuple[str, Position, PlayerId]]:
        """(slot name, required position, player) for all 15 slots, starters first."""
        out: list[tuple[str, Position, PlayerId]] = [("goalkeeper", Position.GK, self.goalkeeper)]
        out += [(f"defenders[{i}]", Position.DEF, pid) for i, pid in enumerate(self.defenders)]
        out += [(f"midfielders[{i}]", Position.MID, pid) for i, pid in enumerate(self.midfielders)]
        out += [(f"forwards[{i}]", Position.FWD, pid) for i, pid in enumerate(self.forwards)]
        out += [
            ("bench_goalkeeper", Position.GK, self.bench_goalkeeper),
            ("bench_defender", Position.DEF, self.bench_defender),
            ("bench_midfielder", Position.MID, self.bench_midfielder),
            ("bench_forward", Position.FWD, self.bench_forward),
        ]
        return out


# ---------- Team (roster snapshot) ----------
@dataclass
class Team:
    """
    One user's roster snapshot for one (gameweek, room).
    Re-submission overwrites the roster but keeps substitution_tokens_used and total_points.
    """
    id: str
    user_id: str
    gameweek_id: str
    room_id: str
    roster: RosterSubmission
    substitution_tokens_used: int
    total_points: float
    is_submitted: bool
    created_at: datetime
    updated_at: datetime
    submitted_at: datetime | None = None

    @property
    def formation(self) -> str:
        return self.roster.formation

    def player_ids(self) -> list[PlayerId]:
        return self.roster.starting_xi() + self.roster.bench()

    def to_dict(self) -> dict[str, Any]:
        r = self.roster
        d: dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "gameweek_id": self.gameweek_id,
            "room_id": self.room_id,
            "formation": r.formation,
            "goalkeeper": r.goalkeeper,
            "defenders": list(r.defenders),
            "midfielders": list(r.midfielders),
            "forwards": list(r.forwards),
            "bench_goalkeeper": r.bench_goalkeeper,
            "bench_defender": r.bench_defender,
            "bench_midfielder": r.bench_midfielder,
            "bench_forward": r.bench_forward,
            "captain_id": r.captain_id,
            "vice_captain_id": r.vice_captain_id,
            "substitution_tokens_used": self.substitution_tokens_used,
            "total_points": self.total_points,
            "is_submitted": self.is_submitted,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.submitted_at is not None:
            d["submitted_at"] = self.submitted_at.isoformat()
        return d


# ---------- Substitution (history) ----------
@dataclass
class Substitution:
    """One applied substitution. Each consumes a token on the team."""
    id: str
    team_id: str
    user_id: str
    gameweek_id: str
    player_out_id: PlayerId
    player_in_id: PlayerId
    made_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "gameweek_id": self.gameweek_id,
            "player_out_id": self.player_out_id,
            "player_in_id": self.player_in_id,
            "made_at": self.made_at.isoformat(),
        }


# ---------- Standing ----------
@dataclass
class Standing:
    """Derived per-(room, gameweek, user) record. Recomputed, never hand-edited."""
    room_id: str
    gameweek_id: str
    user_id: str
    gameweek_points: float
    total_points: float
    rank: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "gameweek_id": self.gameweek_id,
            "user_id": self.user_id,
            "gameweek_points": self.gameweek_points,
            "total_points": self.total_points,
            "rank": self.rank,
        }
