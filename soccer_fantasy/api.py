"""
REST API for the soccer fantasy engine.
Thin wrappers around the services; every domain error maps to an HTTP status.
There is no authentication: the acting user_id comes with the request.
"""
from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncGenerator, Generator

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

# Ensure project root on path
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from soccer_fantasy.catalog import get_player, list_players, update_player_stats, update_player_status
from soccer_fantasy.clock import Clock, SystemClock
from soccer_fantasy.config import get_settings
from soccer_fantasy.errors import FantasyError, PlayerNotFound
from soccer_fantasy.logging_config import get_logger, setup_logging
from soccer_fantasy.models import PlayerId, RosterSubmission
from soccer_fantasy.persistence import get_connection, init_db
from soccer_fantasy.persistence.db import get_db_path
from soccer_fantasy.services import (
    GameweekService,
    RoomService,
    StandingsService,
    SubstitutionService,
    TeamService,
)

logger = get_logger(__name__)

# Time source for deadlines; tests swap in a FixedClock.
clock: Clock = SystemClock()


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit. Domain errors become HTTP errors."""
    conn = get_connection()
    try:
        yield conn
    except FantasyError as e:
        logger.info("Request rejected: %s (%s)", e.code, e)
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging(level=get_settings().log_level)
    init_db(db_path=get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Soccer Fantasy API",
    description="Rosters, gameweeks, rooms and standings for fantasy soccer",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _gameweeks() -> GameweekService:
    return GameweekService(clock=clock, settings=get_settings())


def _rooms() -> RoomService:
    return RoomService(clock=clock, settings=get_settings())


def _teams() -> TeamService:
    return TeamService(clock=clock)


def _substitutions() -> SubstitutionService:
    return SubstitutionService(clock=clock, settings=get_settings())


# ---------- Request models ----------


class UserRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class CreateGameweekRequest(BaseModel):
    number: int = Field(..., ge=1)
    league: str = Field(..., min_length=1)
    season: str = Field(..., min_length=1)
    deadline: datetime


class BootstrapGameweekRequest(BaseModel):
    league: str = Field(..., min_length=1)


class CreateRoomRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    visibility: str = Field(..., pattern="^(public|private)$")
    max_participants: int = Field(..., ge=1, le=1000)
    league: str = Field(..., min_length=1)


class DefaultRoomRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    league: str = "premier_league"


class JoinByCodeRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)


class RoomStatusRequest(BaseModel):
    status: str = Field(..., pattern="^(upcoming|active|completed)$")


class SaveTeamRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    gameweek_id: str
    room_id: str
    formation: str
    goalkeeper: str
    defenders: list[str]
    midfielders: list[str]
    forwards: list[str]
    bench_goalkeeper: str
    bench_defender: str
    bench_midfielder: str
    bench_forward: str
    captain_id: str
    vice_captain_id: str

    def to_submission(self) -> RosterSubmission:
        return RosterSubmission(
            formation=self.formation,
            goalkeeper=PlayerId(self.goalkeeper),
            defenders=[PlayerId(p) for p in self.defenders],
            midfielders=[PlayerId(p) for p in self.midfielders],
            forwards=[PlayerId(p) for p in self.forwards],
            bench_goalkeeper=PlayerId(self.bench_goalkeeper),
            bench_defender=PlayerId(self.bench_defender),
            bench_midfielder=PlayerId(self.bench_midfielder),
            bench_forward=PlayerId(self.bench_forward),
            captain_id=PlayerId(self.captain_id),
            vice_captain_id=PlayerId(self.vice_captain_id),
        )


class CaptainsRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    gameweek_id: str
    room_id: str
    captain_id: str
    vice_captain_id: str


class SubstitutionRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    gameweek_id: str
    room_id: str
    player_out: str
    player_in: str


class PointsRequest(BaseModel):
    points: float


class PlayerStatusRequest(BaseModel):
    injured: bool | None = None
    suspended: bool | None = None


class PlayerStatsRequest(BaseModel):
    goals: int | None = Field(None, ge=0)
    assists: int | None = Field(None, ge=0)
    points: int | None = None


class FormationCheckRequest(BaseModel):
    formation: str
    defenders: int = Field(..., ge=0)
    midfielders: int = Field(..., ge=0)
    forwards: int = Field(..., ge=0)


# ---------- Health ----------


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok"}


# ---------- Players ----------


@app.get("/players")
def get_players(
    position: str | None = Query(None, pattern="^(GK|DEF|MID|FWD)$"),
    real_team: str | None = None,
    search: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
) -> dict[str, Any]:
    """List catalog players, best first. Optional filters: position, real_team, name search."""
    with db_conn() as conn:
        players = list_players(conn, position=position, real_team=real_team, search=search, limit=limit)
        return {"players": [p.to_dict() for p in players]}


@app.get("/players/{player_id}")
def get_player_detail(player_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        player = get_player(conn, player_id)
        if player is None:
            raise PlayerNotFound(player_id)
        return player.to_dict()


@app.post("/players/{player_id}/status")
def set_player_status(player_id: str, req: PlayerStatusRequest) -> dict[str, Any]:
    """Injury / suspension flags. Omitted fields are left unchanged."""
    with db_conn() as conn:
        return update_player_status(conn, player_id, injured=req.injured, suspended=req.suspended).to_dict()


@app.post("/players/{player_id}/stats")
def set_player_stats(player_id: str, req: PlayerStatsRequest) -> dict[str, Any]:
    with db_conn() as conn:
        player = update_player_stats(conn, player_id, goals=req.goals, assists=req.assists, points=req.points)
        return player.to_dict()


# ---------- Gameweeks ----------


@app.post("/gameweeks")
def create_gameweek(req: CreateGameweekRequest) -> dict[str, Any]:
    with db_conn() as conn:
        gw = _gameweeks().create_gameweek(conn, req.number, req.league, req.season, req.deadline)
        return gw.to_dict()


@app.get("/gameweeks")
def list_gameweeks(league: str, season: str | None = None) -> dict[str, Any]:
    with db_conn() as conn:
        return {"gameweeks": [gw.to_dict() for gw in _gameweeks().list_gameweeks(conn, league, season=season)]}


@app.get("/gameweeks/active")
def get_active_gameweek(league: str) -> dict[str, Any]:
    """The league's active gameweek, or null."""
    with db_conn() as conn:
        gw = _gameweeks().get_current_active(conn, league)
        return {"gameweek": gw.to_dict() if gw else None}


@app.get("/gameweeks/next")
def get_next_gameweek(league: str) -> dict[str, Any]:
    """The upcoming gameweek with the earliest future deadline, or null."""
    with db_conn() as conn:
        gw = _gameweeks().get_next(conn, league)
        return {"gameweek": gw.to_dict() if gw else None}


@app.post("/gameweeks/bootstrap")
def bootstrap_gameweek(req: BootstrapGameweekRequest) -> dict[str, Any]:
    with db_conn() as conn:
        return _gameweeks().activate_first_if_none(conn, req.league).to_dict()


@app.get("/gameweeks/{gameweek_id}")
def get_gameweek(gameweek_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        svc = _gameweeks()
        gw = svc.get(conn, gameweek_id)
        d = gw.to_dict()
        d["deadline_passed"] = svc.is_deadline_passed(conn, gameweek_id)
        return d


@app.post("/gameweeks/{gameweek_id}/activate")
def activate_gameweek(gameweek_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return _gameweeks().activate(conn, gameweek_id).to_dict()


@app.post("/gameweeks/{gameweek_id}/complete")
def complete_gameweek(gameweek_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return _gameweeks().complete(conn, gameweek_id).to_dict()


# ---------- Rooms ----------


@app.post("/rooms")
def create_room(req: CreateRoomRequest) -> dict[str, Any]:
    """Create a room; the creator is its first member. Private rooms get a join code."""
    with db_conn() as conn:
        room = _rooms().create_room(
            conn, req.name, req.visibility, req.max_participants, req.user_id, req.league
        )
        return room.to_dict()


@app.post("/rooms/default")
def create_default_room(req: DefaultRoomRequest) -> dict[str, Any]:
    with db_conn() as conn:
        return _rooms().create_default_room(conn, req.user_id, req.league).to_dict()


@app.get("/rooms")
def list_rooms(
    user_id: str | None = Query(None, description="If set, return the rooms this user belongs to"),
    league: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
) -> dict[str, Any]:
    """Public rooms, or with user_id the user's own rooms (with their points and rank)."""
    with db_conn() as conn:
        svc = _rooms()
        if user_id:
            return {"rooms": svc.list_user_rooms(conn, user_id)}
        return {"rooms": [r.to_dict() for r in svc.list_public_rooms(conn, league=league, limit=limit)]}


@app.post("/rooms/join-by-code")
def join_room_by_code(req: JoinByCodeRequest) -> dict[str, Any]:
    with db_conn() as conn:
        room = _rooms().join_room(conn, req.user_id, code=req.code)
        return {"room": room.to_dict(), "user_id": req.user_id, "joined": True}


@app.get("/rooms/code/{code}")
def get_room_by_code(code: str) -> dict[str, Any]:
    with db_conn() as conn:
        return _rooms().get_room_by_code(conn, code).to_dict()


@app.get("/rooms/{room_id}")
def get_room(room_id: str) -> dict[str, Any]:
    """Room with members ordered by rank."""
    with db_conn() as conn:
        return _rooms().get_room_with_members(conn, room_id)


@app.post("/rooms/{room_id}/join")
def join_room(room_id: str, req: UserRequest) -> dict[str, Any]:
    with db_conn() as conn:
        room = _rooms().join_room(conn, req.user_id, room_id=room_id)
        return {"room": room.to_dict(), "user_id": req.user_id, "joined": True}


@app.post("/rooms/{room_id}/regenerate-code")
def regenerate_room_code(room_id: str, req: UserRequest) -> dict[str, Any]:
    with db_conn() as conn:
        code = _rooms().regenerate_code(conn, room_id, req.user_id)
        return {"room_id": room_id, "code": code}


@app.get("/rooms/{room_id}/share")
def get_room_sharing(room_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        info = _rooms().sharing_info(conn, room_id)
        if info is None:
            raise HTTPException(status_code=404, detail={"code": "no_join_code", "message": "Room has no join code"})
        return info


@app.post("/rooms/{room_id}/status")
def set_room_status(room_id: str, req: RoomStatusRequest) -> dict[str, Any]:
    with db_conn() as conn:
        return _rooms().transition_room_status(conn, room_id, req.status).to_dict()


@app.delete("/rooms/{room_id}")
def delete_room(room_id: str, user_id: str = Query(..., min_length=1)) -> dict[str, Any]:
    """Creator only. Removes the room with its memberships, teams and standings."""
    with db_conn() as conn:
        _rooms().delete_room(conn, room_id, user_id)
        return {"room_id": room_id, "deleted": True}


# ---------- Teams ----------


@app.post("/teams")
def save_team(req: SaveTeamRequest) -> dict[str, Any]:
    """Save (or overwrite) the user's roster for a gameweek in a room."""
    with db_conn() as conn:
        team = _teams().save_roster(conn, req.user_id, req.gameweek_id, req.room_id, req.to_submission())
        return team.to_dict()


@app.get("/teams")
def get_team(user_id: str, gameweek_id: str, room_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        team = _teams().get_team(conn, user_id, gameweek_id, room_id)
        if team is None:
            return {"team": None}
        d = team.to_dict()
        d["tokens_remaining"] = _substitutions().tokens_remaining(team)
        return {"team": d}


@app.get("/teams/summary")
def get_team_summary(user_id: str, league: str = "premier_league", room_id: str | None = None) -> dict[str, Any]:
    """Active gameweek plus the user's team for it; null when the league has no active gameweek."""
    with db_conn() as conn:
        summary = _teams().get_team_summary(conn, user_id, league, room_id=room_id)
        if summary is None:
            return {"summary": None}
        team = summary["team"]
        return {
            "summary": {
                "gameweek": summary["gameweek"].to_dict(),
                "room_id": summary["room_id"],
                "team": team.to_dict() if team else None,
                "has_submitted_team": summary["has_submitted_team"],
            }
        }


@app.post("/teams/captains")
def update_captains(req: CaptainsRequest) -> dict[str, Any]:
    with db_conn() as conn:
        team = _teams().update_captains(
            conn, req.user_id, req.gameweek_id, req.room_id, req.captain_id, req.vice_captain_id
        )
        return team.to_dict()


@app.post("/teams/substitute")
def substitute(req: SubstitutionRequest) -> dict[str, Any]:
    """Swap one player; consumes a substitution token."""
    with db_conn() as conn:
        svc = _substitutions()
        team = svc.apply_substitution(
            conn, req.user_id, req.gameweek_id, req.room_id, req.player_out, req.player_in
        )
        d = team.to_dict()
        d["tokens_remaining"] = svc.tokens_remaining(team)
        return d


@app.get("/teams/{team_id}/substitutions")
def list_substitutions(team_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        _teams().get_team_by_id(conn, team_id)
        return {"substitutions": [s.to_dict() for s in _substitutions().history(conn, team_id)]}


@app.post("/teams/{team_id}/points")
def record_team_points(team_id: str, req: PointsRequest) -> dict[str, Any]:
    """Scoring feed entry point: set the team's points for its gameweek."""
    with db_conn() as conn:
        return _teams().record_points(conn, team_id, req.points).to_dict()


@app.post("/formations/check")
def check_formation(req: FormationCheckRequest) -> dict[str, Any]:
    is_valid, errors = TeamService.check_formation(req.formation, req.defenders, req.midfielders, req.forwards)
    return {"is_valid": is_valid, "errors": errors}


# ---------- Standings ----------


@app.post("/rooms/{room_id}/gameweeks/{gameweek_id}/standings")
def recompute_standings(room_id: str, gameweek_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        standings = StandingsService(clock=clock).recompute_standings(conn, room_id, gameweek_id)
        return {"standings": [s.to_dict() for s in standings]}


@app.get("/rooms/{room_id}/gameweeks/{gameweek_id}/standings")
def get_standings(room_id: str, gameweek_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        standings = StandingsService(clock=clock).get_standings(conn, room_id, gameweek_id)
        return {"standings": [s.to_dict() for s in standings]}


# ---------- Run with: uvicorn soccer_fantasy.api:app --reload ----------
