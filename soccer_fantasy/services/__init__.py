"""
Service layer: roster rules, gameweek state machine, substitutions, rooms, standings.
Services own transactions; repositories only read and write.
"""
from .gameweek_service import GameweekService
from .room_service import RoomService
from .standings_service import StandingsService
from .substitution_service import SubstitutionService
from .team_service import TeamService

__all__ = [
    "GameweekService",
    "RoomService",
    "StandingsService",
    "SubstitutionService",
    "TeamService",
]
