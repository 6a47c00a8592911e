"""
Persistence layer for fantasy data.
No business logic: read/write interfaces and transaction boundaries only.
"""
from .db import get_connection, init_db, transaction
from .repositories import (
    UserRepository,
    PlayerRepository,
    RoomRepository,
    MembershipRepository,
    GameweekRepository,
    TeamRepository,
    SubstitutionRepository,
    StandingRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "transaction",
    "UserRepository",
    "PlayerRepository",
    "RoomRepository",
    "MembershipRepository",
    "GameweekRepository",
    "TeamRepository",
    "SubstitutionRepository",
    "StandingRepository",
]
