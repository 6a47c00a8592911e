"""
Roster rules for a 15-player submission (11 starters + 4 bench).

Checked in this order, stopping at the first failure:
  1. formation shape
  2. no player twice (before positions, so a player repeated across lines
     reports DuplicatePlayer rather than WrongPosition)
  3. every slot holds a player of that position
  4. captain / vice-captain drawn from the starting XI and distinct
  5. gameweek deadline (check_deadline, evaluated last against the live clock)

Rules 1-4 are pure over typed values; the player lookup is passed in.
"""
from __future__ import annotations

from typing import Callable

from soccer_fantasy.clock import Clock
from soccer_fantasy.errors import (
    CaptainEqualsViceCaptain,
    CaptainNotInStartingXI,
    DeadlinePassed,
    DuplicatePlayer,
    FormationMismatch,
    GameweekNotFound,
    InvalidFormation,
    PlayerNotFound,
    ViceCaptainNotInStartingXI,
    WrongPosition,
)
from soccer_fantasy.models import FORMATIONS, Gameweek, Player, PlayerId, RosterSubmission

PlayerLookup = Callable[[PlayerId], "Player | None"]


def formation_counts(formation: str) -> dict[str, int]:
    """{'def', 'mid', 'fwd'} counts for a formation label; InvalidFormation if unknown."""
    shape = FORMATIONS.get(formation)
    if shape is None:
        raise InvalidFormation(formation)
    d, m, f = shape
    return {"def": d, "mid": m, "fwd": f}


def validate_formation(formation: str, def_count: int, mid_count: int, fwd_count: int) -> None:
    expected = formation_counts(formation)
    actual = {"def": def_count, "mid": mid_count, "fwd": fwd_count}
    if actual != expected:
        raise FormationMismatch(formation, expected, actual)


def validate_positions(roster: RosterSubmission, lookup: PlayerLookup) -> None:
    for slot, required, player_id in roster.slots():
        player = lookup(player_id)
        if player is None:
            raise PlayerNotFound(player_id)
        if player.position != required:
            raise WrongPosition(player_id, slot, required.value, player.position.value)


def validate_unique(roster: RosterSubmission) -> None:
    seen: set[str] = set()
    for _, _, player_id in roster.slots():
        if player_id in seen:
            raise DuplicatePlayer(player_id)
        seen.add(player_id)


def validate_captaincy(starting_xi: list[PlayerId], captain_id: str, vice_captain_id: str) -> None:
    if captain_id not in starting_xi:
        raise CaptainNotInStartingXI()
    if vice_captain_id not in starting_xi:
        raise ViceCaptainNotInStartingXI()
    if captain_id == vice_captain_id:
        raise CaptainEqualsViceCaptain()


def validate_roster(roster: RosterSubmission, lookup: PlayerLookup) -> None:
    """Structural rules 1-4. Raises the first violation; returns None when the roster is valid."""
    validate_formation(roster.formation, len(roster.defenders), len(roster.midfielders), len(roster.forwards))
    validate_unique(roster)
    validate_positions(roster, lookup)
    validate_captaincy(roster.starting_xi(), roster.captain_id, roster.vice_captain_id)


def check_deadline(gameweek: Gameweek | None, gameweek_id: str, clock: Clock) -> Gameweek:
    """Rule 5. Locked once now >= deadline."""
    if gameweek is None:
        raise GameweekNotFound(gameweek_id)
    if gameweek.deadline <= clock.now():
        raise DeadlinePassed(gameweek_id)
    return gameweek
