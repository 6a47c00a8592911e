"""
Domain errors for rosters, gameweeks, substitutions and rooms.

Two families:
- ValidationFailure: the submitted input breaks a rule; resubmit corrected input.
- StateConflict: the current state forbids the action (room full, not found, ...).

Every error has a stable `code` and the HTTP `status_code` the API answers with.
"""
from __future__ import annotations

from typing import Any


class FantasyError(Exception):
    code = "fantasy_error"
    status_code = 400

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class ValidationFailure(FantasyError, ValueError):
    """Input violates a roster or substitution rule."""
    code = "validation_failure"


class StateConflict(FantasyError):
    """Current state forbids the requested action."""
    code = "state_conflict"
    status_code = 409


class NotFound(StateConflict):
    code = "not_found"
    status_code = 404


# ---------- Roster validation ----------


class InvalidFormation(ValidationFailure):
    code = "invalid_formation"

    def __init__(self, formation: str) -> None:
        super().__init__(f"Invalid formation: {formation}")
        self.formation = formation


class FormationMismatch(ValidationFailure):
    code = "formation_mismatch"

    def __init__(self, formation: str, expected: dict[str, int], actual: dict[str, int]) -> None:
        super().__init__(
            f"Formation {formation} requires {expected['def']} defenders, {expected['mid']} midfielders "
            f"and {expected['fwd']} forwards (got {actual['def']}, {actual['mid']}, {actual['fwd']})"
        )
        self.formation = formation
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["expected"] = self.expected
        d["actual"] = self.actual
        return d


class WrongPosition(ValidationFailure):
    code = "wrong_position"

    def __init__(self, player_id: str, slot: str, expected: str, actual: str) -> None:
        super().__init__(f"Player {player_id} in slot {slot} is a {actual}, not a {expected}")
        self.player_id = player_id
        self.slot = slot
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["player_id"] = self.player_id
        d["slot"] = self.slot
        return d


class DuplicatePlayer(ValidationFailure):
    code = "duplicate_player"

    def __init__(self, player_id: str) -> None:
        super().__init__(f"Cannot select the same player multiple times: {player_id}")
        self.player_id = player_id

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["player_id"] = self.player_id
        return d


class CaptainNotInStartingXI(ValidationFailure):
    code = "captain_not_in_starting_xi"

    def __init__(self) -> None:
        super().__init__("Captain must be in the starting XI")


class ViceCaptainNotInStartingXI(ValidationFailure):
    code = "vice_captain_not_in_starting_xi"

    def __init__(self) -> None:
        super().__init__("Vice-captain must be in the starting XI")


class CaptainEqualsViceCaptain(ValidationFailure):
    code = "captain_equals_vice_captain"

    def __init__(self) -> None:
        super().__init__("Captain and vice-captain must be different players")


class DeadlinePassed(ValidationFailure):
    code = "deadline_passed"

    def __init__(self, gameweek_id: str) -> None:
        super().__init__(f"Gameweek deadline has passed: {gameweek_id}")
        self.gameweek_id = gameweek_id


class PlayerNotInRoster(ValidationFailure):
    code = "player_not_in_roster"

    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player {player_id} is not in the roster")
        self.player_id = player_id


# ---------- Not found ----------


class PlayerNotFound(NotFound):
    code = "player_not_found"

    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player not found: {player_id}")
        self.player_id = player_id


class GameweekNotFound(NotFound):
    code = "gameweek_not_found"

    def __init__(self, gameweek_id: str) -> None:
        super().__init__(f"Gameweek not found: {gameweek_id}")
        self.gameweek_id = gameweek_id


class RoomNotFound(NotFound):
    code = "room_not_found"

    def __init__(self, ref: str | None = None) -> None:
        super().__init__(f"Room not found: {ref}" if ref else "Room not found")


class TeamNotFound(NotFound):
    code = "team_not_found"

    def __init__(self) -> None:
        super().__init__("Team not found")


class NoGameweeksConfigured(NotFound):
    code = "no_gameweeks_configured"

    def __init__(self, league: str) -> None:
        super().__init__(f"No gameweeks found for league: {league}")
        self.league = league


# ---------- State conflicts ----------


class AlreadyMember(StateConflict):
    code = "already_member"

    def __init__(self, user_id: str, room_id: str) -> None:
        super().__init__(f"User {user_id} is already a member of room {room_id}")


class RoomFull(StateConflict):
    code = "room_full"

    def __init__(self, room_id: str, max_participants: int) -> None:
        super().__init__(f"Room {room_id} is full ({max_participants} participants)")


class NotAMember(StateConflict):
    code = "not_a_member"
    status_code = 403

    def __init__(self, user_id: str, room_id: str) -> None:
        super().__init__(f"User {user_id} is not a member of room {room_id}")


class NotRoomCreator(StateConflict):
    code = "not_room_creator"
    status_code = 403

    def __init__(self, action: str) -> None:
        super().__init__(f"Only the room creator can {action}")


class NoTokensRemaining(StateConflict):
    code = "no_tokens_remaining"

    def __init__(self, cap: int) -> None:
        super().__init__(f"No substitution tokens remaining (max {cap} per gameweek)")
        self.cap = cap


class InvalidGameweekTransition(StateConflict):
    code = "invalid_gameweek_transition"


class InvalidRoomTransition(StateConflict):
    code = "invalid_room_transition"
