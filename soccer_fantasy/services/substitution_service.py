"""
Substitution ledger: post-save roster swaps limited by a per-gameweek token cap.

A swap replaces player_out with player_in in the same slot. player_out must be in
the roster; player_in must exist, must not already be selected, and must play the
position of the slot. If player_out was captain or vice-captain, player_in takes
that role.
"""
from __future__ import annotations

import sqlite3
from dataclasses import replace

from soccer_fantasy.catalog import get_player
from soccer_fantasy.clock import Clock, SystemClock
from soccer_fantasy.config import Settings, get_settings
from soccer_fantasy.errors import (
    DuplicatePlayer,
    NoTokensRemaining,
    PlayerNotFound,
    PlayerNotInRoster,
    TeamNotFound,
    WrongPosition,
)
from soccer_fantasy.logging_config import get_logger
from soccer_fantasy.models import PlayerId, RosterSubmission, Substitution, Team
from soccer_fantasy.persistence.db import transaction
from soccer_fantasy.persistence.repositories import SubstitutionRepository, TeamRepository

logger = get_logger(__name__)


def swap_in_roster(roster: RosterSubmission, player_out: PlayerId, player_in: PlayerId) -> RosterSubmission:
    """New roster with player_in in player_out's slot. Captaincy follows the slot."""

    def sub(pid: PlayerId) -> PlayerId:
        return player_in if pid == player_out else pid

    return replace(
        roster,
        goalkeeper=sub(roster.goalkeeper),
        defenders=[sub(p) for p in roster.defenders],
        midfielders=[sub(p) for p in roster.midfielders],
        forwards=[sub(p) for p in roster.forwards],
        bench_goalkeeper=sub(roster.bench_goalkeeper),
        bench_defender=sub(roster.bench_defender),
        bench_midfielder=sub(roster.bench_midfielder),
        bench_forward=sub(roster.bench_forward),
        captain_id=sub(roster.captain_id),
        vice_captain_id=sub(roster.vice_captain_id),
    )


class SubstitutionService:
    def __init__(self, clock: Clock | None = None, settings: Settings | None = None) -> None:
        self._clock = clock or SystemClock()
        self._cap = (settings or get_settings()).substitution_cap
        self._team_repo = TeamRepository()
        self._sub_repo = SubstitutionRepository()

    @property
    def cap(self) -> int:
        return self._cap

    def tokens_remaining(self, team: Team) -> int:
        return max(0, self._cap - team.substitution_tokens_used)

    def apply_substitution(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        gameweek_id: str,
        room_id: str,
        player_out: str,
        player_in: str,
    ) -> Team:
        """Swap one player and consume one token. The swap, the token and the history row commit together."""
        with transaction(conn):
            team = self._team_repo.get_for(conn, user_id, gameweek_id, room_id)
            if team is None:
                raise TeamNotFound()
            if team.substitution_tokens_used >= self._cap:
                raise NoTokensRemaining(self._cap)

            slot = next((s for s in team.roster.slots() if s[2] == player_out), None)
            if slot is None:
                raise PlayerNotInRoster(player_out)
            slot_name, required, _ = slot
            incoming = get_player(conn, player_in)
            if incoming is None:
                raise PlayerNotFound(player_in)
            if player_in in team.player_ids():
                raise DuplicatePlayer(player_in)
            if incoming.position != required:
                raise WrongPosition(player_in, slot_name, required.value, incoming.position.value)

            roster = swap_in_roster(team.roster, PlayerId(player_out), PlayerId(player_in))
            tokens_used = team.substitution_tokens_used + 1
            now = self._clock.now()
            self._team_repo.apply_substitution(conn, team.id, roster, tokens_used, now)
            self._sub_repo.create(conn, team.id, user_id, gameweek_id, player_out, player_in, made_at=now)
            updated = self._team_repo.get(conn, team.id)
            if updated is None:
                raise TeamNotFound()
        logger.info(
            "Substitution applied: team=%s out=%s in=%s tokens=%d/%d",
            team.id, player_out, player_in, tokens_used, self._cap,
        )
        return updated

    def history(self, conn: sqlite3.Connection, team_id: str) -> list[Substitution]:
        return self._sub_repo.list_by_team(conn, team_id)
