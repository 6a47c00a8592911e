"""
Tests for roster saving: validation order, membership, deadline gate, overwrite semantics.
"""
from __future__ import annotations

from datetime import timedelta

import pytest

from soccer_fantasy.errors import (
    CaptainNotInStartingXI,
    DeadlinePassed,
    FormationMismatch,
    GameweekNotFound,
    NotAMember,
    RoomNotFound,
    TeamNotFound,
)
from soccer_fantasy.models import PlayerId
from soccer_fantasy.persistence.repositories import TeamRepository
from soccer_fantasy.services import SubstitutionService, TeamService


@pytest.fixture
def team_service(clock):
    return TeamService(clock=clock)


@pytest.fixture
def alice_team(db_conn, team_service, catalog, room, gameweek, make_roster):
    return team_service.save_roster(db_conn, "alice", gameweek.id, room.id, make_roster())


def test_save_roster_creates_team(alice_team, room, gameweek, clock):
    assert alice_team.user_id == "alice"
    assert alice_team.room_id == room.id
    assert alice_team.gameweek_id == gameweek.id
    assert alice_team.is_submitted
    assert alice_team.submitted_at == clock.now()
    assert alice_team.substitution_tokens_used == 0
    assert alice_team.total_points == 0
    assert len(alice_team.player_ids()) == 15


def test_resubmission_overwrites_single_team(db_conn, team_service, alice_team, room, gameweek, make_roster):
    roster = make_roster(formation="3-5-2",
                         defenders=[PlayerId("def1"), PlayerId("def2"), PlayerId("def3")],
                         midfielders=[PlayerId(f"mid{i}") for i in range(1, 6)],
                         bench_midfielder=PlayerId("mid6"))
    team = team_service.save_roster(db_conn, "alice", gameweek.id, room.id, roster)
    assert team.id == alice_team.id
    assert team.formation == "3-5-2"
    assert TeamRepository().count_by_room(db_conn, room.id) == 1


def test_resubmission_keeps_tokens_and_points(
    db_conn, team_service, alice_team, room, gameweek, make_roster, clock, settings
):
    SubstitutionService(clock=clock, settings=settings).apply_substitution(
        db_conn, "alice", gameweek.id, room.id, "fwd2", "fwd4"
    )
    team_service.record_points(db_conn, alice_team.id, 42.5)

    team = team_service.save_roster(db_conn, "alice", gameweek.id, room.id, make_roster())
    assert team.substitution_tokens_used == 1
    assert team.total_points == 42.5
    assert team.roster.forwards == ["fwd1", "fwd2"]


def test_non_member_rejected(db_conn, team_service, catalog, room, gameweek, make_roster):
    with pytest.raises(NotAMember):
        team_service.save_roster(db_conn, "mallory", gameweek.id, room.id, make_roster())


def test_unknown_room_rejected(db_conn, team_service, catalog, gameweek, make_roster):
    with pytest.raises(RoomNotFound):
        team_service.save_roster(db_conn, "alice", gameweek.id, "no-room", make_roster())


def test_unknown_gameweek_rejected(db_conn, team_service, catalog, room, make_roster):
    with pytest.raises(GameweekNotFound):
        team_service.save_roster(db_conn, "alice", "no-gameweek", room.id, make_roster())


def test_deadline_passed_rejected(db_conn, team_service, catalog, room, gameweek, make_roster, clock):
    clock.set(gameweek.deadline)
    with pytest.raises(DeadlinePassed):
        team_service.save_roster(db_conn, "alice", gameweek.id, room.id, make_roster())
    assert team_service.get_team(db_conn, "alice", gameweek.id, room.id) is None


def test_structural_error_reported_before_deadline(db_conn, team_service, catalog, room, gameweek, make_roster, clock):
    clock.advance(timedelta(days=10))
    with pytest.raises(FormationMismatch):
        team_service.save_roster(db_conn, "alice", gameweek.id, room.id, make_roster(formation="5-4-1"))


def test_update_captains(db_conn, team_service, alice_team, room, gameweek):
    team = team_service.update_captains(db_conn, "alice", gameweek.id, room.id, "def1", "mid2")
    assert team.roster.captain_id == "def1"
    assert team.roster.vice_captain_id == "mid2"


def test_update_captains_rules(db_conn, team_service, alice_team, room, gameweek, clock):
    with pytest.raises(CaptainNotInStartingXI):
        team_service.update_captains(db_conn, "alice", gameweek.id, room.id, "gk2", "mid2")
    clock.set(gameweek.deadline + timedelta(minutes=1))
    with pytest.raises(DeadlinePassed):
        team_service.update_captains(db_conn, "alice", gameweek.id, room.id, "def1", "mid2")


def test_update_captains_without_team(db_conn, team_service, room, gameweek):
    with pytest.raises(TeamNotFound):
        team_service.update_captains(db_conn, "alice", gameweek.id, room.id, "def1", "mid2")


def test_record_points(db_conn, team_service, alice_team):
    assert team_service.record_points(db_conn, alice_team.id, 61).total_points == 61.0
    with pytest.raises(TeamNotFound):
        team_service.record_points(db_conn, "no-team", 1)


def test_check_formation():
    assert TeamService.check_formation("4-4-2", 4, 4, 2) == (True, [])
    ok, errors = TeamService.check_formation("4-4-2", 4, 3, 3)
    assert ok is False and len(errors) == 1
    ok, errors = TeamService.check_formation("1-1-8", 1, 1, 8)
    assert ok is False and "Invalid formation" in errors[0]


def test_record_points_stamps_clock_time(db_conn, team_service, alice_team, clock):
    clock.advance(timedelta(hours=30))
    team = team_service.record_points(db_conn, alice_team.id, 12)
    assert team.updated_at == clock.now()
    assert team.created_at == alice_team.created_at


def test_team_summary_without_active_gameweek(db_conn, team_service, alice_team):
    assert team_service.get_team_summary(db_conn, "alice", "premier_league") is None


def test_team_summary_finds_submitted_team(db_conn, team_service, alice_team, room, gameweek, gameweek_service):
    gameweek_service.activate(db_conn, gameweek.id)

    summary = team_service.get_team_summary(db_conn, "alice", "premier_league")
    assert summary["gameweek"].id == gameweek.id
    assert summary["room_id"] == room.id
    assert summary["team"].id == alice_team.id
    assert summary["has_submitted_team"] is True


def test_team_summary_for_room_without_team(db_conn, team_service, room, gameweek, gameweek_service, room_service):
    gameweek_service.activate(db_conn, gameweek.id)
    room_service.join_room(db_conn, "bob", room_id=room.id)

    summary = team_service.get_team_summary(db_conn, "bob", "premier_league", room_id=room.id)
    assert summary["team"] is None
    assert summary["has_submitted_team"] is False

    assert team_service.get_team_summary(db_conn, "zoe", "premier_league")["room_id"] is None

    # zoe's first room is in another league, so the premier league room is picked.
    room_service.create_room(db_conn, "Serie A Room", "private", 4, "zoe", "serie_a")
    room_service.join_room(db_conn, "zoe", room_id=room.id)
    summary = team_service.get_team_summary(db_conn, "zoe", "premier_league")
    assert summary["room_id"] == room.id
    assert summary["team"] is None
