"""
Tests for the gameweek state machine: transitions, single-active rule, bootstrap, deadlines.
"""
from __future__ import annotations

from datetime import timedelta

import pytest

from soccer_fantasy.errors import GameweekNotFound, InvalidGameweekTransition, NoGameweeksConfigured
from soccer_fantasy.models import GameweekStatus
from soccer_fantasy.persistence.repositories import GameweekRepository

LEAGUE = "premier_league"
SEASON = "2025/26"


@pytest.fixture
def three_gameweeks(db_conn, gameweek_service, clock):
    """Gameweeks 1-3 with deadlines 1, 8 and 15 days ahead."""
    return [
        gameweek_service.create_gameweek(db_conn, n, LEAGUE, SEASON, clock.now() + timedelta(days=1 + 7 * (n - 1)))
        for n in (1, 2, 3)
    ]


def _active(db_conn):
    return GameweekRepository().list_active(db_conn, LEAGUE)


def test_new_gameweek_is_upcoming(three_gameweeks):
    gw = three_gameweeks[0]
    assert gw.status == GameweekStatus.UPCOMING
    assert gw.is_active is False


def test_activate_sets_status_and_flag(db_conn, gameweek_service, three_gameweeks):
    gw = gameweek_service.activate(db_conn, three_gameweeks[0].id)
    assert gw.status == GameweekStatus.ACTIVE
    assert gw.is_active is True
    assert gameweek_service.get_current_active(db_conn, LEAGUE).id == gw.id


def test_activation_completes_previous_active(db_conn, gameweek_service, three_gameweeks):
    gw1, gw2, _ = three_gameweeks
    gameweek_service.activate(db_conn, gw1.id)
    gameweek_service.activate(db_conn, gw2.id)

    active = _active(db_conn)
    assert [g.id for g in active] == [gw2.id]
    previous = gameweek_service.get(db_conn, gw1.id)
    assert previous.status == GameweekStatus.COMPLETED
    assert previous.is_active is False


def test_at_most_one_active_after_every_activation(db_conn, gameweek_service, three_gameweeks):
    for gw in three_gameweeks:
        gameweek_service.activate(db_conn, gw.id)
        assert len(_active(db_conn)) == 1


def test_other_leagues_are_untouched(db_conn, gameweek_service, three_gameweeks, clock):
    other = gameweek_service.create_gameweek(db_conn, 1, "la_liga", SEASON, clock.now() + timedelta(days=2))
    gameweek_service.activate(db_conn, other.id)
    gameweek_service.activate(db_conn, three_gameweeks[0].id)
    assert gameweek_service.get_current_active(db_conn, "la_liga").id == other.id


def test_activate_already_active_is_noop(db_conn, gameweek_service, three_gameweeks):
    first = gameweek_service.activate(db_conn, three_gameweeks[0].id)
    again = gameweek_service.activate(db_conn, three_gameweeks[0].id)
    assert again.id == first.id and again.is_active


def test_cannot_reactivate_completed(db_conn, gameweek_service, three_gameweeks):
    gw1, gw2, _ = three_gameweeks
    gameweek_service.activate(db_conn, gw1.id)
    gameweek_service.activate(db_conn, gw2.id)
    with pytest.raises(InvalidGameweekTransition):
        gameweek_service.activate(db_conn, gw1.id)
    assert gameweek_service.get_current_active(db_conn, LEAGUE).id == gw2.id


def test_complete_requires_active(db_conn, gameweek_service, three_gameweeks):
    gw = three_gameweeks[0]
    with pytest.raises(InvalidGameweekTransition):
        gameweek_service.complete(db_conn, gw.id)
    gameweek_service.activate(db_conn, gw.id)
    done = gameweek_service.complete(db_conn, gw.id)
    assert done.status == GameweekStatus.COMPLETED
    assert gameweek_service.get_current_active(db_conn, LEAGUE) is None


def test_unknown_gameweek(db_conn, gameweek_service):
    with pytest.raises(GameweekNotFound):
        gameweek_service.activate(db_conn, "missing")


def test_get_next_earliest_future_deadline(db_conn, gameweek_service, three_gameweeks, clock):
    assert gameweek_service.get_next(db_conn, LEAGUE).id == three_gameweeks[0].id
    clock.advance(timedelta(days=2))
    assert gameweek_service.get_next(db_conn, LEAGUE).id == three_gameweeks[1].id


def test_get_next_skips_non_upcoming(db_conn, gameweek_service, three_gameweeks):
    gameweek_service.activate(db_conn, three_gameweeks[0].id)
    assert gameweek_service.get_next(db_conn, LEAGUE).id == three_gameweeks[1].id


def test_get_next_ties_broken_by_number(db_conn, gameweek_service, clock):
    deadline = clock.now() + timedelta(days=3)
    later = gameweek_service.create_gameweek(db_conn, 5, LEAGUE, SEASON, deadline)
    earlier = gameweek_service.create_gameweek(db_conn, 4, LEAGUE, SEASON, deadline)
    assert gameweek_service.get_next(db_conn, LEAGUE).id == earlier.id
    assert later.id != earlier.id


def test_get_next_none_when_all_deadlines_passed(db_conn, gameweek_service, three_gameweeks, clock):
    clock.advance(timedelta(days=30))
    assert gameweek_service.get_next(db_conn, LEAGUE) is None


def test_activate_first_if_none_picks_lowest_number(db_conn, gameweek_service, three_gameweeks, clock):
    gw = gameweek_service.activate_first_if_none(db_conn, LEAGUE)
    assert gw.id == three_gameweeks[0].id
    assert gw.is_active
    assert gw.deadline == clock.now() + timedelta(days=7)


def test_activate_first_if_none_is_idempotent(db_conn, gameweek_service, three_gameweeks, clock):
    first = gameweek_service.activate_first_if_none(db_conn, LEAGUE)
    clock.advance(timedelta(days=1))
    second = gameweek_service.activate_first_if_none(db_conn, LEAGUE)
    assert second.id == first.id
    assert second.deadline == first.deadline


def test_activate_first_if_none_without_gameweeks(db_conn, gameweek_service):
    with pytest.raises(NoGameweeksConfigured):
        gameweek_service.activate_first_if_none(db_conn, "serie_a")


def test_is_deadline_passed(db_conn, gameweek_service, three_gameweeks, clock):
    gw = three_gameweeks[0]
    assert gameweek_service.is_deadline_passed(db_conn, gw.id) is False
    clock.set(gw.deadline)
    assert gameweek_service.is_deadline_passed(db_conn, gw.id) is True


def test_is_deadline_passed_unknown_is_false(db_conn, gameweek_service):
    assert gameweek_service.is_deadline_passed(db_conn, "missing") is False


def test_list_gameweeks_ordered_by_number(db_conn, gameweek_service, three_gameweeks):
    assert [g.number for g in gameweek_service.list_gameweeks(db_conn, LEAGUE)] == [1, 2, 3]
    assert gameweek_service.list_gameweeks(db_conn, LEAGUE, season="1999/00") == []
