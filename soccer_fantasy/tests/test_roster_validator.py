"""
Tests for the pure roster rules and the deadline gate.
No database: players come from an in-memory lookup.
"""
from __future__ import annotations

from datetime import timedelta

import pytest

from soccer_fantasy.errors import (
    CaptainEqualsViceCaptain,
    CaptainNotInStartingXI,
    DeadlinePassed,
    DuplicatePlayer,
    FormationMismatch,
    GameweekNotFound,
    InvalidFormation,
    PlayerNotFound,
    ValidationFailure,
    ViceCaptainNotInStartingXI,
    WrongPosition,
)
from soccer_fantasy.models import FORMATIONS, Gameweek, PlayerId
from soccer_fantasy.services.roster_validator import (
    check_deadline,
    formation_counts,
    validate_formation,
    validate_roster,
)


def test_valid_roster_passes(make_roster, lookup):
    validate_roster(make_roster(), lookup)


@pytest.mark.parametrize("label,shape", sorted(FORMATIONS.items()))
def test_formation_counts(label, shape):
    d, m, f = shape
    assert formation_counts(label) == {"def": d, "mid": m, "fwd": f}
    assert d + m + f == 10


def test_unknown_formation(make_roster, lookup):
    with pytest.raises(InvalidFormation):
        validate_roster(make_roster(formation="2-3-5"), lookup)


def test_formation_mismatch_reports_expected_and_actual(make_roster, lookup):
    roster = make_roster(formation="4-3-3")
    with pytest.raises(FormationMismatch) as exc_info:
        validate_roster(roster, lookup)
    assert exc_info.value.expected == {"def": 4, "mid": 3, "fwd": 3}
    assert exc_info.value.actual == {"def": 4, "mid": 4, "fwd": 2}


def _roster_for(make_roster, label, def_count=None, mid_count=None, fwd_count=None):
    """Roster shaped for `label`, or with the given line sizes. Bench takes the next player in each line."""
    d, m, f = FORMATIONS[label]
    d = d if def_count is None else def_count
    m = m if mid_count is None else mid_count
    f = f if fwd_count is None else fwd_count
    return make_roster(
        formation=label,
        defenders=[PlayerId(f"def{i}") for i in range(1, d + 1)],
        midfielders=[PlayerId(f"mid{i}") for i in range(1, m + 1)],
        forwards=[PlayerId(f"fwd{i}") for i in range(1, f + 1)],
        bench_defender=PlayerId(f"def{d + 1}"),
        bench_midfielder=PlayerId(f"mid{m + 1}"),
        bench_forward=PlayerId(f"fwd{f + 1}"),
    )


@pytest.mark.parametrize("label", sorted(FORMATIONS))
def test_every_formation_accepts_matching_roster(make_roster, lookup, label):
    validate_roster(_roster_for(make_roster, label), lookup)


@pytest.mark.parametrize("label", sorted(FORMATIONS))
@pytest.mark.parametrize("line", ["def", "mid", "fwd"])
@pytest.mark.parametrize("delta", [-1, 1])
def test_every_formation_rejects_one_line_off(make_roster, lookup, label, line, delta):
    d, m, f = FORMATIONS[label]
    sizes = {"def": d, "mid": m, "fwd": f}
    sizes[line] += delta
    roster = _roster_for(make_roster, label, sizes["def"], sizes["mid"], sizes["fwd"])
    with pytest.raises(FormationMismatch) as exc_info:
        validate_roster(roster, lookup)
    assert exc_info.value.expected == {"def": d, "mid": m, "fwd": f}
    assert exc_info.value.actual == sizes


def test_four_four_two_with_five_defenders(make_roster, lookup):
    roster = make_roster(
        defenders=[PlayerId(f"def{i}") for i in range(1, 6)],
        bench_defender=PlayerId("def6"),
    )
    with pytest.raises(FormationMismatch) as exc_info:
        validate_roster(roster, lookup)
    assert exc_info.value.expected == {"def": 4, "mid": 4, "fwd": 2}
    assert exc_info.value.actual == {"def": 5, "mid": 4, "fwd": 2}


def test_validate_formation_direct():
    validate_formation("3-5-2", 3, 5, 2)
    with pytest.raises(FormationMismatch):
        validate_formation("3-5-2", 4, 4, 2)


def test_wrong_position_in_starting_xi_names_slot(make_roster, lookup):
    roster = make_roster(midfielders=[PlayerId("mid1"), PlayerId("mid2"), PlayerId("mid3"), PlayerId("def6")])
    with pytest.raises(WrongPosition) as exc_info:
        validate_roster(roster, lookup)
    assert exc_info.value.player_id == "def6"
    assert exc_info.value.slot == "midfielders[3]"


def test_wrong_position_on_bench(make_roster, lookup):
    roster = make_roster(bench_goalkeeper=PlayerId("def6"))
    with pytest.raises(WrongPosition) as exc_info:
        validate_roster(roster, lookup)
    assert exc_info.value.slot == "bench_goalkeeper"


def test_unknown_player(make_roster, lookup):
    roster = make_roster(bench_forward=PlayerId("nobody"))
    with pytest.raises(PlayerNotFound):
        validate_roster(roster, lookup)


def test_duplicate_between_starting_and_bench(make_roster, lookup):
    roster = make_roster(bench_defender=PlayerId("def1"))
    with pytest.raises(DuplicatePlayer) as exc_info:
        validate_roster(roster, lookup)
    assert exc_info.value.player_id == "def1"


def test_duplicate_in_slots_of_different_positions(make_roster, lookup):
    """A player listed twice is a duplicate even when one slot is the wrong position."""
    roster = make_roster(midfielders=[PlayerId("mid1"), PlayerId("mid2"), PlayerId("mid3"), PlayerId("def1")])
    with pytest.raises(DuplicatePlayer):
        validate_roster(roster, lookup)


def test_captain_must_start(make_roster, lookup):
    with pytest.raises(CaptainNotInStartingXI):
        validate_roster(make_roster(captain_id=PlayerId("mid5")), lookup)


def test_vice_captain_must_start(make_roster, lookup):
    with pytest.raises(ViceCaptainNotInStartingXI):
        validate_roster(make_roster(vice_captain_id=PlayerId("fwd3")), lookup)


def test_captain_and_vice_must_differ(make_roster, lookup):
    with pytest.raises(CaptainEqualsViceCaptain):
        validate_roster(make_roster(captain_id=PlayerId("fwd1"), vice_captain_id=PlayerId("fwd1")), lookup)


def test_first_violation_wins(make_roster, lookup):
    """Formation is checked before duplicates and captaincy."""
    roster = make_roster(formation="4-3-3", bench_defender=PlayerId("def1"), captain_id=PlayerId("gk2"))
    with pytest.raises(FormationMismatch):
        validate_roster(roster, lookup)


def test_all_roster_errors_are_validation_failures(make_roster, lookup):
    with pytest.raises(ValidationFailure):
        validate_roster(make_roster(captain_id=PlayerId("gk2")), lookup)


def _gameweek(deadline):
    return Gameweek(
        id="gw-1", number=1, league="premier_league", season="2025/26", deadline=deadline,
        status="upcoming", is_active=False, created_at=deadline, updated_at=deadline,
    )


def test_deadline_open_before_deadline(clock):
    gw = _gameweek(clock.now() + timedelta(seconds=1))
    assert check_deadline(gw, gw.id, clock) is gw


def test_deadline_locked_at_exact_deadline(clock):
    gw = _gameweek(clock.now())
    with pytest.raises(DeadlinePassed):
        check_deadline(gw, gw.id, clock)


def test_deadline_evaluated_against_live_clock(clock):
    gw = _gameweek(clock.now() + timedelta(hours=1))
    check_deadline(gw, gw.id, clock)
    clock.advance(timedelta(hours=2))
    with pytest.raises(DeadlinePassed):
        check_deadline(gw, gw.id, clock)


def test_deadline_missing_gameweek(clock):
    with pytest.raises(GameweekNotFound):
        check_deadline(None, "gw-missing", clock)
