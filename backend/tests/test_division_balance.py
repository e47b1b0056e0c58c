from court_dispatch.models.match import STATUS_COMPLETED, STATUS_WAITING
from court_dispatch.services.division_balance import (
    DIVISION_BONUS_CAP,
    compute_division_bias,
    division_progress,
)
from tests.helpers import make_match


def _division(start_id, division, total, completed):
    return [
        make_match(
            start_id + i,
            division=division,
            status=STATUS_COMPLETED if i < completed else STATUS_WAITING,
        )
        for i in range(total)
    ]


def test_lagging_division_gets_capped_bonus():
    # Division 1 at 20%, division 2 at 80%: gap 0.6 -> 1200 -> capped at 600
    matches = _division(1, 1, total=5, completed=1) + _division(100, 2, total=5, completed=4)
    bias = compute_division_bias(matches)
    assert bias.preferred_division == 1
    assert bias.division_bonus_base == DIVISION_BONUS_CAP


def test_small_gap_scales_linearly():
    # 5/10 vs 6/10: gap 0.1 -> 200
    matches = _division(1, 1, total=10, completed=5) + _division(100, 2, total=10, completed=6)
    bias = compute_division_bias(matches)
    assert bias.preferred_division == 1
    assert bias.division_bonus_base == 200


def test_empty_division_counts_as_complete():
    matches = _division(1, 2, total=4, completed=1)
    progress = division_progress(matches)
    assert progress[1] == 1.0
    assert progress[2] == 0.25
    assert compute_division_bias(matches).preferred_division == 2


def test_balanced_divisions_have_no_bonus():
    matches = _division(1, 1, total=4, completed=2) + _division(100, 2, total=2, completed=1)
    assert compute_division_bias(matches).division_bonus_base == 0


def test_no_matches_at_all():
    bias = compute_division_bias([])
    assert bias.division_bonus_base == 0


def test_other_divisions_do_not_move_the_balance():
    matches = _division(1, 1, total=10, completed=5) + _division(100, 2, total=10, completed=6)
    stray = _division(200, 3, total=4, completed=0)

    assert set(division_progress(matches + stray)) == {1, 2}
    assert compute_division_bias(matches + stray) == compute_division_bias(matches)
