from court_dispatch.models.match import STATUS_COMPLETED, STATUS_PLAYING
from court_dispatch.services import dispatch_engine
from court_dispatch.services.round_gate import (
    REASON_PREVIOUS_ROUND,
    group_key,
    is_round_eligible,
    max_round_by_group,
    min_round_by_group,
)
from tests.helpers import NOW, make_match


def test_group_key_combines_type_and_division():
    assert group_key(make_match(1, tournament_type="womens_singles", division=2)) == "womens_singles_2"


def test_min_round_ignores_completed_matches():
    matches = [
        make_match(1, round_number=1, status=STATUS_COMPLETED),
        make_match(2, round_number=2),
        make_match(3, round_number=3),
    ]
    assert min_round_by_group(matches) == {"mens_doubles_1": 2}


def test_groups_are_independent():
    matches = [
        make_match(1, round_number=1),
        make_match(2, round_number=2, division=2),
        make_match(3, round_number=3, tournament_type="mixed_doubles"),
    ]
    assert min_round_by_group(matches) == {
        "mens_doubles_1": 1,
        "mens_doubles_2": 2,
        "mixed_doubles_1": 3,
    }


def test_round_on_court_still_gates_next_round():
    playing = make_match(1, round_number=1, status=STATUS_PLAYING)
    waiting_next = make_match(2, round_number=2)
    assert not is_round_eligible(waiting_next, [playing, waiting_next])


def test_next_round_opens_when_previous_completes():
    done = make_match(1, round_number=1, status=STATUS_COMPLETED)
    waiting_next = make_match(2, round_number=2)
    assert is_round_eligible(waiting_next, [done, waiting_next])


def test_max_round_counts_every_status():
    matches = [
        make_match(1, round_number=1),
        make_match(2, round_number=3, status=STATUS_COMPLETED),
    ]
    assert max_round_by_group(matches) == {"mens_doubles_1": 3}


def test_precomputed_minimums_match_recomputed_answer():
    matches = [
        make_match(1, round_number=1, status=STATUS_PLAYING),
        make_match(2, round_number=2),
        make_match(3, round_number=1, division=2, status=STATUS_COMPLETED),
        make_match(4, round_number=2, division=2),
    ]
    min_rounds = min_round_by_group(matches)
    for m in matches[1:]:
        assert is_round_eligible(m, min_rounds=min_rounds) == is_round_eligible(m, matches)
    assert not is_round_eligible(matches[1], min_rounds=min_rounds)
    assert is_round_eligible(matches[3], min_rounds=min_rounds)


def test_engine_block_uses_round_gate(monkeypatch):
    gated = []

    def fake_gate(match, unfinished_in_group=(), min_rounds=None):
        gated.append(match.id)
        return False

    monkeypatch.setattr(dispatch_engine, "is_round_eligible", fake_gate)
    block = dispatch_engine.evaluate_block(make_match(7), NOW, set(), {}, None, 0)
    assert gated == [7]
    assert block.reason == REASON_PREVIOUS_ROUND
