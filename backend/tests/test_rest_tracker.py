"""
Rest & break tracking.

Validates:
- Break pending blocks with ceil minutes remaining
- Busy players block, regardless of which slot they occupy
- Missing sides block as "players pending"
- Player rest after a finished match blocks for default_rest_minutes
- record_player_rest upserts one row per player
"""
from datetime import timedelta

from sqlmodel import Session, select

from court_dispatch.models.match import STATUS_CALLING, STATUS_COMPLETED, STATUS_PLAYING
from court_dispatch.models.player_rest import PlayerRest
from court_dispatch.services.rest_tracker import (
    REASON_ON_BREAK,
    REASON_PLAYER_BUSY,
    REASON_PLAYER_RESTING,
    REASON_PLAYERS_PENDING,
    block_status,
    busy_player_ids,
    minutes_until,
    record_player_rest,
)
from tests.helpers import NOW, add_match, make_match, seed_tournament


def test_minutes_until_rounds_up():
    assert minutes_until(NOW + timedelta(seconds=61), NOW) == 2
    assert minutes_until(NOW + timedelta(minutes=5), NOW) == 5
    assert minutes_until(NOW - timedelta(minutes=1), NOW) == 0


def test_unblocked_match():
    status = block_status(make_match(1), NOW, set())
    assert not status.blocked
    assert status.reason is None


def test_break_pending_blocks_with_minutes_remaining():
    match = make_match(1, available_at=NOW + timedelta(minutes=4, seconds=30))
    status = block_status(match, NOW, set())
    assert status.blocked
    assert status.reason == REASON_ON_BREAK
    assert status.minutes_remaining == 5


def test_break_elapsed_does_not_block():
    match = make_match(1, available_at=NOW)
    assert not block_status(match, NOW, set()).blocked


def test_missing_side_blocks():
    match = make_match(1, players=("solo",))
    status = block_status(match, NOW, set())
    assert status.blocked
    assert status.reason == REASON_PLAYERS_PENDING


def test_busy_partner_blocks():
    match = make_match(1, players=("a", "b", "c", "d"))
    status = block_status(match, NOW, {"d"})
    assert status.blocked
    assert status.reason == REASON_PLAYER_BUSY


def test_busy_player_ids_only_counts_on_court_matches():
    matches = [
        make_match(1, players=("a", "b"), status=STATUS_CALLING),
        make_match(2, players=("c", "d"), status=STATUS_PLAYING),
        make_match(3, players=("e", "f")),
        make_match(4, players=("g", "h"), status=STATUS_COMPLETED),
    ]
    assert busy_player_ids(matches) == {"a", "b", "c", "d"}


def test_player_rest_blocks_until_interval_passes():
    match = make_match(1, players=("a", "b"))
    rest = {"b": NOW - timedelta(minutes=3)}

    status = block_status(match, NOW, set(), rest, rest_minutes=10)
    assert status.blocked
    assert status.reason == REASON_PLAYER_RESTING
    assert status.minutes_remaining == 7

    assert not block_status(match, NOW + timedelta(minutes=7), set(), rest, rest_minutes=10).blocked


def test_zero_rest_minutes_disables_player_rest():
    match = make_match(1, players=("a", "b"))
    assert not block_status(match, NOW, set(), {"a": NOW}, rest_minutes=0).blocked


def test_record_player_rest_upserts(session: Session):
    tournament, _ = seed_tournament(session)
    first = add_match(session, tournament.id, players=("a", "b"), status=STATUS_COMPLETED)
    second = add_match(session, tournament.id, players=("a", "c"), status=STATUS_COMPLETED)

    assert record_player_rest(session, first, NOW) == 2
    assert record_player_rest(session, second, NOW + timedelta(minutes=30)) == 2

    rows = {
        r.player_id: r.last_match_finished_at
        for r in session.exec(select(PlayerRest).where(PlayerRest.tournament_id == tournament.id)).all()
    }
    assert rows == {
        "a": NOW + timedelta(minutes=30),
        "b": NOW,
        "c": NOW + timedelta(minutes=30),
    }
