"""
Match lifecycle on court: calling -> playing -> completed (or walkover).

Completion frees the court and the match in one transaction, stamps player rest
(best-effort), then hands the finished match to the registered advancement hooks.
Bracket progression belongs to those hooks; nothing here decides who plays next.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlmodel import Session

from court_dispatch.models.court import Court
from court_dispatch.models.match import (
    ON_COURT_STATUSES,
    STATUS_CALLING,
    STATUS_COMPLETED,
    STATUS_PLAYING,
    STATUS_WAITING,
    Match,
)
from court_dispatch.services.court_overrides import OverrideDeclined, get_match
from court_dispatch.services.rest_tracker import record_player_rest
from court_dispatch.utils.resource_store import PreconditionFailed, ResourceStore

logger = logging.getLogger(__name__)

AdvancementHook = Callable[[Session, Match], None]

_advancement_hooks: List[AdvancementHook] = []


def register_advancement_hook(hook: AdvancementHook) -> None:
    if hook not in _advancement_hooks:
        _advancement_hooks.append(hook)


def unregister_advancement_hook(hook: AdvancementHook) -> None:
    if hook in _advancement_hooks:
        _advancement_hooks.remove(hook)


def _notify_advancement(session: Session, match: Match) -> None:
    for hook in list(_advancement_hooks):
        try:
            hook(session, match)
        except Exception:
            logger.exception("Advancement hook %r failed for match %d", hook, match.id)


def start_match(session: Session, tournament_id: int, match_id: int, now: Optional[datetime] = None) -> Match:
    """Players arrived: calling -> playing."""
    now = now or datetime.utcnow()
    match = get_match(session, tournament_id, match_id)
    if match.status == STATUS_PLAYING:
        return match
    if match.status != STATUS_CALLING:
        raise OverrideDeclined("Only a called match can be started")

    store = ResourceStore(session)
    try:
        with store.transaction():
            store.compare_and_set(
                Match,
                match_id,
                {"status": STATUS_CALLING},
                {"status": STATUS_PLAYING, "started_at": now, "updated_at": now},
            )
    except PreconditionFailed:
        raise OverrideDeclined("Match changed concurrently; try again")

    session.refresh(match)
    return match


def _finish(session: Session, match: Match, values: dict, now: datetime) -> Match:
    match_id = match.id
    court_id = match.court_id
    expected_status = ON_COURT_STATUSES if court_id is not None else (STATUS_WAITING,) + ON_COURT_STATUSES

    store = ResourceStore(session)
    try:
        with store.transaction():
            if court_id is not None:
                store.compare_and_set(
                    Court, court_id, {"current_match_id": match_id}, {"current_match_id": None, "updated_at": now}
                )
            store.compare_and_set(
                Match,
                match_id,
                {"status": expected_status, "court_id": court_id},
                {
                    **values,
                    "status": STATUS_COMPLETED,
                    "court_id": None,
                    "reserved_court_id": None,
                    "available_at": None,
                    "requeue_first": False,
                    "completed_at": now,
                    "updated_at": now,
                },
            )
    except PreconditionFailed:
        raise OverrideDeclined("Match changed concurrently; try again")

    session.refresh(match)
    record_player_rest(session, match, now)
    _notify_advancement(session, match)
    logger.info("Match %d completed (winner %s)", match_id, match.winner_id)
    return match


def complete_match(
    session: Session,
    tournament_id: int,
    match_id: int,
    score_p1: int,
    score_p2: int,
    winner_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Match:
    """Record a played result. The winner defaults to the side with more points."""
    now = now or datetime.utcnow()
    match = get_match(session, tournament_id, match_id)
    if match.status not in ON_COURT_STATUSES:
        raise OverrideDeclined("Only a match on court can be completed")
    if winner_id is None:
        if score_p1 == score_p2:
            raise OverrideDeclined("Scores are tied; winner_id required")
        winner_id = match.player1_id if score_p1 > score_p2 else match.player2_id
    if winner_id not in (match.player1_id, match.player2_id):
        raise OverrideDeclined("Winner must be one of the two sides")

    return _finish(
        session,
        match,
        {"score_p1": score_p1, "score_p2": score_p2, "winner_id": winner_id, "is_walkover": False},
        now,
    )


def record_walkover(
    session: Session,
    tournament_id: int,
    match_id: int,
    winner_side: int,
    now: Optional[datetime] = None,
) -> Match:
    """Resolve a match without play. Frees its court and triggers the same rest bookkeeping."""
    now = now or datetime.utcnow()
    if winner_side not in (1, 2):
        raise OverrideDeclined("winner_side must be 1 or 2")
    match = get_match(session, tournament_id, match_id)
    if match.status == STATUS_COMPLETED:
        raise OverrideDeclined("Match is already completed")

    winner_id = match.player1_id if winner_side == 1 else match.player2_id
    if not winner_id:
        raise OverrideDeclined("Winning side has no player yet")

    return _finish(
        session,
        match,
        {"winner_id": winner_id, "is_walkover": True, "walkover_winner": winner_side},
        now,
    )
