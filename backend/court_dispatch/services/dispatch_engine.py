"""
Allocation Engine: one dispatch cycle assigns at most one waiting match to each
free court.

plan_dispatch() is pure: it takes a snapshot of courts and matches plus the
dispatch settings and returns the assignments it would make. dispatch_all() reads
the snapshot from the Resource Store, plans, and commits each assignment with a
compare-and-set transaction. A commit whose preconditions no longer hold is
dropped; the match stays waiting and is reconsidered next cycle.

Per free court, in ascending court number:
1. A match reserved on this court whose break has elapsed resumes here.
2. If a reserved match resumes here within RESERVATION_HOLD_MINUTES, the court is
   kept free for it.
3. Otherwise the best-ranked unblocked candidate from the open pool is taken.
   A final of a finals-wait group is only taken here if this is one of its
   center courts or no center court is free; otherwise the court waits a cycle.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from court_dispatch.models.court import Court
from court_dispatch.models.match import ON_COURT_STATUSES, STATUS_WAITING, Match
from court_dispatch.services.dispatch_policy import filter_candidates, is_group_final
from court_dispatch.services.dispatch_settings import DispatchSettings
from court_dispatch.services.division_balance import compute_division_bias
from court_dispatch.services.priority_scorer import (
    ScoringContext,
    mixed_split_active,
    score_match,
    select_for_court,
)
from court_dispatch.services.rest_tracker import (
    BlockStatus,
    block_status,
    busy_player_ids,
    is_break_pending,
)
from court_dispatch.services.round_gate import (
    REASON_PREVIOUS_ROUND,
    group_key,
    is_round_eligible,
    max_round_by_group,
    min_round_by_group,
)
from court_dispatch.utils.resource_store import ResourceStore

logger = logging.getLogger(__name__)

# Average match length; a court whose reserved match resumes sooner is held for it
RESERVATION_HOLD_MINUTES = 20

SOURCE_RESERVED = "reserved"
SOURCE_SCORED = "scored"


@dataclass(frozen=True)
class Assignment:
    court_id: int
    match_id: int
    source: str
    score: Optional[float] = None


@dataclass(frozen=True)
class QueueEntry:
    match_id: int
    score: float
    blocked: bool
    reason: Optional[str] = None
    minutes_remaining: int = 0


def evaluate_block(
    match: Match,
    now: datetime,
    busy_players: Set[str],
    min_rounds: Mapping[str, int],
    player_rest: Optional[Mapping[str, datetime]],
    rest_minutes: int,
) -> BlockStatus:
    """Round gate first, then the rest/break/busy checks."""
    if not is_round_eligible(match, min_rounds=min_rounds):
        return BlockStatus(True, REASON_PREVIOUS_ROUND)
    return block_status(match, now, busy_players, player_rest, rest_minutes)


def _pinned_court_ids(courts: Sequence[Court]) -> Set[int]:
    """Courts a reservation can still resume on."""
    return {c.id for c in courts if c.is_active and not c.manually_frozen}


def _court_divisions(courts: Sequence[Court], matches: Sequence[Match]) -> Dict[int, int]:
    by_id = {m.id: m for m in matches}
    divisions: Dict[int, int] = {}
    for c in courts:
        held = by_id.get(c.current_match_id) if c.current_match_id is not None else None
        if held is not None and held.status in ON_COURT_STATUSES:
            divisions[c.number] = held.division
    return divisions


def center_court_numbers(division: int, court_count: int) -> Tuple[int, ...]:
    """Show courts for a final: the middle pair for division 1, the pair around it otherwise."""
    center = math.ceil(court_count / 2)
    numbers = (center, center + 1) if division == 1 else (center - 1, center + 2)
    return tuple(n for n in numbers if 1 <= n <= court_count)


def _final_waits_for_center_court(
    court: Court,
    match: Match,
    courts: Sequence[Court],
    matches: Sequence[Match],
    settings: DispatchSettings,
    taken: Set[int],
) -> bool:
    if not settings.finals_wait(group_key(match)) or not is_group_final(match, matches):
        return False
    preferred = center_court_numbers(match.division, len(courts))
    if court.number in preferred:
        return False
    return any(c.number in preferred and c.is_free and c.id not in taken for c in courts)


def _reserved_ready(court: Court, pool: Sequence[Match], now: datetime, busy: Set[str]) -> Optional[Match]:
    for m in pool:
        if m.reserved_court_id != court.id or is_break_pending(m, now):
            continue
        if any(pid in busy for pid in m.player_ids()):
            continue
        return m
    return None


def _reservation_imminent(court: Court, pool: Sequence[Match], now: datetime) -> bool:
    horizon = now + timedelta(minutes=RESERVATION_HOLD_MINUTES)
    return any(
        m.reserved_court_id == court.id and is_break_pending(m, now) and m.available_at <= horizon
        for m in pool
    )


def plan_dispatch(
    courts: Sequence[Court],
    matches: Sequence[Match],
    settings: DispatchSettings,
    now: datetime,
    player_rest: Optional[Mapping[str, datetime]] = None,
) -> List[Assignment]:
    free_courts = sorted((c for c in courts if c.is_free), key=lambda c: c.number)
    if not free_courts:
        return []

    waiting = [m for m in matches if m.status == STATUS_WAITING]
    if not waiting:
        return []

    pool, excluded = filter_candidates(waiting, matches, settings)
    if excluded:
        logger.debug("Policy excluded %d waiting matches this cycle", len(excluded))

    pinned = _pinned_court_ids(courts)
    busy = busy_player_ids(matches)
    min_rounds = min_round_by_group(matches)
    context = ScoringContext(
        now=now,
        group_max_round=max_round_by_group(matches),
        bias=compute_division_bias(matches),
        settings=settings,
        court_divisions=_court_divisions(courts, matches),
        court_count=len(courts),
        mixed_split=mixed_split_active(waiting),
    )

    assignments: List[Assignment] = []
    taken: Set[int] = set()
    for court in free_courts:
        chosen = _reserved_ready(court, waiting, now, busy)
        if chosen is not None:
            assignments.append(Assignment(court_id=court.id, match_id=chosen.id, source=SOURCE_RESERVED))
        elif _reservation_imminent(court, waiting, now):
            continue
        else:
            open_pool = [m for m in pool if m.reserved_court_id not in pinned]
            blocks = {
                m.id: evaluate_block(m, now, busy, min_rounds, player_rest, settings.default_rest_minutes)
                for m in open_pool
            }
            candidate = select_for_court(court, open_pool, context, blocks)
            if candidate is None:
                continue
            chosen = candidate.match
            if _final_waits_for_center_court(court, chosen, courts, matches, settings, taken):
                logger.debug("Court %d left free: final %d waits for a center court", court.number, chosen.id)
                continue
            assignments.append(
                Assignment(court_id=court.id, match_id=chosen.id, source=SOURCE_SCORED, score=candidate.score)
            )

        # Later courts in this cycle must not see the match or its players again
        pool = [m for m in pool if m.id != chosen.id]
        waiting = [m for m in waiting if m.id != chosen.id]
        busy.update(chosen.player_ids())
        taken.add(court.id)
        context.court_divisions[court.number] = chosen.division

    return assignments


def rank_waiting_queue(
    courts: Sequence[Court],
    matches: Sequence[Match],
    settings: DispatchSettings,
    now: datetime,
    player_rest: Optional[Mapping[str, datetime]] = None,
) -> List[QueueEntry]:
    """Every waiting match with its current score and, if blocked, why."""
    waiting = [m for m in matches if m.status == STATUS_WAITING]
    _, excluded = filter_candidates(waiting, matches, settings)
    busy = busy_player_ids(matches)
    min_rounds = min_round_by_group(matches)
    context = ScoringContext(
        now=now,
        group_max_round=max_round_by_group(matches),
        bias=compute_division_bias(matches),
        settings=settings,
    )

    entries: List[QueueEntry] = []
    for m in waiting:
        if m.id in excluded:
            block = BlockStatus(True, excluded[m.id])
        else:
            block = evaluate_block(m, now, busy, min_rounds, player_rest, settings.default_rest_minutes)
        score = score_match(m, context, blocked=block.blocked)
        entries.append(
            QueueEntry(
                match_id=m.id,
                score=round(score, 2),
                blocked=block.blocked,
                reason=block.reason,
                minutes_remaining=block.minutes_remaining,
            )
        )

    created = {m.id: m.created_at for m in waiting}
    requeued = {m.id for m in waiting if m.requeue_first}
    entries.sort(
        key=lambda e: (e.blocked, e.match_id not in requeued, -e.score, created[e.match_id], e.match_id)
    )
    return entries


def dispatch_all(
    session: Session,
    tournament_id: int,
    now: Optional[datetime] = None,
    settings: Optional[DispatchSettings] = None,
) -> int:
    """
    Run one dispatch cycle for a tournament.

    Used by both the periodic trigger and the manual "dispatch now" action.
    Returns the number of matches moved to calling.
    """
    now = now or datetime.utcnow()
    store = ResourceStore(session)

    try:
        courts = store.list_courts(tournament_id)
        if not any(c.is_free for c in courts):
            return 0
        matches = store.list_matches(tournament_id)
        if settings is None:
            settings = DispatchSettings.from_config(store.get_config(tournament_id))
        player_rest = store.player_rest_map(tournament_id)
    except SQLAlchemyError:
        session.rollback()
        logger.warning("Dispatch cycle for tournament %d skipped: store unavailable", tournament_id, exc_info=True)
        return 0

    plan = plan_dispatch(courts, matches, settings, now, player_rest)

    court_numbers = {c.id: c.number for c in courts}
    dispatched = 0
    for assignment in plan:
        try:
            committed = store.commit_assignment(assignment.court_id, assignment.match_id, now)
        except SQLAlchemyError:
            logger.warning(
                "Dispatch cycle for tournament %d ended early after %d assignments: store unavailable",
                tournament_id,
                dispatched,
                exc_info=True,
            )
            break

        if committed:
            dispatched += 1
            logger.info(
                "Match %d called to court %s (%s, score=%s)",
                assignment.match_id,
                court_numbers.get(assignment.court_id),
                assignment.source,
                "-" if assignment.score is None else round(assignment.score, 1),
            )
        else:
            logger.debug(
                "Assignment of match %d to court %d dropped: state changed since read",
                assignment.match_id,
                assignment.court_id,
            )

    return dispatched
