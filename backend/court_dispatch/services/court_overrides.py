"""
Manual overrides from the desk: freeze/unfreeze a court, move a match between
courts, pause a match on a timed break, and resume it on its reserved court.

Every operation is one transaction of compare-and-set updates, so it either
applies completely or leaves state untouched. Invalid requests raise
OverrideDeclined with a reason for the operator; repeating an operation that is
already in effect is a silent no-op.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Session

from court_dispatch.models.court import Court
from court_dispatch.models.match import (
    ON_COURT_STATUSES,
    STATUS_WAITING,
    Match,
)
from court_dispatch.services.rest_tracker import busy_player_ids, minutes_until
from court_dispatch.utils.resource_store import PreconditionFailed, ResourceStore

logger = logging.getLogger(__name__)


class OverrideError(Exception):
    """Base exception for manual override errors"""
    pass


class OverrideDeclined(OverrideError):
    """The override cannot be applied in the current state"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class OverrideNotFound(OverrideError):
    """Referenced court or match does not exist in this tournament"""
    pass


@dataclass
class FreezeResult:
    court_id: int
    changed: bool
    detached_match_id: Optional[int] = None


def get_court(session: Session, tournament_id: int, court_id: int) -> Court:
    court = session.get(Court, court_id)
    if not court or court.tournament_id != tournament_id:
        raise OverrideNotFound(f"Court {court_id} not found")
    return court


def get_match(session: Session, tournament_id: int, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise OverrideNotFound(f"Match {match_id} not found")
    return match


def freeze_court(session: Session, tournament_id: int, court_id: int, now: Optional[datetime] = None) -> FreezeResult:
    """
    Pull a court out of automatic allocation.

    A match on the court is detached and returned to waiting at the head of the
    queue (requeue_first). Freezing a frozen court does nothing.
    """
    now = now or datetime.utcnow()
    court = get_court(session, tournament_id, court_id)
    if court.manually_frozen:
        return FreezeResult(court_id=court_id, changed=False)

    held_id = court.current_match_id
    store = ResourceStore(session)
    try:
        with store.transaction():
            store.compare_and_set(
                Court,
                court_id,
                {"manually_frozen": False, "current_match_id": held_id},
                {
                    "manually_frozen": True,
                    "current_match_id": None,
                    "frozen_match_id": held_id,
                    "updated_at": now,
                },
            )
            if held_id is not None:
                store.compare_and_set(
                    Match,
                    held_id,
                    {"court_id": court_id, "status": ON_COURT_STATUSES},
                    {
                        "status": STATUS_WAITING,
                        "court_id": None,
                        "requeue_first": True,
                        "started_at": None,
                        "updated_at": now,
                    },
                )
    except PreconditionFailed:
        # Lost a race with another freeze or a dispatch; whatever won stands
        logger.info("Freeze of court %d skipped: court changed concurrently", court_id)
        return FreezeResult(court_id=court_id, changed=False)

    logger.info("Court %d frozen (detached match %s)", court.number, held_id)
    return FreezeResult(court_id=court_id, changed=True, detached_match_id=held_id)


def unfreeze_court(session: Session, tournament_id: int, court_id: int, now: Optional[datetime] = None) -> bool:
    """Return a frozen court to automatic allocation. False if it was not frozen."""
    now = now or datetime.utcnow()
    get_court(session, tournament_id, court_id)
    store = ResourceStore(session)
    try:
        with store.transaction():
            store.compare_and_set(
                Court,
                court_id,
                {"manually_frozen": True},
                {"manually_frozen": False, "frozen_match_id": None, "updated_at": now},
            )
    except PreconditionFailed:
        return False
    logger.info("Court %d unfrozen", court_id)
    return True


def move_match(
    session: Session,
    tournament_id: int,
    match_id: int,
    target_court_id: int,
    now: Optional[datetime] = None,
) -> Match:
    """Move a calling/playing match to another free court."""
    now = now or datetime.utcnow()
    match = get_match(session, tournament_id, match_id)
    target = get_court(session, tournament_id, target_court_id)

    if match.status not in ON_COURT_STATUSES or match.court_id is None:
        raise OverrideDeclined("Match is not on a court")
    if match.court_id == target_court_id:
        return match
    if not target.is_active:
        raise OverrideDeclined(f"Court {target.number} is not active")
    if target.current_match_id is not None:
        raise OverrideDeclined(f"Court {target.number} is occupied")

    source_court_id = match.court_id
    store = ResourceStore(session)
    try:
        with store.transaction():
            store.compare_and_set(
                Court, target_court_id, {"current_match_id": None}, {"current_match_id": match_id, "updated_at": now}
            )
            store.compare_and_set(
                Court, source_court_id, {"current_match_id": match_id}, {"current_match_id": None, "updated_at": now}
            )
            store.compare_and_set(
                Match,
                match_id,
                {"court_id": source_court_id, "status": ON_COURT_STATUSES},
                {"court_id": target_court_id, "updated_at": now},
            )
    except PreconditionFailed:
        raise OverrideDeclined("Court or match changed while moving; try again")

    session.refresh(match)
    logger.info("Match %d moved from court %d to court %d", match_id, source_court_id, target_court_id)
    return match


def set_break(
    session: Session,
    tournament_id: int,
    match_id: int,
    minutes: int,
    now: Optional[datetime] = None,
) -> Match:
    """
    Pause an on-court match for a number of minutes.

    The court is released for other matches; the match goes back to waiting,
    rest-blocked until the break ends and reserved to resume on the same court.
    """
    now = now or datetime.utcnow()
    if minutes <= 0:
        raise OverrideDeclined("Break must be at least one minute")
    match = get_match(session, tournament_id, match_id)
    if match.status not in ON_COURT_STATUSES or match.court_id is None:
        raise OverrideDeclined("Only a match on court can be put on break")

    court_id = match.court_id
    store = ResourceStore(session)
    try:
        with store.transaction():
            store.compare_and_set(
                Court, court_id, {"current_match_id": match_id}, {"current_match_id": None, "updated_at": now}
            )
            store.compare_and_set(
                Match,
                match_id,
                {"court_id": court_id, "status": ON_COURT_STATUSES},
                {
                    "status": STATUS_WAITING,
                    "court_id": None,
                    "available_at": now + timedelta(minutes=minutes),
                    "reserved_court_id": court_id,
                    "updated_at": now,
                },
            )
    except PreconditionFailed:
        raise OverrideDeclined("Match left the court before the break was set")

    session.refresh(match)
    logger.info("Match %d on break for %d min, court %d reserved", match_id, minutes, court_id)
    return match


def extend_break(
    session: Session,
    tournament_id: int,
    match_id: int,
    minutes: int,
    now: Optional[datetime] = None,
) -> Match:
    """Push back the end of a running break (or start a new one on the reserved court)."""
    now = now or datetime.utcnow()
    if minutes <= 0:
        raise OverrideDeclined("Break must be at least one minute")
    match = get_match(session, tournament_id, match_id)
    if match.status != STATUS_WAITING or match.reserved_court_id is None:
        raise OverrideDeclined("Match is not on break")

    previous = match.available_at
    base = previous if previous is not None and previous > now else now
    store = ResourceStore(session)
    try:
        with store.transaction():
            store.compare_and_set(
                Match,
                match_id,
                {"status": STATUS_WAITING, "available_at": previous},
                {"available_at": base + timedelta(minutes=minutes), "updated_at": now},
            )
    except PreconditionFailed:
        raise OverrideDeclined("Break changed concurrently; try again")

    session.refresh(match)
    return match


def cancel_break(session: Session, tournament_id: int, match_id: int, now: Optional[datetime] = None) -> Match:
    """End a break immediately. The court reservation is kept."""
    now = now or datetime.utcnow()
    match = get_match(session, tournament_id, match_id)
    if match.status != STATUS_WAITING or match.available_at is None:
        return match

    store = ResourceStore(session)
    try:
        with store.transaction():
            store.compare_and_set(
                Match,
                match_id,
                {"status": STATUS_WAITING},
                {"available_at": None, "updated_at": now},
            )
    except PreconditionFailed:
        logger.info("Cancel break for match %d skipped: match already left the queue", match_id)

    session.refresh(match)
    return match


def start_on_reserved_court(
    session: Session, tournament_id: int, match_id: int, now: Optional[datetime] = None
) -> Match:
    """Resume a paused match on its reserved court, as the dispatcher would."""
    now = now or datetime.utcnow()
    match = get_match(session, tournament_id, match_id)
    if match.status != STATUS_WAITING:
        raise OverrideDeclined("Match is not waiting")
    if match.reserved_court_id is None:
        raise OverrideDeclined("Match has no reserved court")
    if match.available_at is not None and now < match.available_at:
        raise OverrideDeclined(f"Break has {minutes_until(match.available_at, now)} min remaining")

    court = get_court(session, tournament_id, match.reserved_court_id)
    if court.current_match_id is not None:
        raise OverrideDeclined(f"Court {court.number} is occupied by match {court.current_match_id}")
    if court.manually_frozen or not court.is_active:
        raise OverrideDeclined(f"Court {court.number} is not available for allocation")

    store = ResourceStore(session)
    busy = busy_player_ids(store.list_matches(tournament_id))
    if any(pid in busy for pid in match.player_ids()):
        raise OverrideDeclined("A player of this match is on another court")

    if not store.commit_assignment(court.id, match_id, now):
        raise OverrideDeclined("Court or match changed concurrently; try again")

    session.refresh(match)
    logger.info("Match %d resumed on reserved court %d", match_id, court.number)
    return match
