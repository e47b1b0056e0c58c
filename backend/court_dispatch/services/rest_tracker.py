"""
Rest & Break tracking: decides whether a waiting match is temporarily ineligible.

A match is blocked when
- one of its two sides is still unknown (earlier result pending),
- its available_at lies in the future (player rest or an operator break),
- one of its players is on court in another calling/playing match,
- one of its players finished a match less than the rest interval ago.

Everything here is a pure read except record_player_rest(), which runs once per
completed match and is best-effort.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Mapping, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from court_dispatch.models.match import ON_COURT_STATUSES, Match
from court_dispatch.models.player_rest import PlayerRest

logger = logging.getLogger(__name__)

REASON_PLAYERS_PENDING = "players pending"
REASON_ON_BREAK = "on break"
REASON_PLAYER_BUSY = "player busy"
REASON_PLAYER_RESTING = "player resting"


@dataclass(frozen=True)
class BlockStatus:
    blocked: bool
    reason: Optional[str] = None
    minutes_remaining: int = 0


NOT_BLOCKED = BlockStatus(blocked=False)


def minutes_until(when: datetime, now: datetime) -> int:
    """Whole minutes (rounded up) from now until when; 0 if already past."""
    seconds = (when - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 60)


def busy_player_ids(matches: Iterable[Match]) -> Set[str]:
    """Players appearing in any calling/playing match."""
    busy: Set[str] = set()
    for m in matches:
        if m.status in ON_COURT_STATUSES:
            busy.update(m.player_ids())
    return busy


def is_break_pending(match: Match, now: datetime) -> bool:
    return match.available_at is not None and now < match.available_at


def block_status(
    match: Match,
    now: datetime,
    busy_players: Set[str],
    player_rest: Optional[Mapping[str, datetime]] = None,
    rest_minutes: int = 0,
) -> BlockStatus:
    if not match.player1_id or not match.player2_id:
        return BlockStatus(True, REASON_PLAYERS_PENDING)

    if is_break_pending(match, now):
        return BlockStatus(True, REASON_ON_BREAK, minutes_until(match.available_at, now))

    players = match.player_ids()
    if any(pid in busy_players for pid in players):
        return BlockStatus(True, REASON_PLAYER_BUSY)

    if player_rest and rest_minutes > 0:
        rested_at = [
            player_rest[pid] + timedelta(minutes=rest_minutes) for pid in players if pid in player_rest
        ]
        latest = max(rested_at, default=None)
        if latest is not None and now < latest:
            return BlockStatus(True, REASON_PLAYER_RESTING, minutes_until(latest, now))

    return NOT_BLOCKED


def record_player_rest(session: Session, match: Match, finished_at: datetime) -> int:
    """
    Stamp last_match_finished_at for every player of a finished match.

    Best-effort: a storage failure is logged and swallowed. Returns the number of
    players stamped.
    """
    match_id = match.id
    players = match.player_ids()
    if not players:
        return 0
    try:
        existing: Dict[str, PlayerRest] = {
            r.player_id: r
            for r in session.exec(
                select(PlayerRest).where(
                    PlayerRest.tournament_id == match.tournament_id,
                    PlayerRest.player_id.in_(players),
                )
            ).all()
        }
        for pid in players:
            row = existing.get(pid)
            if row is None:
                row = PlayerRest(tournament_id=match.tournament_id, player_id=pid)
            row.last_match_finished_at = finished_at
            session.add(row)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.warning("Could not record player rest for match %s", match_id, exc_info=True)
        return 0
    return len(players)
