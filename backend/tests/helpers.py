"""Shared builders for dispatch tests (detached objects and persisted rows)."""
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from sqlmodel import Session

from court_dispatch.models.court import Court
from court_dispatch.models.dispatch_config import DispatchConfig
from court_dispatch.models.match import STATUS_COMPLETED, STATUS_WAITING, Match
from court_dispatch.models.tournament import Tournament

NOW = datetime(2026, 6, 6, 10, 0, 0)


def make_court(court_id: int, number: Optional[int] = None, preferred_gender: Optional[str] = None, **kw) -> Court:
    return Court(
        id=court_id,
        tournament_id=1,
        number=number if number is not None else court_id,
        preferred_gender=preferred_gender,
        **kw,
    )


def make_match(
    match_id: int,
    tournament_type: str = "mens_doubles",
    division: int = 1,
    round_number: int = 1,
    players: Sequence[str] = None,
    waited_minutes: float = 0,
    status: str = STATUS_WAITING,
    **kw,
) -> Match:
    """A detached match; players default to two unique ids derived from match_id."""
    if players is None:
        players = (f"p{match_id}a", f"p{match_id}b")
    slots = {f"player{i + 1}_id": pid for i, pid in enumerate(players)}
    return Match(
        id=match_id,
        tournament_id=1,
        tournament_type=tournament_type,
        division=division,
        round_number=round_number,
        status=status,
        created_at=NOW - timedelta(minutes=waited_minutes),
        **slots,
        **kw,
    )


def seed_tournament(
    session: Session,
    court_genders: Sequence[Optional[str]] = (None, None),
    **config,
) -> Tuple[Tournament, List[Court]]:
    """Persist a tournament with one court per entry in court_genders and its config."""
    tournament = Tournament(name="Dispatch Test", court_count=len(court_genders))
    session.add(tournament)
    session.flush()

    courts = []
    for number, gender in enumerate(court_genders, start=1):
        court = Court(tournament_id=tournament.id, number=number, preferred_gender=gender)
        session.add(court)
        courts.append(court)
    session.add(DispatchConfig(tournament_id=tournament.id, **config))
    session.commit()
    session.refresh(tournament)
    for court in courts:
        session.refresh(court)
    return tournament, courts


def add_match(
    session: Session,
    tournament_id: int,
    tournament_type: str = "mens_doubles",
    division: int = 1,
    round_number: int = 1,
    players: Sequence[str] = ("a1", "a2"),
    waited_minutes: float = 0,
    status: str = STATUS_WAITING,
    court: Optional[Court] = None,
    **kw,
) -> Match:
    """Persist a match. Passing court links it both ways (court.current_match_id too)."""
    slots = {f"player{i + 1}_id": pid for i, pid in enumerate(players)}
    match = Match(
        tournament_id=tournament_id,
        tournament_type=tournament_type,
        division=division,
        round_number=round_number,
        status=status,
        created_at=NOW - timedelta(minutes=waited_minutes),
        court_id=court.id if court is not None else None,
        completed_at=NOW if status == STATUS_COMPLETED else None,
        **slots,
        **kw,
    )
    session.add(match)
    session.flush()
    if court is not None:
        court.current_match_id = match.id
        session.add(court)
    session.commit()
    session.refresh(match)
    return match
