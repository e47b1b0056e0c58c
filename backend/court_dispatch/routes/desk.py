"""
Desk console: staff-only manual overrides on the live court board.

Freeze/unfreeze courts, move matches, pause matches on a break and resume them,
and record results. Declined overrides come back as 409 with the reason.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator
from sqlmodel import Session

from court_dispatch.database import get_session
from court_dispatch.routes.matches import MatchResponse
from court_dispatch.services import court_overrides, match_lifecycle
from court_dispatch.services.court_overrides import OverrideDeclined, OverrideNotFound

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request / response models ───────────────────────────────────────────

class FreezeResponse(BaseModel):
    court_id: int
    changed: bool
    detached_match_id: Optional[int] = None


class UnfreezeResponse(BaseModel):
    court_id: int
    changed: bool


class MoveRequest(BaseModel):
    target_court_id: int


class BreakRequest(BaseModel):
    minutes: int = Field(gt=0, le=180)


class CompleteRequest(BaseModel):
    score_p1: int = Field(ge=0)
    score_p2: int = Field(ge=0)
    winner_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_scores(self):
        if self.winner_id is None and self.score_p1 == self.score_p2:
            raise ValueError("winner_id is required when scores are tied")
        return self


class WalkoverRequest(BaseModel):
    winner_side: int = Field(ge=1, le=2)


def _run_override(action, *args):
    try:
        return action(*args)
    except OverrideNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OverrideDeclined as e:
        raise HTTPException(status_code=409, detail=e.reason)


# ── Courts ──────────────────────────────────────────────────────────────

@router.post("/desk/tournaments/{tournament_id}/courts/{court_id}/freeze", response_model=FreezeResponse)
def freeze_court(tournament_id: int, court_id: int, session: Session = Depends(get_session)):
    """Pull a court out of auto dispatch; its match goes back to the head of the queue."""
    result = _run_override(court_overrides.freeze_court, session, tournament_id, court_id)
    return FreezeResponse(
        court_id=result.court_id,
        changed=result.changed,
        detached_match_id=result.detached_match_id,
    )


@router.post("/desk/tournaments/{tournament_id}/courts/{court_id}/unfreeze", response_model=UnfreezeResponse)
def unfreeze_court(tournament_id: int, court_id: int, session: Session = Depends(get_session)):
    changed = _run_override(court_overrides.unfreeze_court, session, tournament_id, court_id)
    return UnfreezeResponse(court_id=court_id, changed=changed)


# ── Matches ─────────────────────────────────────────────────────────────

@router.post("/desk/tournaments/{tournament_id}/matches/{match_id}/move", response_model=MatchResponse)
def move_match(tournament_id: int, match_id: int, data: MoveRequest, session: Session = Depends(get_session)):
    return _run_override(court_overrides.move_match, session, tournament_id, match_id, data.target_court_id)


@router.post("/desk/tournaments/{tournament_id}/matches/{match_id}/break", response_model=MatchResponse)
def set_break(tournament_id: int, match_id: int, data: BreakRequest, session: Session = Depends(get_session)):
    return _run_override(court_overrides.set_break, session, tournament_id, match_id, data.minutes)


@router.post("/desk/tournaments/{tournament_id}/matches/{match_id}/break/extend", response_model=MatchResponse)
def extend_break(tournament_id: int, match_id: int, data: BreakRequest, session: Session = Depends(get_session)):
    return _run_override(court_overrides.extend_break, session, tournament_id, match_id, data.minutes)


@router.post("/desk/tournaments/{tournament_id}/matches/{match_id}/break/cancel", response_model=MatchResponse)
def cancel_break(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    return _run_override(court_overrides.cancel_break, session, tournament_id, match_id)


@router.post("/desk/tournaments/{tournament_id}/matches/{match_id}/start-reserved", response_model=MatchResponse)
def start_reserved(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    """Resume a paused match on its reserved court without waiting for the next cycle."""
    return _run_override(court_overrides.start_on_reserved_court, session, tournament_id, match_id)


@router.post("/desk/tournaments/{tournament_id}/matches/{match_id}/start", response_model=MatchResponse)
def start_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    return _run_override(match_lifecycle.start_match, session, tournament_id, match_id)


@router.post("/desk/tournaments/{tournament_id}/matches/{match_id}/complete", response_model=MatchResponse)
def complete_match(
    tournament_id: int, match_id: int, data: CompleteRequest, session: Session = Depends(get_session)
):
    return _run_override(
        match_lifecycle.complete_match,
        session,
        tournament_id,
        match_id,
        data.score_p1,
        data.score_p2,
        data.winner_id,
    )


@router.post("/desk/tournaments/{tournament_id}/matches/{match_id}/walkover", response_model=MatchResponse)
def record_walkover(
    tournament_id: int, match_id: int, data: WalkoverRequest, session: Session = Depends(get_session)
):
    return _run_override(match_lifecycle.record_walkover, session, tournament_id, match_id, data.winner_side)
