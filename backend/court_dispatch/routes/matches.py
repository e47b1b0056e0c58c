"""
Match queue endpoints used by the bracket side: enqueue generated matches and
read them back by status.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlmodel import Session

from court_dispatch.database import get_session
from court_dispatch.models.match import MATCH_STATUSES, STATUS_WAITING, Match
from court_dispatch.models.tournament import Tournament
from court_dispatch.utils.resource_store import ResourceStore

logger = logging.getLogger(__name__)

router = APIRouter()


class MatchCreate(BaseModel):
    match_number: Optional[int] = None
    tournament_type: str
    division: int = Field(default=1, ge=1)
    group: Optional[str] = None
    round_number: int = Field(default=1, ge=1)
    is_third_place: bool = False
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    player3_id: Optional[str] = None
    player4_id: Optional[str] = None
    player5_id: Optional[str] = None
    player6_id: Optional[str] = None

    @field_validator("tournament_type")
    @classmethod
    def validate_type(cls, v):
        if not v or not v.strip():
            raise ValueError("tournament_type is required")
        return v.strip()


class MatchBulkCreate(BaseModel):
    matches: List[MatchCreate] = Field(min_length=1)


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    match_number: Optional[int] = None
    tournament_type: str
    division: int
    group: Optional[str] = None
    round_number: int
    is_third_place: bool
    status: str
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    player3_id: Optional[str] = None
    player4_id: Optional[str] = None
    player5_id: Optional[str] = None
    player6_id: Optional[str] = None
    created_at: datetime
    available_at: Optional[datetime] = None
    reserved_court_id: Optional[int] = None
    court_id: Optional[int] = None
    requeue_first: bool
    winner_id: Optional[str] = None
    score_p1: int
    score_p2: int
    is_walkover: bool
    walkover_winner: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@router.post("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse], status_code=201)
def enqueue_matches(tournament_id: int, data: MatchBulkCreate, session: Session = Depends(get_session)):
    """Add matches to the waiting queue. All share one created_at so ties fall back to id order."""
    if not session.get(Tournament, tournament_id):
        raise HTTPException(status_code=404, detail="Tournament not found")

    now = datetime.utcnow()
    created = []
    for item in data.matches:
        match = Match(
            tournament_id=tournament_id,
            status=STATUS_WAITING,
            created_at=now,
            updated_at=now,
            **item.model_dump(),
        )
        session.add(match)
        created.append(match)
    session.commit()
    for match in created:
        session.refresh(match)

    logger.info("Enqueued %d matches for tournament %d", len(created), tournament_id)
    return created


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(
    tournament_id: int,
    status: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """List matches in queue order, optionally filtered by status"""
    if not session.get(Tournament, tournament_id):
        raise HTTPException(status_code=404, detail="Tournament not found")
    if status is not None and status not in MATCH_STATUSES:
        raise HTTPException(status_code=422, detail=f"status must be one of {', '.join(MATCH_STATUSES)}")
    return ResourceStore(session).list_matches(tournament_id, status=status)
