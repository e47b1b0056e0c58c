from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from court_dispatch.database import get_session
from court_dispatch.models.court import GENDER_FEMALE, GENDER_MALE, Court
from court_dispatch.models.tournament import Tournament
from court_dispatch.utils.resource_store import ResourceStore

router = APIRouter()


class CourtResponse(BaseModel):
    id: int
    tournament_id: int
    number: int
    preferred_gender: Optional[str] = None
    is_active: bool
    current_match_id: Optional[int] = None
    manually_frozen: bool
    frozen_match_id: Optional[int] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class CourtUpdate(BaseModel):
    preferred_gender: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("preferred_gender")
    @classmethod
    def validate_gender(cls, v):
        if v is not None and v not in (GENDER_MALE, GENDER_FEMALE):
            raise ValueError(f"preferred_gender must be '{GENDER_MALE}', '{GENDER_FEMALE}' or null")
        return v


@router.get("/tournaments/{tournament_id}/courts", response_model=List[CourtResponse])
def list_courts(tournament_id: int, session: Session = Depends(get_session)):
    """List courts in number order"""
    if not session.get(Tournament, tournament_id):
        raise HTTPException(status_code=404, detail="Tournament not found")
    return ResourceStore(session).list_courts(tournament_id)


@router.patch("/tournaments/{tournament_id}/courts/{court_id}", response_model=CourtResponse)
def update_court(
    tournament_id: int,
    court_id: int,
    court_data: CourtUpdate,
    session: Session = Depends(get_session),
):
    """Change a court's gender preference or take it in/out of service"""
    court = session.get(Court, court_id)
    if not court or court.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Court not found")

    update_data = court_data.model_dump(exclude_unset=True)
    if update_data.get("is_active") is False and court.current_match_id is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Court {court.number} has match {court.current_match_id} on it; move or finish it first",
        )

    for field, value in update_data.items():
        setattr(court, field, value)
    court.updated_at = datetime.utcnow()
    session.add(court)
    session.commit()
    session.refresh(court)
    return court
