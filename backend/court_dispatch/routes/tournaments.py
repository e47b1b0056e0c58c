from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlmodel import Session, select

from court_dispatch.database import get_session
from court_dispatch.models.court import GENDER_FEMALE, GENDER_MALE, Court
from court_dispatch.models.dispatch_config import DispatchConfig
from court_dispatch.models.tournament import Tournament

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    court_count: int = Field(default=6, ge=1, le=64)
    # Split courts by gender preference: lower half male, upper half female
    split_court_genders: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentResponse(BaseModel):
    id: int
    name: str
    court_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def court_gender_for(number: int, court_count: int) -> Optional[str]:
    """Courts 1..ceil(n/2) prefer men's matches, the rest women's."""
    if court_count < 2:
        return None
    return GENDER_MALE if number <= (court_count + 1) // 2 else GENDER_FEMALE


def create_courts(session: Session, tournament_id: int, court_count: int, split_genders: bool) -> List[Court]:
    courts = []
    for number in range(1, court_count + 1):
        court = Court(
            tournament_id=tournament_id,
            number=number,
            preferred_gender=court_gender_for(number, court_count) if split_genders else None,
        )
        session.add(court)
        courts.append(court)
    return courts


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament with its courts and a default dispatch config"""
    tournament = Tournament(name=tournament_data.name, court_count=tournament_data.court_count)
    session.add(tournament)
    session.flush()  # Get the ID

    create_courts(session, tournament.id, tournament_data.court_count, tournament_data.split_court_genders)
    session.add(DispatchConfig(tournament_id=tournament.id))
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament
