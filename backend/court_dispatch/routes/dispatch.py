"""
Dispatch control: operator configuration, "dispatch now", and the ranked
waiting queue as the next cycle would see it.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from court_dispatch.database import get_session
from court_dispatch.models.dispatch_config import REST_MINUTE_CHOICES
from court_dispatch.models.tournament import Tournament
from court_dispatch.services.dispatch_engine import dispatch_all, rank_waiting_queue
from court_dispatch.services.dispatch_settings import DispatchSettings, naive_utc
from court_dispatch.utils.resource_store import ResourceStore

logger = logging.getLogger(__name__)

router = APIRouter()


class DispatchConfigResponse(BaseModel):
    tournament_id: int
    auto_dispatch_enabled: bool
    is_sequential_mode: bool
    finals_wait_mode: Dict[str, bool] = {}
    default_rest_minutes: int
    enabled_tournament_types: List[str] = []
    tournament_type_priority: Dict[str, int] = {}
    category_boost: Dict[str, Any] = {}
    updated_at: datetime

    @field_validator(
        "finals_wait_mode", "enabled_tournament_types", "tournament_type_priority", "category_boost", mode="before"
    )
    @classmethod
    def empty_when_null(cls, v, info):
        if v is None:
            return [] if info.field_name == "enabled_tournament_types" else {}
        return v

    class Config:
        from_attributes = True


class CategoryBoost(BaseModel):
    value: float
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def store_as_naive_utc(cls, v):
        return naive_utc(v) if v is not None else v


class DispatchConfigUpdate(BaseModel):
    auto_dispatch_enabled: Optional[bool] = None
    is_sequential_mode: Optional[bool] = None
    finals_wait_mode: Optional[Dict[str, bool]] = None
    default_rest_minutes: Optional[int] = None
    enabled_tournament_types: Optional[List[str]] = None
    tournament_type_priority: Optional[Dict[str, int]] = None
    category_boost: Optional[Dict[str, CategoryBoost]] = None

    @field_validator("default_rest_minutes")
    @classmethod
    def validate_rest_minutes(cls, v):
        if v is not None and v not in REST_MINUTE_CHOICES:
            raise ValueError(f"default_rest_minutes must be one of {list(REST_MINUTE_CHOICES)}")
        return v


class DispatchRunResponse(BaseModel):
    tournament_id: int
    dispatched: int


class QueueEntryResponse(BaseModel):
    match_id: int
    score: float
    blocked: bool
    reason: Optional[str] = None
    minutes_remaining: int = 0


def _require_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments/{tournament_id}/dispatch-config", response_model=DispatchConfigResponse)
def get_dispatch_config(tournament_id: int, session: Session = Depends(get_session)):
    _require_tournament(session, tournament_id)
    return ResourceStore(session).get_config(tournament_id)


@router.patch("/tournaments/{tournament_id}/dispatch-config", response_model=DispatchConfigResponse)
def update_dispatch_config(
    tournament_id: int,
    config_data: DispatchConfigUpdate,
    session: Session = Depends(get_session),
):
    """Partial update; only the fields sent are changed"""
    _require_tournament(session, tournament_id)
    config = ResourceStore(session).get_config(tournament_id)

    update_data = config_data.model_dump(exclude_unset=True, mode="json")
    for field, value in update_data.items():
        setattr(config, field, value)
    config.updated_at = datetime.utcnow()
    session.add(config)
    session.commit()
    session.refresh(config)

    logger.info("Dispatch config for tournament %d updated: %s", tournament_id, sorted(update_data))
    return config


@router.post("/tournaments/{tournament_id}/dispatch", response_model=DispatchRunResponse)
def dispatch_now(tournament_id: int, session: Session = Depends(get_session)):
    """Run one dispatch cycle immediately"""
    _require_tournament(session, tournament_id)
    dispatched = dispatch_all(session, tournament_id)
    return DispatchRunResponse(tournament_id=tournament_id, dispatched=dispatched)


@router.get("/tournaments/{tournament_id}/dispatch/queue", response_model=List[QueueEntryResponse])
def dispatch_queue(tournament_id: int, session: Session = Depends(get_session)):
    """Waiting matches in the order the next cycle would consider them"""
    _require_tournament(session, tournament_id)
    store = ResourceStore(session)
    settings = DispatchSettings.from_config(store.get_config(tournament_id))
    entries = rank_waiting_queue(
        store.list_courts(tournament_id),
        store.list_matches(tournament_id),
        settings,
        datetime.utcnow(),
        store.player_rest_map(tournament_id),
    )
    return [
        QueueEntryResponse(
            match_id=e.match_id,
            score=e.score,
            blocked=e.blocked,
            reason=e.reason,
            minutes_remaining=e.minutes_remaining,
        )
        for e in entries
    ]
