from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

REST_MINUTE_CHOICES = (0, 5, 10, 15, 20)
DEFAULT_REST_MINUTES = 10


class DispatchConfig(SQLModel, table=True):
    __tablename__ = "dispatchconfig"

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", unique=True, index=True)
    auto_dispatch_enabled: bool = Field(default=False)
    is_sequential_mode: bool = Field(default=False)
    # "{tournament_type}_{division}" -> hold the final until the rest of the group is done
    finals_wait_mode: Optional[Dict[str, bool]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    default_rest_minutes: int = Field(default=DEFAULT_REST_MINUTES)
    enabled_tournament_types: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    tournament_type_priority: Optional[Dict[str, int]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    # tournament_type -> {"value": float, "expires_at": iso datetime}
    category_boost: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    updated_at: datetime = Field(default_factory=datetime.utcnow)
