from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from court_dispatch.models.court import Court
    from court_dispatch.models.match import Match


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    court_count: int = Field(default=6)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    courts: List["Court"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
