from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from court_dispatch.models.tournament import Tournament

GENDER_MALE = "male"
GENDER_FEMALE = "female"


class Court(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "number", name="uq_court_tournament_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    number: int
    preferred_gender: Optional[str] = Field(default=None)  # "male" | "female" | None (soft affinity only)
    is_active: bool = Field(default=True)

    # No FK: match.court_id already points back here
    current_match_id: Optional[int] = Field(default=None, index=True)

    # Operator pulled the court out of automatic allocation
    manually_frozen: bool = Field(default=False)
    frozen_match_id: Optional[int] = Field(default=None)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="courts")

    @property
    def is_free(self) -> bool:
        return self.is_active and not self.manually_frozen and self.current_match_id is None
