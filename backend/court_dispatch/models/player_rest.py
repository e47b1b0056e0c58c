from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class PlayerRest(SQLModel, table=True):
    __tablename__ = "playerrest"
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "player_id", name="uq_playerrest_tournament_player"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    player_id: str
    last_match_finished_at: datetime = Field(default_factory=datetime.utcnow)
