from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from court_dispatch.models.tournament import Tournament

STATUS_WAITING = "waiting"
STATUS_CALLING = "calling"
STATUS_PLAYING = "playing"
STATUS_COMPLETED = "completed"

MATCH_STATUSES = (STATUS_WAITING, STATUS_CALLING, STATUS_PLAYING, STATUS_COMPLETED)
ON_COURT_STATUSES = (STATUS_CALLING, STATUS_PLAYING)

PLAYER_SLOTS = ("player1_id", "player2_id", "player3_id", "player4_id", "player5_id", "player6_id")


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    match_number: Optional[int] = Field(default=None)
    tournament_type: str  # "mens_doubles" | "womens_singles" | "mixed_doubles" | "team_battle" | ...
    division: int = Field(default=1)
    group: Optional[str] = Field(default=None)  # pool label for round-robin stages
    round_number: int = Field(default=1)
    is_third_place: bool = Field(default=False)

    status: str = Field(default=STATUS_WAITING, index=True)

    # Player slots; player1/player2 are the two sides, 3..6 are partners. Empty until feeders finish.
    player1_id: Optional[str] = Field(default=None)
    player2_id: Optional[str] = Field(default=None)
    player3_id: Optional[str] = Field(default=None)
    player4_id: Optional[str] = Field(default=None)
    player5_id: Optional[str] = Field(default=None)
    player6_id: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)  # queue entry, drives wait-time score
    available_at: Optional[datetime] = Field(default=None)  # not dispatchable before this (break)
    reserved_court_id: Optional[int] = Field(default=None, foreign_key="court.id")
    court_id: Optional[int] = Field(default=None, foreign_key="court.id")
    requeue_first: bool = Field(default=False)

    # Result fields, consumed by the bracket collaborator
    winner_id: Optional[str] = Field(default=None)
    score_p1: int = Field(default=0)
    score_p2: int = Field(default=0)
    is_walkover: bool = Field(default=False)
    walkover_winner: Optional[int] = Field(default=None)  # 1 | 2

    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="matches")

    def player_ids(self) -> List[str]:
        return [pid for pid in (getattr(self, slot) for slot in PLAYER_SLOTS) if pid]
