from sqlmodel import SQLModel, Field
from datetime import datetime
from enum import Enum
from typing import Optional


class MatchStatus(str, Enum):
    UPCOMING = "UPCOMING"
    LIVE = "LIVE"
    COMPLETED = "COMPLETED"


class Match(SQLModel, table=True):
    id: int = Field(default=None, primary_key=True)
    match_number: int = Field(unique=True, index=True)  # global sequence, not per tournament
    match_type: str = "T20"
    tournament_id: Optional[int] = Field(
        default=None, nullable=True, foreign_key="tournament.id", ondelete="SET NULL"
    )
    home_team_id: int = Field(foreign_key="team.id")
    away_team_id: int = Field(foreign_key="team.id")
    scheduled_time: datetime
    venue: str = "TBD"
    overs: int = 20
    status: MatchStatus = Field(default=MatchStatus.UPCOMING)
    winner_id: Optional[int] = Field(default=None, nullable=True, foreign_key="team.id")
    result: Optional[str] = Field(default=None, nullable=True)
    home_score: Optional[str] = Field(default=None, nullable=True)
    away_score: Optional[str] = Field(default=None, nullable=True)
    round: Optional[str] = Field(default=None, nullable=True)
    actual_start_time: Optional[datetime] = Field(default=None, nullable=True)
    end_time: Optional[datetime] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
