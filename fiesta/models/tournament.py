from sqlmodel import SQLModel, Field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class TournamentType(str, Enum):
    LEAGUE = "LEAGUE"
    ROUND_ROBIN = "ROUND_ROBIN"
    KNOCKOUT = "KNOCKOUT"


class MatchFormat(str, Enum):
    T10 = "T10"
    T15 = "T15"
    T20 = "T20"


class TournamentStatus(str, Enum):
    UPCOMING = "UPCOMING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class Tournament(SQLModel, table=True):
    id: int = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = Field(default=None, nullable=True)
    type: TournamentType
    format: MatchFormat
    start_date: datetime
    end_date: datetime
    number_of_teams: int
    max_players_per_team: int = 11
    min_players_per_team: int = 8
    entry_fee: Optional[float] = Field(default=None, nullable=True)
    prize_pool: Optional[float] = Field(default=None, nullable=True)
    rules: Optional[str] = Field(default=None, nullable=True)
    status: TournamentStatus = Field(default=TournamentStatus.UPCOMING)
    created_by: Optional[UUID] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
