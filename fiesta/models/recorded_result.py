from sqlmodel import SQLModel, Field
from datetime import datetime


class RecordedResult(SQLModel, table=True):
    """One row per match whose result has been applied to standings."""

    __tablename__ = "recordedresult"

    match_id: int = Field(foreign_key="match.id", primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", ondelete="CASCADE")
    winner_id: int = Field(foreign_key="team.id")
    recorded_at: datetime = Field(default_factory=datetime.utcnow)
