from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class TournamentStanding(SQLModel, table=True):
    __tablename__ = "tournamentstanding"
    __table_args__ = (
        UniqueConstraint("tournament_id", "team_id", name="uq_standing_tournament_team"),
    )

    id: int = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", ondelete="CASCADE", index=True)
    team_id: int = Field(foreign_key="team.id")
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    points: int = 0
    net_run_rate: float = 0.0  # supplied externally, never computed here
