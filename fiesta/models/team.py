from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional


class Team(SQLModel, table=True):
    id: int = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    color: Optional[str] = Field(default=None, nullable=True)
    captain_id: Optional[int] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
