from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional


class Player(SQLModel, table=True):
    id: int = Field(default=None, primary_key=True)
    trainee_id: str = Field(unique=True, index=True)
    full_name: str
    email: Optional[str] = Field(default=None, nullable=True, index=True)
    contact_number: Optional[str] = Field(default=None, nullable=True)
    emergency_contact: Optional[str] = Field(default=None, nullable=True)
    department: str
    gender: str = "MALE"
    position: str = "BATSMAN"
    experience_level: str = "BEGINNER"
    batting_style: Optional[str] = Field(default=None, nullable=True)
    bowling_style: Optional[str] = Field(default=None, nullable=True)
    profile_image: Optional[str] = Field(default=None, nullable=True)
    team_id: Optional[int] = Field(default=None, nullable=True, foreign_key="team.id")
    is_approved: bool = Field(default=False)  # visible on the public players page
    attended: bool = Field(default=False)
    attended_at: Optional[datetime] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
