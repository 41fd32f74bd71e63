from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional


class CommitteeMember(SQLModel, table=True):
    __tablename__ = "committeemember"

    id: int = Field(default=None, primary_key=True)
    full_name: str
    email: str = Field(unique=True, index=True)
    department: Optional[str] = Field(default=None, nullable=True)
    whatsapp_number: Optional[str] = Field(default=None, nullable=True)
    emergency_contact: Optional[str] = Field(default=None, nullable=True)
    assigned_team: Optional[str] = Field(default=None, nullable=True)
    experience_level: str = "NONE"
    checked_in: bool = Field(default=False)
    check_in_time: Optional[datetime] = Field(default=None, nullable=True)
    check_out_time: Optional[datetime] = Field(default=None, nullable=True)
    is_approved: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
