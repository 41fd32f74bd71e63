from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import datetime
from typing import Optional

from .user import ApprovalStatus, UserType


class LoginRequest(SQLModel, table=True):
    __tablename__ = "loginrequest"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(index=True)
    full_name: str
    user_type: UserType
    trainee_id: Optional[str] = Field(default=None, nullable=True)
    department: Optional[str] = Field(default=None, nullable=True)
    user_id: Optional[UUID] = Field(default=None, nullable=True, foreign_key="users.id")
    status: ApprovalStatus = Field(default=ApprovalStatus.PENDING)
    reviewed_by: Optional[UUID] = Field(default=None, nullable=True)
    reviewed_at: Optional[datetime] = Field(default=None, nullable=True)
    review_note: Optional[str] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
