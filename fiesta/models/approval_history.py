from sqlmodel import SQLModel, Field
from uuid import UUID
from datetime import datetime
from typing import Optional

from .user import ApprovalStatus


class ApprovalHistory(SQLModel, table=True):
    """Append-only audit trail of approval decisions."""

    __tablename__ = "approvalhistory"

    id: int = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id")
    action: ApprovalStatus
    performed_by: UUID = Field(foreign_key="users.id")
    reason: Optional[str] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
