from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import datetime
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    USER = "USER"


class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class UserType(str, Enum):
    """Kind of registration record a principal was created from."""

    PLAYER = "PLAYER"
    TRAINEE = "TRAINEE"
    COMMITTEE = "COMMITTEE"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)  # stored lower-cased
    password_hash: Optional[str] = Field(default=None, nullable=True)
    first_name: str = ""
    last_name: str = ""
    role: UserRole = Field(default=UserRole.USER)
    user_type: Optional[UserType] = Field(default=None, nullable=True)
    approval_status: ApprovalStatus = Field(default=ApprovalStatus.PENDING)
    approved_by: Optional[UUID] = Field(default=None, nullable=True)
    approved_at: Optional[datetime] = Field(default=None, nullable=True)
    trainee_id: Optional[str] = Field(default=None, nullable=True, unique=True)
    player_id: Optional[int] = Field(default=None, nullable=True, foreign_key="player.id")
    project_name: Optional[str] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
