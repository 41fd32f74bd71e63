from sqlmodel import SQLModel, Field
from datetime import datetime


class OneTimePasscode(SQLModel, table=True):
    __tablename__ = "onetimepasscode"

    id: int = Field(default=None, primary_key=True)
    email: str = Field(index=True)
    code: str = Field(max_length=6)
    purpose: str = "LOGIN"
    expires_at: datetime
    verified: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
