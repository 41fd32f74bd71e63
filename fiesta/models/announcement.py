from sqlmodel import SQLModel, Field
from uuid import UUID
from datetime import datetime
from typing import Optional


class Announcement(SQLModel, table=True):
    id: int = Field(default=None, primary_key=True)
    title: str
    content: str
    image_url: Optional[str] = Field(default=None, nullable=True)
    link_url: Optional[str] = Field(default=None, nullable=True)
    link_text: Optional[str] = Field(default=None, nullable=True)
    type: str = "INFO"
    is_active: bool = Field(default=True)
    priority: int = 0  # higher first on the home page
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = Field(default=None, nullable=True)
    created_by: Optional[UUID] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
