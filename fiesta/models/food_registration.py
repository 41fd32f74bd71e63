from sqlmodel import SQLModel, Field
from datetime import datetime
from enum import Enum
from typing import Optional


class FoodPreference(str, Enum):
    VEGETARIAN = "VEGETARIAN"
    NON_VEGETARIAN = "NON_VEGETARIAN"


class FoodRegistration(SQLModel, table=True):
    __tablename__ = "foodregistration"

    id: int = Field(default=None, primary_key=True)
    trainee_id: str = Field(unique=True, index=True)
    full_name: str
    email: Optional[str] = Field(default=None, nullable=True, index=True)
    contact_number: Optional[str] = Field(default=None, nullable=True)
    department: str
    food_preference: FoodPreference = Field(default=FoodPreference.NON_VEGETARIAN)
    food_collected: bool = Field(default=False)
    food_collected_at: Optional[datetime] = Field(default=None, nullable=True)
    is_approved: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
