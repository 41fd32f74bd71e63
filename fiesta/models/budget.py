from sqlmodel import SQLModel, Field
from uuid import UUID
from datetime import datetime
from enum import Enum
from typing import Optional


class BudgetStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXCEEDED = "EXCEEDED"
    CLOSED = "CLOSED"


class Budget(SQLModel, table=True):
    id: int = Field(default=None, primary_key=True)
    category: str
    description: Optional[str] = Field(default=None, nullable=True)
    allocated: float
    spent: float = 0.0  # sum of the expenses, kept in step by the budget service
    status: BudgetStatus = Field(default=BudgetStatus.ACTIVE)
    created_by: Optional[UUID] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class BudgetExpense(SQLModel, table=True):
    __tablename__ = "budgetexpense"

    id: int = Field(default=None, primary_key=True)
    budget_id: int = Field(foreign_key="budget.id", ondelete="CASCADE", index=True)
    description: str
    amount: float
    receipt: Optional[str] = Field(default=None, nullable=True)
    paid_by: str
    paid_date: datetime
    approved_by: Optional[UUID] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
