from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_super_admin
from fiesta.db.database import get_session
from fiesta.models import BudgetStatus
from fiesta.responses import success
from fiesta.services import budget as budget_service

router = APIRouter(
    prefix="/budgets",
    tags=["Budget"],
)


class CreateBudgetCommand(SQLModel):
    category: str
    allocated: float
    description: Optional[str] = None


class UpdateBudgetCommand(SQLModel):
    category: Optional[str] = None
    description: Optional[str] = None
    allocated: Optional[float] = None
    status: Optional[BudgetStatus] = None


class CreateExpenseCommand(SQLModel):
    description: str
    amount: float
    paid_by: str
    paid_date: datetime
    receipt: Optional[str] = None


class UpdateExpenseCommand(SQLModel):
    description: Optional[str] = None
    amount: Optional[float] = None
    paid_by: Optional[str] = None
    paid_date: Optional[datetime] = None
    receipt: Optional[str] = None


@router.get("/")
async def list_budgets(user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    listing = await budget_service.list_budgets(session)
    return {"status": "success", "data": listing["budgets"], "summary": listing["summary"]}


@router.get("/analytics/summary")
async def budget_summary(user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    return success(await budget_service.budget_summary(session))


@router.get("/{budget_id}")
async def get_budget(budget_id: int, user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    budget = await budget_service.get_budget_or_404(session, budget_id)
    return success(await budget_service.budget_detail(session, budget))


@router.post("/", status_code=201)
async def create_budget(
    command: CreateBudgetCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    budget = await budget_service.create_budget(session, UUID(user["id"]), **command.model_dump())
    return success(await budget_service.budget_detail(session, budget), "Budget created")


@router.put("/{budget_id}")
async def update_budget(
    budget_id: int,
    command: UpdateBudgetCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    budget = await budget_service.update_budget(session, budget_id, command.model_dump(exclude_unset=True))
    return success(await budget_service.budget_detail(session, budget), "Budget updated")


@router.delete("/{budget_id}")
async def delete_budget(budget_id: int, user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    await budget_service.delete_budget(session, budget_id)
    return success(message="Budget deleted successfully")


@router.post("/{budget_id}/expenses", status_code=201)
async def add_expense(
    budget_id: int,
    command: CreateExpenseCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    added = await budget_service.add_expense(session, budget_id, UUID(user["id"]), **command.model_dump())
    return success(added, "Expense added")


@router.put("/{budget_id}/expenses/{expense_id}")
async def update_expense(
    budget_id: int,
    expense_id: int,
    command: UpdateExpenseCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    expense = await budget_service.update_expense(
        session, budget_id, expense_id, command.model_dump(exclude_unset=True)
    )
    return success(expense, "Expense updated")


@router.delete("/{budget_id}/expenses/{expense_id}")
async def delete_expense(
    budget_id: int,
    expense_id: int,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    await budget_service.delete_expense(session, budget_id, expense_id)
    return success(message="Expense deleted successfully")
