import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import BadRequest, NotFound
from fiesta.models import Budget, BudgetExpense, BudgetStatus

logger = logging.getLogger(__name__)


def _require_positive(value: float, label: str) -> None:
    if value is None or value <= 0:
        raise BadRequest(f"{label} must be greater than 0")


async def get_budget_or_404(session: AsyncSession, budget_id: int) -> Budget:
    budget = await session.get(Budget, budget_id)
    if budget is None:
        raise NotFound("Budget not found")
    return budget


async def _expenses(session: AsyncSession, budget_id: int):
    result = await session.exec(
        select(BudgetExpense)
        .where(BudgetExpense.budget_id == budget_id)
        .order_by(BudgetExpense.paid_date.desc(), BudgetExpense.id.desc())
    )
    return result.all()


async def _recalculate(session: AsyncSession, budget: Budget) -> None:
    """Re-derive ``spent`` from the expenses and move between ACTIVE and EXCEEDED."""
    await session.flush()
    result = await session.exec(
        select(func.coalesce(func.sum(BudgetExpense.amount), 0.0)).where(BudgetExpense.budget_id == budget.id)
    )
    budget.spent = float(result.one())
    if budget.spent > budget.allocated:
        budget.status = BudgetStatus.EXCEEDED
    elif budget.status == BudgetStatus.EXCEEDED:
        budget.status = BudgetStatus.ACTIVE
    budget.updated_at = datetime.utcnow()
    session.add(budget)


async def budget_detail(session: AsyncSession, budget: Budget) -> dict:
    data = budget.model_dump()
    data["remaining"] = budget.allocated - budget.spent
    data["expenses"] = await _expenses(session, budget.id)
    return data


async def list_budgets(session: AsyncSession) -> dict:
    result = await session.exec(select(Budget).order_by(Budget.created_at.desc(), Budget.id.desc()))
    budgets = result.all()
    return {
        "budgets": [await budget_detail(session, budget) for budget in budgets],
        "summary": {
            "total_allocated": sum(b.allocated for b in budgets),
            "total_spent": sum(b.spent for b in budgets),
            "total_remaining": sum(b.allocated - b.spent for b in budgets),
        },
    }


async def budget_summary(session: AsyncSession) -> dict:
    budgets = (await session.exec(select(Budget).order_by(Budget.category))).all()
    return {
        "total_budgets": len(budgets),
        "total_allocated": sum(b.allocated for b in budgets),
        "total_spent": sum(b.spent for b in budgets),
        "total_remaining": sum(b.allocated - b.spent for b in budgets),
        "by_category": [
            {
                "category": b.category,
                "allocated": b.allocated,
                "spent": b.spent,
                "remaining": b.allocated - b.spent,
                "percentage": (b.spent / b.allocated) * 100 if b.allocated else 0,
                "status": b.status,
            }
            for b in budgets
        ],
        "exceeded_budgets": sum(1 for b in budgets if b.spent > b.allocated),
        "active_budgets": sum(1 for b in budgets if b.status == BudgetStatus.ACTIVE),
    }


async def create_budget(
    session: AsyncSession,
    created_by: UUID,
    category: str,
    allocated: float,
    description: Optional[str] = None,
) -> Budget:
    if not category.strip():
        raise BadRequest("Category is required")
    _require_positive(allocated, "Allocated amount")
    budget = Budget(category=category.strip(), description=description, allocated=allocated, created_by=created_by)
    session.add(budget)
    await commit_or_rollback(session, "create the budget")
    await session.refresh(budget)
    logger.info("Created budget %s (%s, %.2f)", budget.id, budget.category, budget.allocated)
    return budget


async def update_budget(session: AsyncSession, budget_id: int, changes: dict) -> Budget:
    budget = await get_budget_or_404(session, budget_id)
    if "allocated" in changes:
        _require_positive(changes["allocated"], "Allocated amount")
    for field, value in changes.items():
        setattr(budget, field, value)
    await _recalculate(session, budget)
    await commit_or_rollback(session, "update the budget")
    await session.refresh(budget)
    return budget


async def delete_budget(session: AsyncSession, budget_id: int) -> None:
    budget = await get_budget_or_404(session, budget_id)
    await session.execute(delete(BudgetExpense).where(BudgetExpense.budget_id == budget_id))
    await session.delete(budget)
    await commit_or_rollback(session, "delete the budget")
    logger.info("Deleted budget %s", budget_id)


async def _get_expense_or_404(session: AsyncSession, budget_id: int, expense_id: int) -> BudgetExpense:
    expense = await session.get(BudgetExpense, expense_id)
    if expense is None or expense.budget_id != budget_id:
        raise NotFound("Expense not found")
    return expense


async def add_expense(session: AsyncSession, budget_id: int, approved_by: UUID, **fields) -> dict:
    budget = await get_budget_or_404(session, budget_id)
    _require_positive(fields["amount"], "Amount")
    expense = BudgetExpense(budget_id=budget_id, approved_by=approved_by, **fields)
    session.add(expense)
    await _recalculate(session, budget)
    await commit_or_rollback(session, "add the expense")
    await session.refresh(expense)
    await session.refresh(budget)
    if budget.status == BudgetStatus.EXCEEDED:
        logger.warning("Budget %s (%s) is over its allocation", budget.id, budget.category)
    return {"expense": expense, "budget": await budget_detail(session, budget)}


async def update_expense(session: AsyncSession, budget_id: int, expense_id: int, changes: dict) -> BudgetExpense:
    budget = await get_budget_or_404(session, budget_id)
    expense = await _get_expense_or_404(session, budget_id, expense_id)
    if "amount" in changes:
        _require_positive(changes["amount"], "Amount")
    for field, value in changes.items():
        setattr(expense, field, value)
    session.add(expense)
    await _recalculate(session, budget)
    await commit_or_rollback(session, "update the expense")
    await session.refresh(expense)
    return expense


async def delete_expense(session: AsyncSession, budget_id: int, expense_id: int) -> None:
    budget = await get_budget_or_404(session, budget_id)
    expense = await _get_expense_or_404(session, budget_id, expense_id)
    await session.delete(expense)
    await _recalculate(session, budget)
    await commit_or_rollback(session, "delete the expense")
