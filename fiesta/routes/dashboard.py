from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_admin
from fiesta.db.database import get_session
from fiesta.realtime.active_users import active_users
from fiesta.responses import success
from fiesta.services import dashboard as dashboard_service

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
    dependencies=[Depends(require_admin)],
)


@router.get("/stats")
async def stats(session: AsyncSession = Depends(get_session)):
    return success(await dashboard_service.dashboard_stats(session, await active_users.get()))


@router.get("/registration-by-department")
async def registration_by_department(session: AsyncSession = Depends(get_session)):
    return success(await dashboard_service.registrations_by_department(session))


@router.get("/food-preferences")
async def food_preferences(session: AsyncSession = Depends(get_session)):
    return success(await dashboard_service.food_preferences(session))
