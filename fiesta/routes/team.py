from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_admin
from fiesta.db.database import get_session
from fiesta.realtime.hub import RealtimeHub, get_hub
from fiesta.responses import success
from fiesta.services import team as team_service

router = APIRouter(
    prefix="/teams",
    tags=["Team"],
)


class CreateTeamCommand(SQLModel):
    name: str
    color: Optional[str] = None
    captain_id: Optional[int] = None


class UpdateTeamCommand(SQLModel):
    name: Optional[str] = None
    color: Optional[str] = None
    captain_id: Optional[int] = None


@router.get("/")
async def list_teams(session: AsyncSession = Depends(get_session)):
    return success(await team_service.list_teams(session))


@router.post("/", status_code=201)
async def create_team(
    command: CreateTeamCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await team_service.create_team(session, **command.model_dump()))


@router.post("/auto-assign")
async def auto_assign(
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
):
    assigned = await team_service.auto_assign_players(session)
    hub.publish("team:assigned", assigned)
    return success(
        assigned,
        f"Successfully assigned {assigned['assigned_count']} players to {len(assigned['teams'])} teams",
    )


@router.get("/{team_id}")
async def get_team(team_id: int, session: AsyncSession = Depends(get_session)):
    return success(await team_service.team_detail(session, team_id))


@router.patch("/{team_id}")
async def update_team(
    team_id: int,
    command: UpdateTeamCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await team_service.update_team(session, team_id, command.model_dump(exclude_unset=True)))


@router.delete("/{team_id}")
async def delete_team(
    team_id: int,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await team_service.delete_team(session, team_id)
    return success(message="Team deleted successfully")
