from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_admin, require_user
from fiesta.db.database import get_session
from fiesta.realtime.hub import RealtimeHub, get_hub
from fiesta.responses import success
from fiesta.services import player as player_service

router = APIRouter(
    prefix="/players",
    tags=["Player"],
)


class CreatePlayerCommand(SQLModel):
    trainee_id: str
    full_name: str
    department: str
    email: Optional[str] = None
    contact_number: Optional[str] = None
    emergency_contact: Optional[str] = None
    gender: str = "MALE"
    position: str = "BATSMAN"
    experience_level: str = "BEGINNER"
    batting_style: Optional[str] = None
    bowling_style: Optional[str] = None
    team_id: Optional[int] = None


class UpdatePlayerCommand(SQLModel):
    full_name: Optional[str] = None
    department: Optional[str] = None
    email: Optional[str] = None
    contact_number: Optional[str] = None
    emergency_contact: Optional[str] = None
    gender: Optional[str] = None
    position: Optional[str] = None
    experience_level: Optional[str] = None
    batting_style: Optional[str] = None
    bowling_style: Optional[str] = None
    profile_image: Optional[str] = None
    team_id: Optional[int] = None


class ScanCommand(SQLModel):
    trainee_id: str


class BulkImportCommand(SQLModel):
    players: List[dict]
    skip_duplicates: bool = False


class ApprovalCommand(SQLModel):
    is_approved: bool


class BulkApprovalCommand(SQLModel):
    player_ids: List[int]
    is_approved: bool


@router.get("/public")
async def list_public_players(session: AsyncSession = Depends(get_session)):
    return success(await player_service.list_public_players(session))


@router.get("/")
async def list_players(
    department: Optional[str] = Query(None),
    position: Optional[str] = Query(None),
    team_id: Optional[int] = Query(None),
    attended: Optional[bool] = Query(None),
    email: Optional[str] = Query(None),
    user=Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    players = await player_service.list_players(session, department, position, team_id, attended, email)
    return {"status": "success", "data": players, "count": len(players)}


@router.post("/", status_code=201)
async def create_player(
    command: CreatePlayerCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await player_service.create_player(session, **command.model_dump()))


@router.post("/scan")
async def scan_attendance(
    command: ScanCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
):
    player = await player_service.scan_attendance(session, command.trainee_id)
    hub.publish("player:attendance", {"player_id": player.id, "attended": True})
    return success(player, "Attendance marked successfully")


@router.post("/bulk-import")
async def bulk_import(
    command: BulkImportCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await player_service.bulk_import_players(session, command.players, command.skip_duplicates))


@router.put("/bulk-approval")
async def bulk_approval(
    command: BulkApprovalCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    count = await player_service.bulk_set_player_approval(session, command.player_ids, command.is_approved)
    state = "approved" if command.is_approved else "unapproved"
    return success({"count": count}, f"{count} players {state} for public page")


@router.get("/{player_id}")
async def get_player(player_id: int, session: AsyncSession = Depends(get_session)):
    return success(await player_service.get_player_or_404(session, player_id))


@router.patch("/{player_id}")
async def update_player(
    player_id: int,
    command: UpdatePlayerCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await player_service.update_player(session, player_id, command.model_dump(exclude_unset=True)))


@router.post("/{player_id}/attendance")
async def mark_attendance(
    player_id: int,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
):
    player = await player_service.mark_attendance(session, player_id)
    hub.publish("player:attendance", {"player_id": player.id, "attended": True})
    return success(player)


@router.put("/{player_id}/approval")
async def set_approval(
    player_id: int,
    command: ApprovalCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    player = await player_service.set_player_approval(session, player_id, command.is_approved)
    state = "approved" if command.is_approved else "unapproved"
    return success(player, f"Player {state} for public page")


@router.delete("/{player_id}")
async def delete_player(
    player_id: int,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await player_service.delete_player(session, player_id)
    return success(message="Player deleted successfully")
