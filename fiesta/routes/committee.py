from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_admin
from fiesta.db.database import get_session
from fiesta.responses import success
from fiesta.services import committee as committee_service

router = APIRouter(
    prefix="/committee",
    tags=["Committee"],
    dependencies=[Depends(require_admin)],
)


class CreateMemberCommand(SQLModel):
    full_name: str
    email: str
    department: Optional[str] = None
    whatsapp_number: Optional[str] = None
    emergency_contact: Optional[str] = None
    assigned_team: Optional[str] = None
    experience_level: str = "NONE"


class BulkImportCommand(SQLModel):
    members: List[dict]


@router.get("/")
async def list_members(session: AsyncSession = Depends(get_session)):
    return success(await committee_service.list_members(session))


@router.post("/", status_code=201)
async def create_member(command: CreateMemberCommand, session: AsyncSession = Depends(get_session)):
    return success(await committee_service.create_member(session, **command.model_dump()))


@router.post("/bulk-import")
async def bulk_import(command: BulkImportCommand, session: AsyncSession = Depends(get_session)):
    return success(await committee_service.bulk_import_members(session, command.members))


@router.post("/{member_id}/check-in")
async def check_in(member_id: int, session: AsyncSession = Depends(get_session)):
    return success(await committee_service.check_in(session, member_id))


@router.post("/{member_id}/check-out")
async def check_out(member_id: int, session: AsyncSession = Depends(get_session)):
    return success(await committee_service.check_out(session, member_id))


@router.delete("/{member_id}")
async def delete_member(member_id: int, session: AsyncSession = Depends(get_session)):
    await committee_service.delete_member(session, member_id)
    return success(message="Committee member deleted")
