from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_super_admin
from fiesta.db.database import get_session
from fiesta.responses import success
from fiesta.services import announcement as announcement_service

router = APIRouter(
    prefix="/announcements",
    tags=["Announcement"],
)


class CreateAnnouncementCommand(SQLModel):
    title: str
    content: str
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    link_text: Optional[str] = None
    type: str = "INFO"
    is_active: bool = True
    priority: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class UpdateAnnouncementCommand(SQLModel):
    title: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    link_text: Optional[str] = None
    type: Optional[str] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@router.get("/active")
async def active_announcements(session: AsyncSession = Depends(get_session)):
    return success(await announcement_service.list_active(session))


@router.get("/")
async def list_announcements(user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    return success(await announcement_service.list_announcements(session))


@router.get("/{announcement_id}")
async def get_announcement(
    announcement_id: int,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await announcement_service.get_announcement_or_404(session, announcement_id))


@router.post("/", status_code=201)
async def create_announcement(
    command: CreateAnnouncementCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    announcement = await announcement_service.create_announcement(session, UUID(user["id"]), **command.model_dump())
    return success(announcement, "Announcement created")


@router.put("/{announcement_id}")
async def update_announcement(
    announcement_id: int,
    command: UpdateAnnouncementCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    announcement = await announcement_service.update_announcement(
        session, announcement_id, command.model_dump(exclude_unset=True)
    )
    return success(announcement, "Announcement updated")


@router.patch("/{announcement_id}/toggle")
async def toggle_announcement(
    announcement_id: int,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await announcement_service.toggle_announcement(session, announcement_id))


@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: int,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    await announcement_service.delete_announcement(session, announcement_id)
    return success(message="Announcement deleted")
