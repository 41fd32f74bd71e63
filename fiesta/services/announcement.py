from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import BadRequest, NotFound
from fiesta.models import Announcement


def _check_window(start_date: datetime, end_date: Optional[datetime]) -> None:
    if end_date is not None and end_date < start_date:
        raise BadRequest("End date must not be before the start date")


async def list_active(session: AsyncSession, now: Optional[datetime] = None):
    """Announcements shown on the home page right now, highest priority first."""
    now = now or datetime.utcnow()
    result = await session.exec(
        select(Announcement)
        .where(
            Announcement.is_active == True,  # noqa: E712
            Announcement.start_date <= now,
            or_(Announcement.end_date.is_(None), Announcement.end_date >= now),
        )
        .order_by(Announcement.priority.desc(), Announcement.created_at.desc(), Announcement.id.desc())
    )
    return result.all()


async def list_announcements(session: AsyncSession):
    result = await session.exec(select(Announcement).order_by(Announcement.created_at.desc(), Announcement.id.desc()))
    return result.all()


async def get_announcement_or_404(session: AsyncSession, announcement_id: int) -> Announcement:
    announcement = await session.get(Announcement, announcement_id)
    if announcement is None:
        raise NotFound("Announcement not found")
    return announcement


async def create_announcement(session: AsyncSession, created_by: UUID, **fields) -> Announcement:
    if fields.get("start_date") is None:
        fields["start_date"] = datetime.utcnow()
    _check_window(fields["start_date"], fields.get("end_date"))
    announcement = Announcement(created_by=created_by, **fields)
    session.add(announcement)
    await commit_or_rollback(session, "create the announcement")
    await session.refresh(announcement)
    return announcement


async def update_announcement(session: AsyncSession, announcement_id: int, changes: dict) -> Announcement:
    announcement = await get_announcement_or_404(session, announcement_id)
    if "start_date" in changes and changes["start_date"] is None:
        del changes["start_date"]
    for field, value in changes.items():
        setattr(announcement, field, value)
    _check_window(announcement.start_date, announcement.end_date)
    announcement.updated_at = datetime.utcnow()
    session.add(announcement)
    await commit_or_rollback(session, "update the announcement")
    await session.refresh(announcement)
    return announcement


async def toggle_announcement(session: AsyncSession, announcement_id: int) -> Announcement:
    announcement = await get_announcement_or_404(session, announcement_id)
    return await update_announcement(session, announcement_id, {"is_active": not announcement.is_active})


async def delete_announcement(session: AsyncSession, announcement_id: int) -> None:
    announcement = await get_announcement_or_404(session, announcement_id)
    await session.delete(announcement)
    await commit_or_rollback(session, "delete the announcement")
