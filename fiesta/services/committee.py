import logging
from datetime import datetime
from typing import List

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import Conflict, NotFound
from fiesta.models import CommitteeMember

logger = logging.getLogger(__name__)

# import rows may use the column headers of the sign-up sheet
SHEET_COLUMNS = {
    "full_name": "Full Name",
    "department": "Department",
    "whatsapp_number": "WhatsApp",
    "email": "Email",
    "assigned_team": "Team",
    "experience_level": "Experience",
    "emergency_contact": "Emergency Contact",
}


async def list_members(session: AsyncSession):
    result = await session.exec(select(CommitteeMember).order_by(CommitteeMember.created_at.desc(), CommitteeMember.id.desc()))
    return result.all()


async def get_member_or_404(session: AsyncSession, member_id: int) -> CommitteeMember:
    member = await session.get(CommitteeMember, member_id)
    if member is None:
        raise NotFound("Committee member not found")
    return member


async def _email_taken(session: AsyncSession, email: str) -> bool:
    result = await session.exec(select(CommitteeMember.id).where(func.lower(CommitteeMember.email) == email))
    return result.first() is not None


async def create_member(session: AsyncSession, **fields) -> CommitteeMember:
    fields["email"] = fields["email"].strip().lower()
    if await _email_taken(session, fields["email"]):
        raise Conflict("A committee member with this email already exists")
    member = CommitteeMember(**fields)
    session.add(member)
    await commit_or_rollback(session, "create the committee member")
    await session.refresh(member)
    return member


def _from_sheet_row(row: dict) -> dict:
    fields = {field: row.get(column) or row.get(field) for field, column in SHEET_COLUMNS.items()}
    fields["experience_level"] = (fields["experience_level"] or "NONE").upper()
    return fields


async def bulk_import_members(session: AsyncSession, rows: List[dict]) -> dict:
    results = {"imported": 0, "failed": 0, "errors": []}
    seen = set()
    for index, row in enumerate(rows):
        row_number = row.get("row_number") or index + 1
        fields = _from_sheet_row(row)
        if not fields["full_name"] or not fields["email"]:
            results["failed"] += 1
            results["errors"].append(f"Row {row_number}: Full Name and Email are required")
            continue

        fields["email"] = fields["email"].strip().lower()
        if fields["email"] in seen or await _email_taken(session, fields["email"]):
            results["failed"] += 1
            results["errors"].append(f"Row {row_number}: {fields['email']} is already registered")
            continue

        seen.add(fields["email"])
        session.add(CommitteeMember(**fields))
        results["imported"] += 1

    await commit_or_rollback(session, "import the committee")
    logger.info("Committee import: %d imported, %d failed", results["imported"], results["failed"])
    return results


async def check_in(session: AsyncSession, member_id: int) -> CommitteeMember:
    member = await get_member_or_404(session, member_id)
    member.checked_in = True
    member.check_in_time = datetime.utcnow()
    session.add(member)
    await commit_or_rollback(session, "check in the committee member")
    await session.refresh(member)
    return member


async def check_out(session: AsyncSession, member_id: int) -> CommitteeMember:
    member = await get_member_or_404(session, member_id)
    member.checked_in = False
    member.check_out_time = datetime.utcnow()
    session.add(member)
    await commit_or_rollback(session, "check out the committee member")
    await session.refresh(member)
    return member


async def delete_member(session: AsyncSession, member_id: int) -> None:
    member = await get_member_or_404(session, member_id)
    await session.delete(member)
    await commit_or_rollback(session, "delete the committee member")
