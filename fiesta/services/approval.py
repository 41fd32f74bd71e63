import logging
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import AccessDenied, AlreadyProcessed, BadRequest, NotFound
from fiesta.models import (
    ApprovalHistory,
    ApprovalStatus,
    LoginRequest,
    Player,
    Team,
    User,
    UserRole,
    UserType,
)
from fiesta.services.registration import PRECEDENCE, resolve_registration

logger = logging.getLogger(__name__)


class AccessDecision(str, Enum):
    GRANTED = "GRANTED"
    PENDING = "PENDING"


def check_access(user: User) -> AccessDecision:
    if user.approval_status == ApprovalStatus.REJECTED:
        raise AccessDenied("Your access request was rejected. Contact the organisers to be reset.")
    if user.approval_status == ApprovalStatus.PENDING:
        return AccessDecision.PENDING
    return AccessDecision.GRANTED


def _validate_outcome(outcome: ApprovalStatus) -> None:
    if outcome not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
        raise BadRequest("Outcome must be APPROVED or REJECTED")


def _ensure_not_super_admin(user: Optional[User]) -> None:
    if user is not None and user.role == UserRole.SUPER_ADMIN:
        raise BadRequest("Super admin accounts cannot be changed through approvals")


async def _get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.exec(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.first()


async def _pending_requests_for(session: AsyncSession, user: User):
    result = await session.exec(
        select(LoginRequest).where(
            LoginRequest.status == ApprovalStatus.PENDING,
            or_(LoginRequest.user_id == user.id, func.lower(LoginRequest.email) == user.email),
        )
    )
    return result.all()


async def _approve_registration(
    session: AsyncSession,
    user: User,
    email: str,
    kind: Optional[UserType],
    team_id: Optional[int] = None,
) -> None:
    """Flag the linked registration record approved, assigning a team if asked."""
    registration = await resolve_registration(session, email, kinds=(kind,) if kind else PRECEDENCE)
    if registration is None:
        return

    record = registration.record
    record.is_approved = True
    if isinstance(record, Player):
        if team_id is not None:
            team = await session.get(Team, team_id)
            if team is None:
                raise NotFound("Team not found")
            record.team_id = team_id
        if user is not None and user.player_id is None:
            user.player_id = record.id
    session.add(record)


async def decide_login_request(
    session: AsyncSession,
    request_id: UUID,
    outcome: ApprovalStatus,
    reviewer_id: UUID,
    reason: Optional[str] = None,
    team_id: Optional[int] = None,
) -> LoginRequest:
    _validate_outcome(outcome)

    request = await session.get(LoginRequest, request_id)
    if request is None:
        raise NotFound("Login request not found")
    if request.status != ApprovalStatus.PENDING:
        raise AlreadyProcessed(f"Login request already {request.status.value.lower()}")

    user = None
    if request.user_id is not None:
        user = await session.get(User, request.user_id)
    if user is None:
        user = await _get_user_by_email(session, request.email)
    _ensure_not_super_admin(user)

    now = datetime.utcnow()
    request.status = outcome
    request.reviewed_by = reviewer_id
    request.reviewed_at = now
    request.review_note = reason
    session.add(request)

    if user is not None:
        user.approval_status = outcome
        user.updated_at = now
        if outcome == ApprovalStatus.APPROVED:
            user.approved_by = reviewer_id
            user.approved_at = now
        session.add(user)

    if outcome == ApprovalStatus.APPROVED:
        await _approve_registration(session, user, request.email, request.user_type, team_id)
        if user is not None:
            session.add(ApprovalHistory(
                user_id=user.id,
                action=outcome,
                performed_by=reviewer_id,
                reason=reason,
            ))

    await commit_or_rollback(session, "record the approval decision")
    await session.refresh(request)
    logger.info("Login request for %s %s by %s", request.email, outcome.value, reviewer_id)
    return request


async def decide_user(
    session: AsyncSession,
    user_id: UUID,
    outcome: ApprovalStatus,
    reviewer_id: UUID,
    reason: Optional[str] = None,
) -> User:
    _validate_outcome(outcome)

    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    _ensure_not_super_admin(user)
    if user.approval_status != ApprovalStatus.PENDING:
        raise AlreadyProcessed(f"User is already {user.approval_status.value.lower()}")

    now = datetime.utcnow()
    user.approval_status = outcome
    user.updated_at = now
    if outcome == ApprovalStatus.APPROVED:
        user.approved_by = reviewer_id
        user.approved_at = now
    session.add(user)

    for request in await _pending_requests_for(session, user):
        request.status = outcome
        request.reviewed_by = reviewer_id
        request.reviewed_at = now
        request.review_note = reason
        session.add(request)

    if outcome == ApprovalStatus.APPROVED:
        await _approve_registration(session, user, user.email, user.user_type)
        session.add(ApprovalHistory(
            user_id=user.id,
            action=outcome,
            performed_by=reviewer_id,
            reason=reason,
        ))

    await commit_or_rollback(session, "record the approval decision")
    await session.refresh(user)
    logger.info("User %s %s by %s", user.email, outcome.value, reviewer_id)
    return user


async def list_login_requests(session: AsyncSession, status: Optional[ApprovalStatus] = None):
    statement = select(LoginRequest).order_by(LoginRequest.created_at.desc())
    if status is not None:
        statement = statement.where(LoginRequest.status == status)
    result = await session.exec(statement)
    return result.all()


async def count_pending_requests(session: AsyncSession) -> int:
    result = await session.exec(
        select(func.count()).select_from(LoginRequest).where(LoginRequest.status == ApprovalStatus.PENDING)
    )
    return result.one()


async def delete_login_request(session: AsyncSession, request_id: UUID) -> None:
    """Remove a request, resetting its requester so the email can log in again."""
    request = await session.get(LoginRequest, request_id)
    if request is None:
        raise NotFound("Login request not found")

    user = None
    if request.user_id is not None:
        user = await session.get(User, request.user_id)
    if user is None:
        user = await _get_user_by_email(session, request.email)

    await session.delete(request)
    if (
        user is not None
        and user.role != UserRole.SUPER_ADMIN
        and user.approval_status != ApprovalStatus.APPROVED
        and not user.password_hash
    ):
        await session.flush()
        await session.delete(user)
        logger.info("Reset %s by deleting their unapproved account", user.email)

    await commit_or_rollback(session, "delete the login request")


async def list_pending_users(session: AsyncSession):
    result = await session.exec(
        select(User)
        .where(User.approval_status == ApprovalStatus.PENDING, User.role != UserRole.SUPER_ADMIN)
        .order_by(User.created_at.desc())
    )
    return result.all()


async def list_users(session: AsyncSession):
    result = await session.exec(
        select(User)
        .where(User.role.in_([UserRole.ADMIN, UserRole.USER]))
        .order_by(User.created_at.desc())
    )
    return result.all()


async def get_approval_history(session: AsyncSession, limit: int = 100):
    result = await session.exec(
        select(ApprovalHistory).order_by(ApprovalHistory.created_at.desc(), ApprovalHistory.id.desc()).limit(limit)
    )
    return result.all()
