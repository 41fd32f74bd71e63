import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.identity_provider import FirebaseTokenVerifier
from fiesta.auth.passwords import hash_password, verify_password
from fiesta.auth.tokens import create_access_token
from fiesta.db.database import commit_or_rollback
from fiesta.errors import (
    AccessDenied,
    ApprovalRequired,
    BadRequest,
    Conflict,
    InvalidCredential,
    NotFound,
)
from fiesta.models import (
    ApprovalStatus,
    LoginRequest,
    Player,
    User,
    UserRole,
    UserType,
)
from fiesta.services.approval import AccessDecision, check_access
from fiesta.services.registration import Registration, normalize_email, resolve_registration

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


@dataclass
class Granted:
    token: str
    user: User

    def as_dict(self) -> dict:
        return {"token": self.token, "user": user_profile(self.user)}


@dataclass
class PendingApproval:
    email: str
    name: str


LoginOutcome = Union[Granted, PendingApproval]


def user_profile(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "role": user.role.value,
        "user_type": user.user_type.value if user.user_type else None,
        "approval_status": user.approval_status.value,
        "trainee_id": user.trainee_id,
        "player_id": user.player_id,
        "project_name": user.project_name,
        "created_at": user.created_at.isoformat(),
    }


def split_name(full_name: str):
    parts = full_name.strip().split(" ", 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.exec(select(User).where(func.lower(User.email) == normalize_email(email)))
    return result.first()


async def _trainee_id_free(session: AsyncSession, trainee_id: Optional[str]) -> bool:
    if not trainee_id:
        return False
    result = await session.exec(select(User.id).where(User.trainee_id == trainee_id))
    return result.first() is None


async def _create_user_from_registration(
    session: AsyncSession,
    email: str,
    registration: Registration,
    status: ApprovalStatus,
) -> User:
    first_name, last_name = split_name(registration.full_name)
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=registration.role,
        user_type=registration.kind,
        approval_status=status,
    )
    if await _trainee_id_free(session, registration.trainee_id):
        user.trainee_id = registration.trainee_id
    if registration.kind == UserType.PLAYER:
        user.player_id = registration.record.id
    session.add(user)
    await session.flush()
    return user


async def _grant(session: AsyncSession, user: User, registration: Registration, path: str) -> Granted:
    if registration.kind == UserType.COMMITTEE:
        member = registration.record
        member.checked_in = True
        member.check_in_time = datetime.utcnow()
        session.add(member)
        await commit_or_rollback(session, "check in the committee member")

    logger.info("Login granted to %s via %s as %s", user.email, path, user.role.value)
    return Granted(token=create_access_token(user), user=user)


async def complete_registered_login(session: AsyncSession, email: str, path: str) -> LoginOutcome:
    """Shared tail of the Google and one-time-passcode logins.

    A first login either creates an approved account (auto-approved kinds)
    or a pending account plus one pending login request. Later logins
    consult the approval gate and never create a second request.
    """
    email = normalize_email(email)
    registration = await resolve_registration(session, email)
    if registration is None:
        logger.warning("Login via %s for unregistered email %s", path, email)
        raise NotFound("This email is not registered for the event")

    user = await get_user_by_email(session, email)
    if user is None:
        status = ApprovalStatus.APPROVED if registration.auto_approved else ApprovalStatus.PENDING
        user = await _create_user_from_registration(session, email, registration, status)
        if status == ApprovalStatus.PENDING:
            session.add(LoginRequest(
                email=email,
                full_name=registration.full_name,
                user_type=registration.kind,
                trainee_id=registration.trainee_id,
                department=registration.department,
                user_id=user.id,
            ))
        await commit_or_rollback(session, "create the account")
        await session.refresh(user)
        if status == ApprovalStatus.PENDING:
            logger.info("Created pending %s account for %s", registration.kind.value, email)
            return PendingApproval(email=email, name=registration.full_name)
    elif check_access(user) == AccessDecision.PENDING:
        return PendingApproval(email=email, name=user.full_name or registration.full_name)

    return await _grant(session, user, registration, path)


async def login_with_identity_token(
    session: AsyncSession,
    verifier: FirebaseTokenVerifier,
    id_token: str,
) -> LoginOutcome:
    claims = await verifier.verify(id_token)
    return await complete_registered_login(session, claims.email, "google")


async def login_with_password(session: AsyncSession, email: str, password: str) -> Granted:
    user = await get_user_by_email(session, email)
    if (
        user is None
        or not user.password_hash
        or user.role == UserRole.USER
        or not verify_password(password, user.password_hash)
    ):
        logger.warning("Rejected password login for %s", normalize_email(email))
        raise InvalidCredential("Invalid email or password")

    if user.approval_status == ApprovalStatus.REJECTED:
        raise AccessDenied("Your admin account request was rejected")
    if user.role == UserRole.ADMIN and user.approval_status != ApprovalStatus.APPROVED:
        raise ApprovalRequired("Your admin account is awaiting approval")

    logger.info("Login granted to %s via password as %s", user.email, user.role.value)
    return Granted(token=create_access_token(user), user=user)


async def signup_admin(
    session: AsyncSession,
    email: str,
    password: str,
    confirm_password: str,
    first_name: str,
    last_name: str,
    trainee_id: Optional[str] = None,
) -> User:
    email = normalize_email(email)
    if not email or not first_name.strip():
        raise BadRequest("Email and first name are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if password != confirm_password:
        raise BadRequest("Passwords do not match")

    if await get_user_by_email(session, email) is not None:
        raise Conflict("An account with this email already exists")
    if trainee_id:
        result = await session.exec(select(User.id).where(User.trainee_id == trainee_id))
        if result.first() is not None:
            raise Conflict("An account with this trainee id already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=UserRole.ADMIN,
        approval_status=ApprovalStatus.PENDING,
        trainee_id=trainee_id or None,
    )
    session.add(user)
    await commit_or_rollback(session, "create the admin account")
    await session.refresh(user)
    logger.info("Admin signup for %s awaiting approval", email)
    return user


async def legacy_email_login(session: AsyncSession, email: str) -> LoginOutcome:
    """Email-only login kept for old clients; new clients use one-time passcodes.

    Only plain USER accounts without a password may use it, and an
    existing account still has to pass the approval gate.
    """
    email = normalize_email(email)
    registration = await resolve_registration(session, email, kinds=(UserType.PLAYER, UserType.TRAINEE))
    if registration is None:
        raise NotFound("No player or trainee registration found for this email")

    user = await get_user_by_email(session, email)
    if user is None:
        user = await _create_user_from_registration(session, email, registration, ApprovalStatus.APPROVED)
        await commit_or_rollback(session, "create the account")
        await session.refresh(user)
    else:
        if user.role != UserRole.USER or user.password_hash:
            logger.warning("Refused legacy email login for password account %s", email)
            raise AccessDenied("This account must sign in with its password")
        if check_access(user) == AccessDecision.PENDING:
            return PendingApproval(email=email, name=user.full_name or registration.full_name)

    logger.info("Login granted to %s via legacy email as %s", user.email, user.role.value)
    return Granted(token=create_access_token(user), user=user)


async def get_user_or_404(session: AsyncSession, user_id) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def get_profile(session: AsyncSession, user_id) -> dict:
    user = await get_user_or_404(session, user_id)
    profile = user_profile(user)
    profile["player"] = None
    if user.player_id is not None:
        profile["player"] = await session.get(Player, user.player_id)
    return profile


async def update_project_name(session: AsyncSession, user_id, project_name: str) -> User:
    user = await get_user_or_404(session, user_id)
    user.project_name = project_name.strip() or None
    user.updated_at = datetime.utcnow()
    session.add(user)
    await commit_or_rollback(session, "update the project name")
    await session.refresh(user)
    return user


async def list_project_names(session: AsyncSession):
    result = await session.exec(
        select(User.project_name)
        .where(User.project_name.is_not(None), User.approval_status == ApprovalStatus.APPROVED)
        .distinct()
        .order_by(User.project_name)
    )
    return result.all()


async def link_users_to_players(session: AsyncSession) -> int:
    """Attach accounts to the player record sharing their email."""
    result = await session.exec(select(User).where(User.player_id.is_(None)))
    linked = 0
    for user in result.all():
        player_result = await session.exec(select(Player).where(func.lower(Player.email) == user.email))
        player = player_result.first()
        if player is None:
            continue
        user.player_id = player.id
        session.add(user)
        linked += 1
    await commit_or_rollback(session, "link accounts to players")
    logger.info("Linked %d accounts to player records", linked)
    return linked
