from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import get_current_user, require_super_admin, require_user
from fiesta.auth.identity_provider import FirebaseTokenVerifier, get_identity_verifier
from fiesta.db.database import get_session
from fiesta.models import ApprovalStatus
from fiesta.notifications.mailer import EVENT_NAME, Mailer, get_mailer
from fiesta.responses import pending, success
from fiesta.services import approval as approval_service
from fiesta.services import auth as auth_service
from fiesta.services import otp as otp_service

router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)


class PasswordLoginCommand(SQLModel):
    email: str
    password: str


class AdminSignupCommand(SQLModel):
    email: str
    password: str
    confirm_password: str
    first_name: str
    last_name: str = ""
    trainee_id: Optional[str] = None


class IdentityTokenCommand(SQLModel):
    id_token: str


class EmailCommand(SQLModel):
    email: str


class VerifyCodeCommand(SQLModel):
    email: str
    code: str


class DecisionCommand(SQLModel):
    action: ApprovalStatus
    reason: Optional[str] = None
    team_id: Optional[int] = None


class ProjectNameCommand(SQLModel):
    project_name: str


def _login_response(outcome):
    if isinstance(outcome, auth_service.PendingApproval):
        return pending(outcome.email, outcome.name)
    return success(outcome.as_dict(), "Login successful")


def _send_code(background_tasks: BackgroundTasks, mailer: Mailer, issued: otp_service.IssuedCode) -> None:
    background_tasks.add_task(
        mailer.send_best_effort,
        issued.email,
        f"Your {EVENT_NAME} login code",
        "otp",
        issued.mail_data,
    )


@router.post("/login/admin")
async def login_admin(command: PasswordLoginCommand, session: AsyncSession = Depends(get_session)):
    granted = await auth_service.login_with_password(session, command.email, command.password)
    return success(granted.as_dict(), "Login successful")


@router.post("/signup/admin", status_code=201)
async def signup_admin(command: AdminSignupCommand, session: AsyncSession = Depends(get_session)):
    user = await auth_service.signup_admin(session, **command.model_dump())
    return success(auth_service.user_profile(user), "Signup received. An administrator must approve your account.")


@router.post("/google")
async def login_google(
    command: IdentityTokenCommand,
    session: AsyncSession = Depends(get_session),
    verifier: FirebaseTokenVerifier = Depends(get_identity_verifier),
):
    outcome = await auth_service.login_with_identity_token(session, verifier, command.id_token)
    return _login_response(outcome)


@router.get("/identity-provider/status")
async def identity_provider_status(verifier: FirebaseTokenVerifier = Depends(get_identity_verifier)):
    return success({"configured": verifier.configured})


@router.post("/otp/request")
async def request_otp(
    command: EmailCommand,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    issued = await otp_service.request_code(session, command.email)
    _send_code(background_tasks, mailer, issued)
    return success({"email": issued.email, "expires_at": issued.expires_at}, "A login code was sent to your email")


@router.post("/otp/resend")
async def resend_otp(
    command: EmailCommand,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    issued = await otp_service.resend_code(session, command.email)
    _send_code(background_tasks, mailer, issued)
    return success({"email": issued.email, "expires_at": issued.expires_at}, "A new login code was sent to your email")


@router.post("/otp/verify")
async def verify_otp(command: VerifyCodeCommand, session: AsyncSession = Depends(get_session)):
    outcome = await otp_service.verify_code(session, command.email, command.code)
    return _login_response(outcome)


@router.post("/login/user")
async def login_user_legacy(command: EmailCommand, session: AsyncSession = Depends(get_session)):
    outcome = await auth_service.legacy_email_login(session, command.email)
    return _login_response(outcome)


@router.get("/me")
async def me(user=Depends(get_current_user), session: AsyncSession = Depends(get_session)):
    db_user = await auth_service.get_user_or_404(session, UUID(user["id"]))
    return success(auth_service.user_profile(db_user))


@router.get("/profile")
async def profile(user=Depends(require_user), session: AsyncSession = Depends(get_session)):
    return success(await auth_service.get_profile(session, UUID(user["id"])))


@router.put("/profile/project-name")
async def update_project_name(
    command: ProjectNameCommand,
    user=Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    db_user = await auth_service.update_project_name(session, UUID(user["id"]), command.project_name)
    return success(auth_service.user_profile(db_user), "Project name updated")


@router.get("/users/projects")
async def list_projects(session: AsyncSession = Depends(get_session)):
    return success(await auth_service.list_project_names(session))


@router.post("/migrate/link-users-players")
async def link_users_players(user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    linked = await auth_service.link_users_to_players(session)
    return success({"linked": linked}, f"Linked {linked} accounts to players")


# approvals, super admin only

@router.get("/login-requests")
async def list_login_requests(
    status: Optional[ApprovalStatus] = Query(None),
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await approval_service.list_login_requests(session, status))


@router.get("/login-requests/pending-count")
async def pending_login_request_count(user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    return success({"count": await approval_service.count_pending_requests(session)})


@router.put("/login-requests/{request_id}")
async def decide_login_request(
    request_id: UUID,
    command: DecisionCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    request = await approval_service.decide_login_request(
        session,
        request_id,
        command.action,
        UUID(user["id"]),
        command.reason,
        command.team_id,
    )
    return success(request, f"Login request {command.action.value.lower()}")


@router.delete("/login-requests/{request_id}")
async def delete_login_request(
    request_id: UUID,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    await approval_service.delete_login_request(session, request_id)
    return success(message="Login request deleted")


@router.get("/pending-users")
async def pending_users(user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    users = await approval_service.list_pending_users(session)
    return success([auth_service.user_profile(u) for u in users])


@router.get("/users")
async def list_users(user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    users = await approval_service.list_users(session)
    return success([auth_service.user_profile(u) for u in users])


@router.put("/users/{user_id}/approval")
async def decide_user(
    user_id: UUID,
    command: DecisionCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    decided = await approval_service.decide_user(session, user_id, command.action, UUID(user["id"]), command.reason)
    return success(auth_service.user_profile(decided), f"User {command.action.value.lower()}")


@router.get("/approval-history")
async def approval_history(user=Depends(require_super_admin), session: AsyncSession = Depends(get_session)):
    return success(await approval_service.get_approval_history(session))
