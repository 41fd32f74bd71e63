"""One-time passcode login.

At most one live code exists per email: issuing a code deletes every
earlier one in the same transaction, serialized per email on Postgres
with an advisory lock.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, text
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import InvalidCredential, NotFound, RateLimited
from fiesta.models import OneTimePasscode
from fiesta.services.auth import LoginOutcome, complete_registered_login
from fiesta.services.registration import normalize_email, resolve_registration

logger = logging.getLogger(__name__)

OTP_TTL = timedelta(minutes=10)
RESEND_COOLDOWN = timedelta(seconds=60)
PURPOSE_LOGIN = "LOGIN"


@dataclass
class IssuedCode:
    email: str
    name: str
    code: str
    expires_at: datetime

    @property
    def mail_data(self) -> dict:
        return {"name": self.name, "code": self.code, "minutes": int(OTP_TTL.total_seconds() // 60)}


def generate_code() -> str:
    return str(secrets.randbelow(900000) + 100000)


async def _lock_email(session: AsyncSession, email: str) -> None:
    if session.bind is not None and session.bind.dialect.name == "postgresql":
        await session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:email))"), {"email": email})


async def issue_code(session: AsyncSession, email: str, enforce_cooldown: bool = False) -> IssuedCode:
    email = normalize_email(email)
    registration = await resolve_registration(session, email)
    if registration is None:
        raise NotFound("This email is not registered for the event")

    await _lock_email(session, email)

    now = datetime.utcnow()
    if enforce_cooldown:
        result = await session.exec(
            select(OneTimePasscode)
            .where(OneTimePasscode.email == email)
            .order_by(OneTimePasscode.created_at.desc())
        )
        latest = result.first()
        if latest is not None and now - latest.created_at < RESEND_COOLDOWN:
            wait = int((RESEND_COOLDOWN - (now - latest.created_at)).total_seconds()) + 1
            logger.warning("OTP resend for %s refused, cooldown active", email)
            raise RateLimited(f"Please wait {wait} seconds before requesting another code")

    await session.execute(delete(OneTimePasscode).where(OneTimePasscode.email == email))
    passcode = OneTimePasscode(
        email=email,
        code=generate_code(),
        purpose=PURPOSE_LOGIN,
        expires_at=now + OTP_TTL,
        created_at=now,
    )
    session.add(passcode)
    await commit_or_rollback(session, "issue a login code")

    logger.info("Issued login code for %s", email)
    return IssuedCode(email=email, name=registration.full_name, code=passcode.code, expires_at=passcode.expires_at)


async def request_code(session: AsyncSession, email: str) -> IssuedCode:
    return await issue_code(session, email)


async def resend_code(session: AsyncSession, email: str) -> IssuedCode:
    return await issue_code(session, email, enforce_cooldown=True)


async def verify_code(session: AsyncSession, email: str, code: str) -> LoginOutcome:
    email = normalize_email(email)
    result = await session.exec(
        select(OneTimePasscode).where(
            OneTimePasscode.email == email,
            OneTimePasscode.code == code.strip(),
            OneTimePasscode.verified == False,  # noqa: E712
            OneTimePasscode.expires_at > datetime.utcnow(),
        )
    )
    passcode = result.first()
    if passcode is None:
        logger.warning("Invalid or expired login code for %s", email)
        raise InvalidCredential("Invalid or expired code")

    passcode.verified = True
    session.add(passcode)
    await commit_or_rollback(session, "verify the login code")

    outcome = await complete_registered_login(session, email, "otp")

    await session.execute(
        delete(OneTimePasscode).where(OneTimePasscode.email == email, OneTimePasscode.verified == True)  # noqa: E712
    )
    await commit_or_rollback(session, "clear used login codes")
    return outcome
