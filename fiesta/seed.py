"""Create the tables and the super admin account.

Run with ``python -m fiesta.seed``. Reads SUPER_ADMIN_EMAIL and
SUPER_ADMIN_PASSWORD from the environment.
"""
import asyncio
import logging
import os

from dotenv import load_dotenv
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.passwords import hash_password
from fiesta.db.database import engine, init_db
from fiesta.models import ApprovalStatus, User, UserRole

logger = logging.getLogger(__name__)

load_dotenv()


async def seed_super_admin(session: AsyncSession, email: str, password: str) -> User:
    email = email.strip().lower()
    result = await session.exec(select(User).where(func.lower(User.email) == email))
    user = result.first()
    if user is None:
        user = User(email=email, first_name="Super", last_name="Admin")
    user.password_hash = hash_password(password)
    user.role = UserRole.SUPER_ADMIN
    user.approval_status = ApprovalStatus.APPROVED
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def main():
    email = os.getenv("SUPER_ADMIN_EMAIL")
    password = os.getenv("SUPER_ADMIN_PASSWORD")
    if not email or not password:
        raise RuntimeError("SUPER_ADMIN_EMAIL and SUPER_ADMIN_PASSWORD must be set")

    await init_db()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        user = await seed_super_admin(session, email, password)
    logger.info("Super admin ready: %s", user.email)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
