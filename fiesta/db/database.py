# fiesta/db/database.py
import logging
import os

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.errors import RetryableStoreError

logger = logging.getLogger(__name__)

# Load environment variables from a .env file if present so that running the
# application locally works without manually exporting variables.
load_dotenv()

DATABASE_URL = os.getenv("DB_URL")  # Add to your .env

if not DATABASE_URL:
    raise RuntimeError("DB_URL is not set in environment variables")

# Ensure the URL uses SQLAlchemy's async driver. If the environment provides a
# sync driver or no driver at all, convert it to use ``+asyncpg`` so that the
# async engine works correctly.
if "+asyncpg" not in DATABASE_URL:
    if "+psycopg" in DATABASE_URL:
        DATABASE_URL = DATABASE_URL.replace("+psycopg", "+asyncpg")
    elif DATABASE_URL.startswith("postgresql://"):
        DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

engine: AsyncEngine = create_async_engine(DATABASE_URL)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session():
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


async def commit_or_rollback(session: AsyncSession, action: str) -> None:
    """Commit the unit of work or undo all of it.

    Multi-step writes (approval cascades, standings updates, OTP rotation)
    stage everything on the session and call this once, so a failure never
    leaves half of the changes applied.
    """
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Transaction failed while trying to %s", action)
        raise RetryableStoreError(f"Could not {action}, please retry") from exc
