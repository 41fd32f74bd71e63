import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from jose import JWTError
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.tokens import decode_access_token
from fiesta.db.database import get_session
from fiesta.models import User, UserRole

logger = logging.getLogger(__name__)


async def get_current_user(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
):
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")

    token = authorization.split(" ", 1)[1]

    try:
        payload = decode_access_token(token)
    except JWTError as e:
        logger.warning("JWT decode error: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token")

    db_user = await session.get(User, _as_uuid(payload["sub"]))
    if not db_user:
        raise HTTPException(status_code=401, detail="User no longer exists")

    return {
        "id": str(db_user.id),
        "email": db_user.email,
        "role": db_user.role,
        "display_name": db_user.full_name or db_user.email,
    }


def require_roles(*roles: UserRole):
    """Build a dependency that only lets the given roles through."""
    allowed = set(roles)

    async def checker(user: dict = Depends(get_current_user)):
        if user["role"] not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return checker


require_super_admin = require_roles(UserRole.SUPER_ADMIN)
require_admin = require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN)
require_user = require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.USER)


def _as_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
