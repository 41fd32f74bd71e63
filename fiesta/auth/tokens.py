import os
from datetime import datetime, timedelta

from dotenv import load_dotenv
from jose import jwt, JWTError

from fiesta.models import User

load_dotenv()

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_IN_DAYS = int(os.getenv("JWT_EXPIRES_IN_DAYS", "7"))

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is not set in environment variables")


def create_access_token(user: User) -> str:
    """Sign the one session token every login path hands out."""
    expires = datetime.utcnow() + timedelta(days=JWT_EXPIRES_IN_DAYS)
    payload = {
        "sub": str(user.id),
        "userId": str(user.id),
        "email": user.email,
        "role": user.role.value,
        "exp": expires,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Return the claims of a valid token. Raises ``JWTError`` otherwise."""
    payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return payload
