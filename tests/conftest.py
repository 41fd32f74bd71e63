import asyncio
import os

import pytest
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("REDIS_URL", None)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

async_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
AsyncSessionLocal = sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False
)


async def override_get_session():
    async with AsyncSessionLocal() as session:
        yield session


async def _create_tables():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def _drop_tables():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, to, subject, template, data):
        from fiesta.errors import MailDeliveryFailed

        if self.fail:
            raise MailDeliveryFailed(f"Could not send email to {to}")
        self.sent.append({"to": to, "subject": subject, "template": template, "data": data})

    async def send_best_effort(self, to, subject, template, data):
        from fiesta.errors import MailDeliveryFailed

        try:
            await self.send(to, subject, template, data)
        except MailDeliveryFailed:
            return False
        return True


class FakeVerifier:
    """Treats the identity token as the email it vouches for."""

    configured = True

    async def verify(self, token):
        from fiesta.auth.identity_provider import IdentityClaims
        from fiesta.errors import InvalidCredential

        if "@" not in token:
            raise InvalidCredential("Invalid identity token")
        return IdentityClaims(email=token, display_name=token.split("@")[0])


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture(autouse=True)
def setup_database(mailer):
    from fiesta.main import app
    from fiesta.db.database import get_session
    from fiesta.auth.identity_provider import get_identity_verifier
    from fiesta.notifications.mailer import get_mailer

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_identity_verifier] = lambda: FakeVerifier()
    asyncio.run(_create_tables())
    yield
    asyncio.run(_drop_tables())
    app.dependency_overrides.clear()


async def _seed(*objects):
    async with AsyncSessionLocal() as session:
        session.add_all(objects)
        await session.commit()
        for obj in objects:
            await session.refresh(obj)
    return objects


def seed(*objects):
    """Persist ``objects`` and return them refreshed (a single object is unwrapped)."""
    saved = asyncio.run(_seed(*objects))
    return saved[0] if len(saved) == 1 else saved


def make_user(email, role, status=None, password=None):
    from fiesta.auth.passwords import hash_password
    from fiesta.models import ApprovalStatus, User

    return User(
        email=email,
        first_name=email.split("@")[0].title(),
        role=role,
        approval_status=status or ApprovalStatus.APPROVED,
        password_hash=hash_password(password) if password else None,
    )


def auth_header(user):
    from fiesta.auth.tokens import create_access_token

    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def super_admin():
    from fiesta.models import UserRole

    return seed(make_user("root@fiesta.test", UserRole.SUPER_ADMIN, password="super-secret"))


@pytest.fixture
def admin():
    from fiesta.models import UserRole

    return seed(make_user("admin@fiesta.test", UserRole.ADMIN, password="admin-secret"))


@pytest.fixture
def member():
    from fiesta.models import UserRole

    return seed(make_user("member@fiesta.test", UserRole.USER))
