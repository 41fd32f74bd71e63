"""Resolve an email against the imported registration records.

Committee members take precedence over players, and players over food
registrants, everywhere an email has to be mapped to a registration.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.models import CommitteeMember, FoodRegistration, Player, UserRole, UserType

PRECEDENCE = (UserType.COMMITTEE, UserType.PLAYER, UserType.TRAINEE)
AUTO_APPROVED_KINDS = {UserType.TRAINEE}

RECORD_MODELS = {
    UserType.COMMITTEE: CommitteeMember,
    UserType.PLAYER: Player,
    UserType.TRAINEE: FoodRegistration,
}

RegistrationRecord = Union[CommitteeMember, Player, FoodRegistration]


@dataclass
class Registration:
    kind: UserType
    record: RegistrationRecord

    @property
    def full_name(self) -> str:
        return self.record.full_name

    @property
    def role(self) -> UserRole:
        return UserRole.ADMIN if self.kind == UserType.COMMITTEE else UserRole.USER

    @property
    def auto_approved(self) -> bool:
        return self.kind in AUTO_APPROVED_KINDS

    @property
    def trainee_id(self) -> Optional[str]:
        return getattr(self.record, "trainee_id", None)

    @property
    def department(self) -> Optional[str]:
        return self.record.department


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def resolve_registration(
    session: AsyncSession,
    email: str,
    kinds: Sequence[UserType] = PRECEDENCE,
) -> Optional[Registration]:
    email = normalize_email(email)
    for kind in PRECEDENCE:
        if kind not in kinds:
            continue
        model = RECORD_MODELS[kind]
        result = await session.exec(select(model).where(func.lower(model.email) == email))
        record = result.first()
        if record is not None:
            return Registration(kind=kind, record=record)
    return None
