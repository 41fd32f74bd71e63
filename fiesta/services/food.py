import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import BadRequest, Conflict, NotFound
from fiesta.models import FoodPreference, FoodRegistration, Player, User

logger = logging.getLogger(__name__)

REQUIRED_IMPORT_FIELDS = {"full_name": "Full Name", "trainee_id": "Trainee ID", "department": "Department"}


def collection_mail_data(registration: FoodRegistration) -> dict:
    return {
        "name": registration.full_name,
        "preference": registration.food_preference.value.replace("_", " ").lower(),
        "collected_at": registration.food_collected_at.strftime("%H:%M"),
    }


def registration_mail_data(registration: FoodRegistration) -> dict:
    return {
        "name": registration.full_name,
        "trainee_id": registration.trainee_id,
        "preference": registration.food_preference.value.replace("_", " ").lower(),
    }


async def list_registrations(
    session: AsyncSession,
    department: Optional[str] = None,
    food_preference: Optional[FoodPreference] = None,
    food_collected: Optional[bool] = None,
    trainee_id: Optional[str] = None,
    email: Optional[str] = None,
) -> List[dict]:
    statement = select(FoodRegistration).order_by(FoodRegistration.created_at.desc(), FoodRegistration.id.desc())
    if department:
        statement = statement.where(FoodRegistration.department == department)
    if food_preference is not None:
        statement = statement.where(FoodRegistration.food_preference == food_preference)
    if food_collected is not None:
        statement = statement.where(FoodRegistration.food_collected == food_collected)
    if trainee_id:
        statement = statement.where(func.lower(FoodRegistration.trainee_id).contains(trainee_id.lower()))
    if email:
        statement = statement.where(func.lower(FoodRegistration.email) == email.strip().lower())
    registrations = (await session.exec(statement)).all()

    trainee_ids = [registration.trainee_id for registration in registrations]
    projects = {}
    if trainee_ids:
        result = await session.exec(select(User.trainee_id, User.project_name).where(User.trainee_id.in_(trainee_ids)))
        projects = dict(result.all())

    rows = []
    for registration in registrations:
        data = registration.model_dump()
        data["project_name"] = projects.get(registration.trainee_id)
        rows.append(data)
    return rows


async def food_stats(session: AsyncSession) -> dict:
    async def count(*conditions) -> int:
        result = await session.exec(select(func.count()).select_from(FoodRegistration).where(*conditions))
        return result.one()

    total = await count()
    collected = await count(FoodRegistration.food_collected == True)  # noqa: E712
    return {
        "total": total,
        "collected": collected,
        "pending": total - collected,
        "vegetarian": await count(FoodRegistration.food_preference == FoodPreference.VEGETARIAN),
        "non_vegetarian": await count(FoodRegistration.food_preference == FoodPreference.NON_VEGETARIAN),
    }


async def get_registration_or_404(session: AsyncSession, registration_id: int) -> FoodRegistration:
    registration = await session.get(FoodRegistration, registration_id)
    if registration is None:
        raise NotFound("Registration not found")
    return registration


async def _by_trainee_id(session: AsyncSession, trainee_id: str) -> Optional[FoodRegistration]:
    result = await session.exec(select(FoodRegistration).where(FoodRegistration.trainee_id == trainee_id))
    return result.first()


async def create_registration(session: AsyncSession, **fields) -> FoodRegistration:
    if await _by_trainee_id(session, fields["trainee_id"]) is not None:
        raise Conflict(f"Trainee ID {fields['trainee_id']} is already registered for food")
    if fields.get("email"):
        fields["email"] = fields["email"].strip().lower()
    registration = FoodRegistration(**fields)
    session.add(registration)
    await commit_or_rollback(session, "create the food registration")
    await session.refresh(registration)
    return registration


async def bulk_import_registrations(session: AsyncSession, rows: List[dict], skip_duplicates: bool = False) -> dict:
    results = {"imported": 0, "failed": 0, "skipped": 0, "errors": []}
    seen = set()
    for index, row in enumerate(rows):
        row_number = row.get("row_number") or index + 1
        missing = [label for field, label in REQUIRED_IMPORT_FIELDS.items() if not row.get(field)]
        if missing:
            results["failed"] += 1
            results["errors"].append({
                "row_number": row_number,
                "error": f"Missing required fields: {', '.join(missing)}",
                "data": row,
            })
            continue

        trainee_id = str(row["trainee_id"]).strip()
        if trainee_id in seen or await _by_trainee_id(session, trainee_id) is not None:
            if skip_duplicates:
                results["skipped"] += 1
            else:
                results["failed"] += 1
                results["errors"].append({
                    "row_number": row_number,
                    "error": f"Trainee ID {trainee_id} is already registered",
                    "data": row,
                })
            continue

        preference = str(row.get("food_preference") or FoodPreference.NON_VEGETARIAN.value).upper()
        if preference not in FoodPreference.__members__:
            preference = FoodPreference.NON_VEGETARIAN.value

        seen.add(trainee_id)
        session.add(FoodRegistration(
            trainee_id=trainee_id,
            full_name=row["full_name"],
            email=(row.get("email") or "").strip().lower() or None,
            contact_number=row.get("contact_number"),
            department=row["department"],
            food_preference=FoodPreference(preference),
        ))
        results["imported"] += 1

    await commit_or_rollback(session, "import the food registrations")
    logger.info(
        "Food import: %d imported, %d skipped, %d failed",
        results["imported"], results["skipped"], results["failed"],
    )
    return results


async def _collect(session: AsyncSession, registration: FoodRegistration) -> FoodRegistration:
    if registration.food_collected:
        raise BadRequest("Food already collected")
    registration.food_collected = True
    registration.food_collected_at = datetime.utcnow()
    session.add(registration)
    await commit_or_rollback(session, "record the food collection")
    await session.refresh(registration)
    logger.info("Food collected by %s", registration.trainee_id)
    return registration


async def collect_food(session: AsyncSession, registration_id: int) -> FoodRegistration:
    return await _collect(session, await get_registration_or_404(session, registration_id))


async def collect_food_by_trainee_id(session: AsyncSession, trainee_id: str) -> FoodRegistration:
    """Players without a food registration get one on the spot."""
    trainee_id = trainee_id.strip()
    registration = await _by_trainee_id(session, trainee_id)
    if registration is None:
        result = await session.exec(select(Player).where(Player.trainee_id == trainee_id))
        player = result.first()
        if player is None:
            raise NotFound("No registration found for this ID")
        registration = FoodRegistration(
            trainee_id=player.trainee_id,
            full_name=player.full_name,
            email=player.email,
            contact_number=player.contact_number,
            department=player.department,
            food_preference=FoodPreference.NON_VEGETARIAN,
        )
        session.add(registration)
        await session.flush()
    return await _collect(session, registration)


async def delete_registration(session: AsyncSession, registration_id: int) -> None:
    registration = await get_registration_or_404(session, registration_id)
    await session.delete(registration)
    await commit_or_rollback(session, "delete the food registration")
