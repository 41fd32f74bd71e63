from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_admin, require_super_admin
from fiesta.db.database import get_session
from fiesta.errors import BadRequest
from fiesta.models import FoodPreference, FoodRegistration
from fiesta.notifications.mailer import EVENT_NAME, Mailer, get_mailer
from fiesta.realtime.hub import RealtimeHub, get_hub
from fiesta.responses import success
from fiesta.services import food as food_service

router = APIRouter(
    prefix="/food",
    tags=["Food"],
)


class CreateRegistrationCommand(SQLModel):
    trainee_id: str
    full_name: str
    department: str
    email: Optional[str] = None
    contact_number: Optional[str] = None
    food_preference: FoodPreference = FoodPreference.NON_VEGETARIAN


class BulkImportCommand(SQLModel):
    registrations: List[dict]
    skip_duplicates: bool = False


def _announce_collection(
    registration: FoodRegistration,
    background_tasks: BackgroundTasks,
    mailer: Mailer,
    hub: RealtimeHub,
) -> None:
    hub.publish("food:collected", {"registration_id": registration.id, "trainee_id": registration.trainee_id})
    if registration.email:
        background_tasks.add_task(
            mailer.send_best_effort,
            registration.email,
            f"{EVENT_NAME}: meal collected",
            "food_collected",
            food_service.collection_mail_data(registration),
        )


@router.get("/registrations")
async def list_registrations(
    department: Optional[str] = Query(None),
    food_preference: Optional[FoodPreference] = Query(None),
    food_collected: Optional[bool] = Query(None),
    trainee_id: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await food_service.list_registrations(
        session, department, food_preference, food_collected, trainee_id, email
    ))


@router.get("/stats")
async def stats(user=Depends(require_admin), session: AsyncSession = Depends(get_session)):
    return success(await food_service.food_stats(session))


@router.get("/registrations/{registration_id}")
async def get_registration(
    registration_id: int,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await food_service.get_registration_or_404(session, registration_id))


@router.post("/registrations", status_code=201)
async def create_registration(
    command: CreateRegistrationCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await food_service.create_registration(session, **command.model_dump()))


@router.post("/bulk-import")
async def bulk_import(
    command: BulkImportCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return success(await food_service.bulk_import_registrations(
        session, command.registrations, command.skip_duplicates
    ))


@router.post("/registrations/{registration_id}/collect")
async def collect(
    registration_id: int,
    background_tasks: BackgroundTasks,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    hub: RealtimeHub = Depends(get_hub),
):
    registration = await food_service.collect_food(session, registration_id)
    _announce_collection(registration, background_tasks, mailer, hub)
    return success(registration, "Food collected successfully")


@router.post("/collect-by-trainee/{trainee_id}")
async def collect_by_trainee(
    trainee_id: str,
    background_tasks: BackgroundTasks,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    hub: RealtimeHub = Depends(get_hub),
):
    registration = await food_service.collect_food_by_trainee_id(session, trainee_id)
    _announce_collection(registration, background_tasks, mailer, hub)
    return success(registration, "Food collected successfully")


@router.post("/registrations/{registration_id}/send-email")
async def send_registration_email(
    registration_id: int,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    registration = await food_service.get_registration_or_404(session, registration_id)
    if not registration.email:
        raise BadRequest("No email address associated with this registration")

    await mailer.send(
        registration.email,
        f"{EVENT_NAME}: your food registration",
        "food_registration",
        food_service.registration_mail_data(registration),
    )
    return success(message=f"Email sent successfully to {registration.email}")


@router.delete("/registrations/{registration_id}")
async def delete_registration(
    registration_id: int,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await food_service.delete_registration(session, registration_id)
    return success(message="Registration deleted")
