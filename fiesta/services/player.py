import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import BadRequest, Conflict, NotFound
from fiesta.models import FoodRegistration, Player, Team, User

logger = logging.getLogger(__name__)

REQUIRED_IMPORT_FIELDS = {
    "full_name": "Full Name",
    "trainee_id": "Trainee ID",
    "contact_number": "Contact Number",
    "department": "Department",
}
PLAYER_DEFAULTS = {"gender": "MALE", "position": "BATSMAN", "experience_level": "BEGINNER"}


async def get_player_or_404(session: AsyncSession, player_id: int) -> Player:
    player = await session.get(Player, player_id)
    if player is None:
        raise NotFound("Player not found")
    return player


async def _project_names(session: AsyncSession, player_ids: Iterable[int]) -> dict:
    ids = list(player_ids)
    if not ids:
        return {}
    result = await session.exec(select(User.player_id, User.project_name).where(User.player_id.in_(ids)))
    return {player_id: project_name for player_id, project_name in result.all()}


async def list_public_players(session: AsyncSession) -> List[dict]:
    """Approved players only, without contact details."""
    result = await session.exec(
        select(Player, Team)
        .join(Team, Player.team_id == Team.id, isouter=True)
        .where(Player.is_approved == True)  # noqa: E712
        .order_by(Team.name, Player.full_name)
    )
    rows = result.all()
    projects = await _project_names(session, (player.id for player, _ in rows))
    return [
        {
            "id": player.id,
            "full_name": player.full_name,
            "department": player.department,
            "position": player.position,
            "batting_style": player.batting_style,
            "bowling_style": player.bowling_style,
            "experience_level": player.experience_level,
            "profile_image": player.profile_image,
            "project_name": projects.get(player.id),
            "team": {"id": team.id, "name": team.name} if team else None,
        }
        for player, team in rows
    ]


async def list_players(
    session: AsyncSession,
    department: Optional[str] = None,
    position: Optional[str] = None,
    team_id: Optional[int] = None,
    attended: Optional[bool] = None,
    email: Optional[str] = None,
) -> List[dict]:
    statement = select(Player).order_by(Player.created_at.desc(), Player.id.desc())
    if department:
        statement = statement.where(Player.department == department)
    if position:
        statement = statement.where(Player.position == position)
    if team_id is not None:
        statement = statement.where(Player.team_id == team_id)
    if attended is not None:
        statement = statement.where(Player.attended == attended)
    if email:
        statement = statement.where(func.lower(Player.email) == email.strip().lower())
    players = (await session.exec(statement)).all()

    trainee_ids = [player.trainee_id for player in players]
    food = {}
    if trainee_ids:
        food_result = await session.exec(select(FoodRegistration).where(FoodRegistration.trainee_id.in_(trainee_ids)))
        food = {registration.trainee_id: registration for registration in food_result.all()}
    projects = await _project_names(session, (player.id for player in players))

    players_with_food = []
    for player in players:
        data = player.model_dump()
        data["project_name"] = projects.get(player.id)
        registration = food.get(player.trainee_id)
        data["food_registration"] = None
        if registration is not None:
            data["food_registration"] = {
                "id": registration.id,
                "food_preference": registration.food_preference,
                "food_collected": registration.food_collected,
                "food_collected_at": registration.food_collected_at,
            }
        players_with_food.append(data)
    return players_with_food


async def _ensure_trainee_id_free(session: AsyncSession, trainee_id: str) -> None:
    result = await session.exec(select(Player.id).where(Player.trainee_id == trainee_id))
    if result.first() is not None:
        raise Conflict(f"Player with Trainee ID {trainee_id} already exists")


async def create_player(session: AsyncSession, **fields) -> Player:
    await _ensure_trainee_id_free(session, fields["trainee_id"])
    if fields.get("team_id") is not None and await session.get(Team, fields["team_id"]) is None:
        raise NotFound("Team not found")
    player = Player(**fields)
    session.add(player)
    await commit_or_rollback(session, "create the player")
    await session.refresh(player)
    return player


async def update_player(session: AsyncSession, player_id: int, changes: dict) -> Player:
    player = await get_player_or_404(session, player_id)
    if changes.get("team_id") is not None and await session.get(Team, changes["team_id"]) is None:
        raise NotFound("Team not found")
    for field, value in changes.items():
        setattr(player, field, value)
    session.add(player)
    await commit_or_rollback(session, "update the player")
    await session.refresh(player)
    return player


async def mark_attendance(session: AsyncSession, player_id: int) -> Player:
    player = await get_player_or_404(session, player_id)
    player.attended = True
    player.attended_at = datetime.utcnow()
    session.add(player)
    await commit_or_rollback(session, "mark attendance")
    await session.refresh(player)
    return player


async def scan_attendance(session: AsyncSession, trainee_id: str) -> Player:
    result = await session.exec(select(Player).where(Player.trainee_id == trainee_id.strip()))
    player = result.first()
    if player is None:
        raise NotFound("Player not found")
    if player.attended:
        raise BadRequest("Already marked attendance")
    return await mark_attendance(session, player.id)


async def bulk_import_players(session: AsyncSession, rows: List[dict], skip_duplicates: bool = False) -> dict:
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
        existing = await session.exec(select(Player.id).where(Player.trainee_id == trainee_id))
        if trainee_id in seen or existing.first() is not None:
            if skip_duplicates:
                results["skipped"] += 1
            else:
                results["failed"] += 1
                results["errors"].append({
                    "row_number": row_number,
                    "error": f"Player with Trainee ID {trainee_id} already exists",
                    "data": row,
                })
            continue

        seen.add(trainee_id)
        session.add(Player(
            trainee_id=trainee_id,
            full_name=row["full_name"],
            email=(row.get("email") or "").strip().lower() or None,
            contact_number=str(row["contact_number"]),
            department=row["department"],
            emergency_contact=row.get("emergency_contact"),
            batting_style=row.get("batting_style"),
            bowling_style=row.get("bowling_style"),
            **{field: row.get(field) or default for field, default in PLAYER_DEFAULTS.items()},
        ))
        results["imported"] += 1

    await commit_or_rollback(session, "import the players")
    logger.info(
        "Player import: %d imported, %d skipped, %d failed",
        results["imported"], results["skipped"], results["failed"],
    )
    return results


async def set_player_approval(session: AsyncSession, player_id: int, is_approved: bool) -> Player:
    return await update_player(session, player_id, {"is_approved": is_approved})


async def bulk_set_player_approval(session: AsyncSession, player_ids: List[int], is_approved: bool) -> int:
    if not player_ids:
        raise BadRequest("player_ids must be a non-empty list")
    result = await session.execute(
        update(Player).where(Player.id.in_(player_ids)).values(is_approved=is_approved)
    )
    await commit_or_rollback(session, "update player approvals")
    return result.rowcount


async def delete_player(session: AsyncSession, player_id: int) -> None:
    player = await get_player_or_404(session, player_id)
    await session.execute(update(User).where(User.player_id == player_id).values(player_id=None))
    await session.delete(player)
    await commit_or_rollback(session, "delete the player")
