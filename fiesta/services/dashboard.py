from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.models import CommitteeMember, FoodRegistration, Match, MatchStatus, Player, Team


async def _count(session: AsyncSession, model, *conditions) -> int:
    result = await session.exec(select(func.count()).select_from(model).where(*conditions))
    return result.one()


def _rate(part: int, total: int) -> float:
    return (part / total) * 100 if total else 0


async def dashboard_stats(session: AsyncSession, active_connections: int) -> dict:
    players = await _count(session, Player)
    attended = await _count(session, Player, Player.attended == True)  # noqa: E712
    matches = await _count(session, Match)
    live = await _count(session, Match, Match.status == MatchStatus.LIVE)
    completed = await _count(session, Match, Match.status == MatchStatus.COMPLETED)
    food = await _count(session, FoodRegistration)
    collected = await _count(session, FoodRegistration, FoodRegistration.food_collected == True)  # noqa: E712

    return {
        "players": {"total": players, "attended": attended, "attendance_rate": _rate(attended, players)},
        "teams": {"total": await _count(session, Team)},
        "matches": {
            "total": matches,
            "live": live,
            "completed": completed,
            "upcoming": matches - live - completed,
        },
        "food": {
            "total": food,
            "collected": collected,
            "pending": food - collected,
            "collection_rate": _rate(collected, food),
        },
        "committee": {
            "total": await _count(session, CommitteeMember),
            "active": await _count(session, CommitteeMember, CommitteeMember.checked_in == True),  # noqa: E712
        },
        "active_connections": active_connections,
    }


async def registrations_by_department(session: AsyncSession):
    result = await session.exec(
        select(Player.department, func.count(Player.id)).group_by(Player.department).order_by(Player.department)
    )
    return [{"department": department, "count": count} for department, count in result.all()]


async def food_preferences(session: AsyncSession):
    result = await session.exec(
        select(FoodRegistration.food_preference, func.count(FoodRegistration.id))
        .group_by(FoodRegistration.food_preference)
        .order_by(FoodRegistration.food_preference)
    )
    return [{"preference": preference, "count": count} for preference, count in result.all()]
