import logging
import random
from typing import Optional

from sqlalchemy import func, or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import BadRequest, Conflict, NotFound
from fiesta.models import Match, Player, Team, TournamentStanding

logger = logging.getLogger(__name__)


async def get_team_or_404(session: AsyncSession, team_id: int) -> Team:
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFound("Team not found")
    return team


async def _player_count(session: AsyncSession, team_id: int) -> int:
    result = await session.exec(select(func.count()).select_from(Player).where(Player.team_id == team_id))
    return result.one()


async def _matches_for(session: AsyncSession, team_id: int):
    result = await session.exec(
        select(Match)
        .where(or_(Match.home_team_id == team_id, Match.away_team_id == team_id))
        .order_by(Match.scheduled_time)
    )
    return result.all()


async def list_teams(session: AsyncSession):
    result = await session.exec(select(Team).order_by(Team.name))
    teams = []
    for team in result.all():
        matches = await _matches_for(session, team.id)
        data = team.model_dump()
        data["player_count"] = await _player_count(session, team.id)
        data["matches_played"] = sum(1 for m in matches if m.winner_id is not None)
        data["matches_won"] = sum(1 for m in matches if m.winner_id == team.id)
        teams.append(data)
    return teams


async def team_detail(session: AsyncSession, team_id: int) -> dict:
    team = await get_team_or_404(session, team_id)
    result = await session.exec(select(Player).where(Player.team_id == team_id).order_by(Player.full_name))
    data = team.model_dump()
    data["players"] = result.all()
    data["matches"] = await _matches_for(session, team_id)
    return data


async def _ensure_name_free(session: AsyncSession, name: str, team_id: Optional[int] = None) -> None:
    result = await session.exec(select(Team).where(func.lower(Team.name) == name.strip().lower()))
    existing = result.first()
    if existing is not None and existing.id != team_id:
        raise Conflict(f"A team named {name} already exists")


async def create_team(session: AsyncSession, name: str, color: Optional[str] = None, captain_id: Optional[int] = None) -> Team:
    await _ensure_name_free(session, name)
    team = Team(name=name.strip(), color=color, captain_id=captain_id)
    session.add(team)
    await commit_or_rollback(session, "create the team")
    await session.refresh(team)
    return team


async def update_team(session: AsyncSession, team_id: int, changes: dict) -> Team:
    team = await get_team_or_404(session, team_id)
    if "name" in changes:
        await _ensure_name_free(session, changes["name"], team_id)
    for field, value in changes.items():
        setattr(team, field, value)
    session.add(team)
    await commit_or_rollback(session, "update the team")
    await session.refresh(team)
    return team


async def delete_team(session: AsyncSession, team_id: int) -> None:
    team = await get_team_or_404(session, team_id)
    if await _matches_for(session, team_id):
        raise Conflict("Team has scheduled matches and cannot be deleted")
    entered = await session.exec(select(TournamentStanding.id).where(TournamentStanding.team_id == team_id))
    if entered.first() is not None:
        raise Conflict("Team is entered in a tournament and cannot be deleted")
    await session.execute(update(Player).where(Player.team_id == team_id).values(team_id=None))
    await session.delete(team)
    await commit_or_rollback(session, "delete the team")
    logger.info("Deleted team %s", team_id)


async def auto_assign_players(session: AsyncSession) -> dict:
    """Spread unassigned players over all teams, round robin after a shuffle."""
    teams = (await session.exec(select(Team).order_by(Team.id))).all()
    if not teams:
        raise BadRequest("No teams found. Please create teams first.")

    players = list((await session.exec(select(Player).where(Player.team_id.is_(None)))).all())
    if not players:
        raise BadRequest("No unassigned players found.")

    random.shuffle(players)
    for index, player in enumerate(players):
        player.team_id = teams[index % len(teams)].id
        session.add(player)
    await commit_or_rollback(session, "assign players to teams")

    logger.info("Assigned %d players to %d teams", len(players), len(teams))
    return {
        "assigned_count": len(players),
        "teams": [
            {"id": team.id, "name": team.name, "player_count": await _player_count(session, team.id)}
            for team in teams
        ],
    }
