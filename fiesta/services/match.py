import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import BadRequest, Conflict, NotFound
from fiesta.models import Match, MatchStatus, RecordedResult, Team
from fiesta.services.tournament import get_tournament_or_404, next_match_number

logger = logging.getLogger(__name__)


async def list_matches(session: AsyncSession, status: Optional[MatchStatus] = None, team_id: Optional[int] = None):
    statement = select(Match).order_by(Match.scheduled_time, Match.match_number)
    if status is not None:
        statement = statement.where(Match.status == status)
    if team_id is not None:
        statement = statement.where(or_(Match.home_team_id == team_id, Match.away_team_id == team_id))
    result = await session.exec(statement)
    return result.all()


async def get_match_or_404(session: AsyncSession, match_id: int) -> Match:
    match = await session.get(Match, match_id)
    if match is None:
        raise NotFound("Match not found")
    return match


async def match_detail(session: AsyncSession, match: Match) -> dict:
    data = match.model_dump()
    data["home_team"] = await session.get(Team, match.home_team_id)
    data["away_team"] = await session.get(Team, match.away_team_id)
    return data


async def _check_teams(session: AsyncSession, home_team_id: int, away_team_id: int) -> None:
    if home_team_id == away_team_id:
        raise BadRequest("A team cannot play itself")
    for team_id in (home_team_id, away_team_id):
        if await session.get(Team, team_id) is None:
            raise NotFound(f"Team {team_id} not found")


async def create_match(session: AsyncSession, **fields) -> Match:
    await _check_teams(session, fields["home_team_id"], fields["away_team_id"])
    if fields.get("tournament_id") is not None:
        await get_tournament_or_404(session, fields["tournament_id"])

    match = Match(match_number=await next_match_number(session), **fields)
    session.add(match)
    await commit_or_rollback(session, "create the match")
    await session.refresh(match)
    logger.info("Created match #%s", match.match_number)
    return match


async def update_match(session: AsyncSession, match_id: int, changes: dict) -> Match:
    match = await get_match_or_404(session, match_id)
    locked = {"home_team_id", "away_team_id", "status"} & changes.keys()
    if locked and await session.get(RecordedResult, match_id) is not None:
        raise Conflict("Match result is already counted in the standings")
    for field, value in changes.items():
        setattr(match, field, value)
    await _check_teams(session, match.home_team_id, match.away_team_id)
    session.add(match)
    await commit_or_rollback(session, "update the match")
    await session.refresh(match)
    return match


async def start_match(session: AsyncSession, match_id: int) -> Match:
    match = await get_match_or_404(session, match_id)
    if match.status == MatchStatus.COMPLETED:
        raise BadRequest("Match is already completed")
    match.status = MatchStatus.LIVE
    match.actual_start_time = datetime.utcnow()
    session.add(match)
    await commit_or_rollback(session, "start the match")
    await session.refresh(match)
    logger.info("Match #%s is live", match.match_number)
    return match


async def end_match(session: AsyncSession, match_id: int, winner_id: int, result: Optional[str] = None) -> Match:
    match = await get_match_or_404(session, match_id)
    if match.status == MatchStatus.COMPLETED:
        raise Conflict("Match is already completed")
    if winner_id not in (match.home_team_id, match.away_team_id):
        raise BadRequest("Winner must be one of the two teams in the match")
    match.status = MatchStatus.COMPLETED
    match.end_time = datetime.utcnow()
    match.winner_id = winner_id
    match.result = result
    session.add(match)
    await commit_or_rollback(session, "end the match")
    await session.refresh(match)
    logger.info("Match #%s completed, winner team %s", match.match_number, winner_id)
    return match


async def update_score(
    session: AsyncSession,
    match_id: int,
    home_score: Optional[str],
    away_score: Optional[str],
) -> Match:
    match = await get_match_or_404(session, match_id)
    if home_score is not None:
        match.home_score = home_score
    if away_score is not None:
        match.away_score = away_score
    session.add(match)
    await commit_or_rollback(session, "update the score")
    await session.refresh(match)
    return match
