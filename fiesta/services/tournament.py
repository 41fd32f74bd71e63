import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.db.database import commit_or_rollback
from fiesta.errors import (
    BadRequest,
    DuplicateEntry,
    InsufficientTeams,
    MatchNotCompleted,
    NotFound,
    TournamentFull,
)
from fiesta.models import (
    Match,
    MatchFormat,
    MatchStatus,
    RecordedResult,
    Team,
    Tournament,
    TournamentStanding,
    TournamentType,
)

logger = logging.getLogger(__name__)

DEFAULT_VENUE = "TBD"
DEFAULT_INTERVAL_MINUTES = 180
OVERS_BY_FORMAT = {MatchFormat.T10: 10, MatchFormat.T15: 15}
POINTS_FOR_WIN = 2


def overs_for(match_format: MatchFormat) -> int:
    return OVERS_BY_FORMAT.get(match_format, 20)


def knockout_round_label(team_count: int) -> str:
    rounds = math.ceil(math.log2(team_count))
    if rounds == 1:
        return "Final"
    if rounds == 2:
        return "Semi Final"
    if rounds == 3:
        return "Quarter Final"
    return f"Round of {2 ** rounds}"


def round_robin_pairs(team_ids: List[int]) -> List[Tuple[int, int]]:
    return [
        (team_ids[i], team_ids[j])
        for i in range(len(team_ids))
        for j in range(i + 1, len(team_ids))
    ]


def knockout_pairs(team_ids: List[int]) -> Tuple[List[Tuple[int, int]], Optional[int]]:
    """Pair neighbours in order. An odd last team gets no match and no bye."""
    pairs = [(team_ids[i], team_ids[i + 1]) for i in range(0, len(team_ids) - 1, 2)]
    unpaired = team_ids[-1] if len(team_ids) % 2 else None
    return pairs, unpaired


async def get_tournament_or_404(session: AsyncSession, tournament_id: int) -> Tournament:
    tournament = await session.get(Tournament, tournament_id)
    if tournament is None:
        raise NotFound("Tournament not found")
    return tournament


async def get_standings(session: AsyncSession, tournament_id: int):
    """Standings ranked by points, then net run rate."""
    result = await session.exec(
        select(TournamentStanding)
        .where(TournamentStanding.tournament_id == tournament_id)
        .order_by(
            TournamentStanding.points.desc(),
            TournamentStanding.net_run_rate.desc(),
            TournamentStanding.id,
        )
    )
    return result.all()


async def get_tournament_matches(session: AsyncSession, tournament_id: int):
    result = await session.exec(
        select(Match)
        .where(Match.tournament_id == tournament_id)
        .order_by(Match.scheduled_time, Match.match_number)
    )
    return result.all()


async def tournament_detail(session: AsyncSession, tournament: Tournament) -> dict:
    data = tournament.model_dump()
    data["standings"] = await get_standings(session, tournament.id)
    data["matches"] = await get_tournament_matches(session, tournament.id)
    return data


async def list_tournaments(session: AsyncSession):
    result = await session.exec(select(Tournament).order_by(Tournament.start_date))
    return [await tournament_detail(session, tournament) for tournament in result.all()]


async def create_tournament(session: AsyncSession, created_by, **fields) -> Tournament:
    if fields["end_date"] < fields["start_date"]:
        raise BadRequest("End date must not be before the start date")
    if fields["number_of_teams"] < 2:
        raise BadRequest("A tournament needs room for at least two teams")
    tournament = Tournament(created_by=created_by, **fields)
    session.add(tournament)
    await commit_or_rollback(session, "create the tournament")
    await session.refresh(tournament)
    logger.info("Created tournament %s (%s)", tournament.id, tournament.name)
    return tournament


async def update_tournament(session: AsyncSession, tournament_id: int, changes: dict) -> Tournament:
    tournament = await get_tournament_or_404(session, tournament_id)
    for field, value in changes.items():
        setattr(tournament, field, value)
    if tournament.end_date < tournament.start_date:
        raise BadRequest("End date must not be before the start date")
    session.add(tournament)
    await commit_or_rollback(session, "update the tournament")
    await session.refresh(tournament)
    return tournament


async def delete_tournament(session: AsyncSession, tournament_id: int) -> None:
    """Standings go with the tournament; its matches survive, detached."""
    tournament = await get_tournament_or_404(session, tournament_id)
    await session.execute(delete(RecordedResult).where(RecordedResult.tournament_id == tournament_id))
    await session.execute(delete(TournamentStanding).where(TournamentStanding.tournament_id == tournament_id))
    await session.execute(update(Match).where(Match.tournament_id == tournament_id).values(tournament_id=None))
    await session.delete(tournament)
    await commit_or_rollback(session, "delete the tournament")
    logger.info("Deleted tournament %s", tournament_id)


async def _standing_for(session: AsyncSession, tournament_id: int, team_id: int) -> Optional[TournamentStanding]:
    result = await session.exec(
        select(TournamentStanding).where(
            TournamentStanding.tournament_id == tournament_id,
            TournamentStanding.team_id == team_id,
        )
    )
    return result.first()


async def add_team(session: AsyncSession, tournament_id: int, team_id: int) -> TournamentStanding:
    tournament = await get_tournament_or_404(session, tournament_id)
    if await session.get(Team, team_id) is None:
        raise NotFound("Team not found")

    result = await session.exec(
        select(func.count()).select_from(TournamentStanding).where(TournamentStanding.tournament_id == tournament_id)
    )
    if result.one() >= tournament.number_of_teams:
        raise TournamentFull(f"Tournament already has {tournament.number_of_teams} teams")

    if await _standing_for(session, tournament_id, team_id) is not None:
        raise DuplicateEntry("Team is already in this tournament")

    standing = TournamentStanding(tournament_id=tournament_id, team_id=team_id)
    session.add(standing)
    await commit_or_rollback(session, "add the team to the tournament")
    await session.refresh(standing)
    return standing


async def remove_team(session: AsyncSession, tournament_id: int, team_id: int) -> None:
    await get_tournament_or_404(session, tournament_id)
    standing = await _standing_for(session, tournament_id, team_id)
    if standing is None:
        raise NotFound("Team is not in this tournament")
    await session.delete(standing)
    await commit_or_rollback(session, "remove the team from the tournament")


async def next_match_number(session: AsyncSession) -> int:
    result = await session.exec(select(func.max(Match.match_number)))
    return (result.one() or 0) + 1


async def generate_matches(
    session: AsyncSession,
    tournament_id: int,
    venue: Optional[str] = None,
    start_time: Optional[datetime] = None,
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
) -> dict:
    tournament = await get_tournament_or_404(session, tournament_id)

    result = await session.exec(
        select(TournamentStanding.team_id)
        .where(TournamentStanding.tournament_id == tournament_id)
        .order_by(TournamentStanding.id)
    )
    team_ids = list(result.all())
    if len(team_ids) < 2:
        raise InsufficientTeams("At least 2 teams are needed to generate matches")

    unpaired_team_id = None
    round_label = None
    if tournament.type == TournamentType.KNOCKOUT:
        pairs, unpaired_team_id = knockout_pairs(team_ids)
        # every match gets the label of the first round, based on the full field
        round_label = knockout_round_label(len(team_ids))
        if unpaired_team_id is not None:
            logger.warning(
                "Knockout for tournament %s has an odd team count, team %s was left without a match",
                tournament_id,
                unpaired_team_id,
            )
    else:
        pairs = round_robin_pairs(team_ids)

    start = start_time or tournament.start_date
    number = await next_match_number(session)
    matches = []
    for index, (home_team_id, away_team_id) in enumerate(pairs):
        match = Match(
            match_number=number + index,
            match_type=tournament.format.value,
            tournament_id=tournament_id,
            home_team_id=home_team_id,
            away_team_id=away_team_id,
            scheduled_time=start + timedelta(minutes=index * interval_minutes),
            venue=venue or DEFAULT_VENUE,
            overs=overs_for(tournament.format),
            status=MatchStatus.UPCOMING,
            round=round_label,
        )
        session.add(match)
        matches.append(match)

    await commit_or_rollback(session, "generate the matches")
    for match in matches:
        await session.refresh(match)

    logger.info("Generated %d matches for tournament %s", len(matches), tournament_id)
    return {"matches": matches, "unpaired_team_id": unpaired_team_id}


async def record_result(session: AsyncSession, tournament_id: int, match_id: int) -> dict:
    """Apply a completed match to the standings, once per match."""
    await get_tournament_or_404(session, tournament_id)
    match = await session.get(Match, match_id)
    if match is None or match.tournament_id != tournament_id:
        raise NotFound("Match not found in this tournament")
    if match.status != MatchStatus.COMPLETED or match.winner_id is None:
        raise MatchNotCompleted("Match is not completed or has no winner")

    if await session.get(RecordedResult, match_id) is not None:
        logger.warning("Result for match %s was already recorded", match_id)
        return {"standings": await get_standings(session, tournament_id), "already_recorded": True}

    loser_id = match.away_team_id if match.winner_id == match.home_team_id else match.home_team_id
    winner = await _standing_for(session, tournament_id, match.winner_id)
    loser = await _standing_for(session, tournament_id, loser_id)
    if winner is None or loser is None:
        raise NotFound("Both teams must have standings in this tournament")

    session.add(RecordedResult(match_id=match_id, tournament_id=tournament_id, winner_id=match.winner_id))
    winner.matches_played += 1
    winner.wins += 1
    winner.points += POINTS_FOR_WIN
    loser.matches_played += 1
    loser.losses += 1
    session.add(winner)
    session.add(loser)
    await commit_or_rollback(session, "record the match result")

    logger.info("Recorded result of match %s in tournament %s", match_id, tournament_id)
    return {"standings": await get_standings(session, tournament_id), "already_recorded": False}
