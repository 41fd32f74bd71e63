from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import SQLModel, Field
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_super_admin
from fiesta.db.database import get_session
from fiesta.models import MatchFormat, TournamentStatus, TournamentType
from fiesta.realtime.hub import RealtimeHub, get_hub
from fiesta.responses import success
from fiesta.services import tournament as tournament_service


router = APIRouter(
    prefix="/tournaments",
    tags=["Tournament"],
)


class CreateTournamentCommand(SQLModel):
    name: str
    description: Optional[str] = None
    type: TournamentType
    format: MatchFormat
    start_date: datetime
    end_date: datetime
    number_of_teams: int
    max_players_per_team: int = 11
    min_players_per_team: int = 8
    entry_fee: Optional[float] = None
    prize_pool: Optional[float] = None
    rules: Optional[str] = None


class UpdateTournamentCommand(SQLModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    number_of_teams: Optional[int] = None
    max_players_per_team: Optional[int] = None
    min_players_per_team: Optional[int] = None
    entry_fee: Optional[float] = None
    prize_pool: Optional[float] = None
    rules: Optional[str] = None
    status: Optional[TournamentStatus] = None


class AddTeamCommand(SQLModel):
    team_id: int


class GenerateMatchesCommand(SQLModel):
    venue: Optional[str] = None
    start_time: Optional[datetime] = None
    interval_minutes: int = Field(default=tournament_service.DEFAULT_INTERVAL_MINUTES, gt=0)


class RecordResultCommand(SQLModel):
    match_id: int


@router.get("/")
async def list_tournaments(session: AsyncSession = Depends(get_session)):
    return success(await tournament_service.list_tournaments(session))


@router.get("/{tournament_id}")
async def get_tournament(tournament_id: int, session: AsyncSession = Depends(get_session)):
    tournament = await tournament_service.get_tournament_or_404(session, tournament_id)
    return success(await tournament_service.tournament_detail(session, tournament))


@router.post("/", status_code=201)
async def create_tournament(
    command: CreateTournamentCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    tournament = await tournament_service.create_tournament(session, UUID(user["id"]), **command.model_dump())
    return success(tournament, "Tournament created")


@router.put("/{tournament_id}")
async def update_tournament(
    tournament_id: int,
    command: UpdateTournamentCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    tournament = await tournament_service.update_tournament(
        session, tournament_id, command.model_dump(exclude_unset=True)
    )
    return success(tournament, "Tournament updated")


@router.delete("/{tournament_id}")
async def delete_tournament(
    tournament_id: int,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    await tournament_service.delete_tournament(session, tournament_id)
    return success(message="Tournament deleted")


@router.post("/{tournament_id}/teams", status_code=201)
async def add_team(
    tournament_id: int,
    command: AddTeamCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    standing = await tournament_service.add_team(session, tournament_id, command.team_id)
    return success(standing, "Team added to tournament")


@router.delete("/{tournament_id}/teams/{team_id}")
async def remove_team(
    tournament_id: int,
    team_id: int,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    await tournament_service.remove_team(session, tournament_id, team_id)
    return success(message="Team removed from tournament")


@router.post("/{tournament_id}/generate-matches", status_code=201)
async def generate_matches(
    tournament_id: int,
    command: Optional[GenerateMatchesCommand] = None,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    command = command or GenerateMatchesCommand()
    generated = await tournament_service.generate_matches(
        session,
        tournament_id,
        venue=command.venue,
        start_time=command.start_time,
        interval_minutes=command.interval_minutes,
    )
    message = f"Generated {len(generated['matches'])} matches"
    if generated["unpaired_team_id"] is not None:
        message += f"; team {generated['unpaired_team_id']} has no opponent in this round"
    return success(generated, message)


@router.post("/{tournament_id}/standings")
async def record_result(
    tournament_id: int,
    command: RecordResultCommand,
    user=Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
):
    recorded = await tournament_service.record_result(session, tournament_id, command.match_id)
    if not recorded["already_recorded"]:
        hub.publish("live-feed:update", {"tournament_id": tournament_id, "standings": recorded["standings"]})
    return success(recorded, "Result already recorded" if recorded["already_recorded"] else "Standings updated")
