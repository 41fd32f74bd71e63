from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fiesta.auth.dependencies import require_admin
from fiesta.db.database import get_session
from fiesta.models import MatchStatus
from fiesta.realtime.hub import RealtimeHub, get_hub
from fiesta.responses import success
from fiesta.services import match as match_service

router = APIRouter(
    prefix="/matches",
    tags=["Match"],
)


class CreateMatchCommand(SQLModel):
    home_team_id: int
    away_team_id: int
    scheduled_time: datetime
    venue: str = "TBD"
    overs: int = 20
    match_type: str = "T20"
    tournament_id: Optional[int] = None
    round: Optional[str] = None


class UpdateMatchCommand(SQLModel):
    home_team_id: Optional[int] = None
    away_team_id: Optional[int] = None
    scheduled_time: Optional[datetime] = None
    venue: Optional[str] = None
    overs: Optional[int] = None
    match_type: Optional[str] = None
    round: Optional[str] = None
    status: Optional[MatchStatus] = None


class EndMatchCommand(SQLModel):
    winner_id: int
    result: Optional[str] = None


class ScoreCommand(SQLModel):
    home_score: Optional[str] = None
    away_score: Optional[str] = None


@router.get("/")
async def list_matches(
    status: Optional[MatchStatus] = Query(None),
    team_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
):
    matches = await match_service.list_matches(session, status, team_id)
    return {"status": "success", "data": matches, "count": len(matches)}


@router.get("/{match_id}")
async def get_match(match_id: int, session: AsyncSession = Depends(get_session)):
    match = await match_service.get_match_or_404(session, match_id)
    return success(await match_service.match_detail(session, match))


@router.post("/", status_code=201)
async def create_match(
    command: CreateMatchCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    match = await match_service.create_match(session, **command.model_dump())
    return success(match, f"Match #{match.match_number} created")


@router.patch("/{match_id}")
async def update_match(
    match_id: int,
    command: UpdateMatchCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    match = await match_service.update_match(session, match_id, command.model_dump(exclude_unset=True))
    return success(match)


@router.post("/{match_id}/start")
async def start_match(
    match_id: int,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
):
    match = await match_service.start_match(session, match_id)
    hub.publish("match:status-change", {"match_id": match.id, "status": match.status})
    return success(match)


@router.post("/{match_id}/end")
async def end_match(
    match_id: int,
    command: EndMatchCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
):
    match = await match_service.end_match(session, match_id, command.winner_id, command.result)
    hub.publish(
        "match:status-change",
        {"match_id": match.id, "status": match.status, "winner_id": match.winner_id, "result": match.result},
    )
    return success(match)


@router.post("/{match_id}/score")
async def update_score(
    match_id: int,
    command: ScoreCommand,
    user=Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
):
    match = await match_service.update_score(session, match_id, command.home_score, command.away_score)
    hub.publish("match:score-update", match, room=f"match:{match.id}")
    hub.publish("live-feed:update", {"match_id": match.id, "home_score": match.home_score, "away_score": match.away_score})
    return success(match)
