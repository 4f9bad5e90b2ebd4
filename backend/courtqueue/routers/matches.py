from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..access import match_for_user, open_rotation_for_user, rotation_for_user
from ..db import get_session
from ..models import Match, User
from ..schemas import (
    MatchCancel,
    MatchCancelOut,
    MatchCorrection,
    MatchEnd,
    MatchIdOut,
    MatchOut,
    MatchStart,
    ParticipantOut,
    SuggestRequest,
    SuggestionOut,
)
from ..services import lifecycle
from ..services.suggest import suggest_match
from ..exceptions import NotFoundError
from ..time_utils import coerce_utc
from .auth import require_operator

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


def match_out(match: Match) -> MatchOut:
    return MatchOut(
        id=match.id,
        rotationId=match.rotation_id,
        courtOccupancyId=match.court_occupancy_id,
        status=match.status,
        matchType=match.match_type,
        startedAt=coerce_utc(match.started_at),
        endedAt=coerce_utc(match.ended_at),
        score=match.score,
        winnerTeam=match.winner_team,
        participants=[
            ParticipantOut(playerId=p.player_id, teamNumber=p.team_number)
            for p in match.participants
        ],
    )


@router.get("/detail/{match_id}", response_model=MatchOut)
async def get_match(
    match_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    match = await match_for_user(session, match_id, user)
    return match_out(match)


@router.post("/{rotation_id}/suggest", response_model=SuggestionOut)
async def suggest(
    rotation_id: str,
    body: SuggestRequest | None = None,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, rotation_id, user)
    match_type = body.matchType if body else "doubles"
    suggestion = await suggest_match(session, rotation_id, match_type)
    if suggestion is None:
        raise NotFoundError(
            "Not enough eligible players", code="suggestion_unavailable"
        )
    return SuggestionOut(
        matchType=suggestion.match_type,
        teams=suggestion.teams,
        entryIds=suggestion.entry_ids,
    )


@router.post("/{rotation_id}/start", response_model=MatchIdOut)
async def start_match(
    rotation_id: str,
    body: MatchStart,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await open_rotation_for_user(session, rotation_id, user)
    match = await lifecycle.start_match(
        session,
        rotation_id,
        body.courtOccupancyId,
        body.matchType,
        body.teams,
        body.entryIds,
    )
    await session.commit()
    return MatchIdOut(matchId=match.id)


@router.post("/{rotation_id}/end", response_model=MatchIdOut)
async def end_match(
    rotation_id: str,
    body: MatchEnd,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await match_for_user(session, body.matchId, user, rotation_id=rotation_id)
    match = await lifecycle.end_match(
        session, body.matchId, score=body.score, winner_team=body.winnerTeam
    )
    await session.commit()
    return MatchIdOut(matchId=match.id)


@router.post("/{rotation_id}/cancel", response_model=MatchCancelOut)
async def cancel_match(
    rotation_id: str,
    body: MatchCancel,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await match_for_user(session, body.matchId, user, rotation_id=rotation_id)
    match, requeued = await lifecycle.cancel_match(session, body.matchId)
    await session.commit()
    return MatchCancelOut(
        matchId=match.id, requeuedEntryIds=[entry.id for entry in requeued]
    )


@router.post("/{rotation_id}/correct", response_model=MatchOut)
async def correct_result(
    rotation_id: str,
    body: MatchCorrection,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await match_for_user(session, body.matchId, user, rotation_id=rotation_id)
    supplied = body.model_fields_set
    match = await lifecycle.correct_result(
        session,
        body.matchId,
        score=body.score if "score" in supplied else lifecycle.UNSET,
        winner_team=body.winnerTeam if "winnerTeam" in supplied else lifecycle.UNSET,
    )
    await session.commit()
    return match_out(match)


@router.get("/{rotation_id}/history", response_model=list[MatchOut])
async def match_history(
    rotation_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, rotation_id, user)
    matches = await lifecycle.match_history(session, rotation_id)
    return [match_out(m) for m in matches]
