from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..access import rotation_for_user
from ..db import get_session
from ..models import BracketOverride, PlayerRotationStatus, Rotation, User
from ..schemas import (
    CourtBoardOut,
    CourtOccupancyOut,
    OverrideCreate,
    OverrideOut,
    PlayerStatusOut,
    RankingOut,
    RankingsOut,
    RotationCreate,
    RotationOut,
)
from ..services import overrides as override_service
from ..services import rotations as rotation_service
from ..services.courts import court_board
from ..services.ledger import list_statuses
from ..services.stats import rotation_rankings
from ..time_utils import coerce_utc
from .auth import require_admin, require_operator
from .matches import match_out

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/rotations", tags=["rotations"])


def rotation_out(rotation: Rotation) -> RotationOut:
    return RotationOut(
        id=rotation.id,
        name=rotation.name,
        status=rotation.status,
        returnToQueue=bool(rotation.return_to_queue),
        createdAt=coerce_utc(rotation.created_at),
        closedAt=coerce_utc(rotation.closed_at),
    )


def player_status_out(row: PlayerRotationStatus) -> PlayerStatusOut:
    return PlayerStatusOut(
        rotationId=row.rotation_id,
        playerId=row.player_id,
        playerName=row.player.full_name if row.player else None,
        status=row.status,
        gamesPlayed=row.games_played or 0,
        wins=row.wins or 0,
        losses=row.losses or 0,
        lastPlayedAt=coerce_utc(row.last_played_at),
        checkedInAt=coerce_utc(row.checked_in_at),
        isNewPlayer=bool(row.is_new_player),
    )


def override_out(row: BracketOverride) -> OverrideOut:
    return OverrideOut(
        id=row.id,
        rotationId=row.rotation_id,
        key=row.key,
        value=row.value,
        createdBy=row.created_by,
        createdAt=coerce_utc(row.created_at),
    )


async def _board(session: AsyncSession, rotation: Rotation) -> CourtBoardOut:
    rows = await court_board(session, rotation.id)
    return CourtBoardOut(
        rotation=rotation_out(rotation),
        courts=[
            CourtOccupancyOut(
                id=row.occupancy.id,
                rotationId=row.occupancy.rotation_id,
                courtId=row.occupancy.court_id,
                courtName=row.occupancy.court.name if row.occupancy.court else None,
                status=row.occupancy.status,
                currentMatchId=row.occupancy.current_match_id,
                nextMatchId=row.occupancy.next_match_id,
                currentMatch=match_out(row.match) if row.match else None,
            )
            for row in rows
        ],
    )


@router.post("", response_model=RotationOut)
async def create_rotation(
    body: RotationCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_admin),
):
    rotation = await rotation_service.create_rotation(
        session, user.scope_id, body.name, return_to_queue=body.returnToQueue
    )
    await session.commit()
    return rotation_out(rotation)


@router.get("", response_model=list[RotationOut])
async def list_rotations(
    status: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    stmt = select(Rotation).where(Rotation.created_by == user.scope_id)
    if status:
        stmt = stmt.where(Rotation.status == status)
    rows = (
        await session.execute(stmt.order_by(Rotation.created_at.desc()))
    ).scalars().all()
    return [rotation_out(r) for r in rows]


@router.get("/active", response_model=Optional[CourtBoardOut])
async def get_active_rotation(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    rotation = await rotation_service.get_open_rotation(session, user.scope_id)
    if rotation is None:
        return None
    return await _board(session, rotation)


@router.post("/{rotation_id}/open", response_model=RotationOut)
async def open_rotation(
    rotation_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_admin),
):
    rotation = await rotation_for_user(session, rotation_id, user)
    await rotation_service.open_rotation(session, rotation)
    await session.commit()
    return rotation_out(rotation)


@router.post("/{rotation_id}/close", response_model=RotationOut)
async def close_rotation(
    rotation_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_admin),
):
    rotation = await rotation_for_user(session, rotation_id, user)
    await rotation_service.close_rotation(session, rotation)
    await session.commit()
    return rotation_out(rotation)


@router.get("/{rotation_id}/board", response_model=CourtBoardOut)
async def get_board(
    rotation_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    rotation = await rotation_for_user(session, rotation_id, user)
    return await _board(session, rotation)


@router.get("/{rotation_id}/players", response_model=list[PlayerStatusOut])
async def list_rotation_players(
    rotation_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, rotation_id, user)
    rows = await list_statuses(session, rotation_id)
    return [player_status_out(row) for row in rows]


@router.get("/{rotation_id}/rankings", response_model=RankingsOut)
async def get_rankings(
    rotation_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, rotation_id, user)
    ranked = await rotation_rankings(session, rotation_id)
    return RankingsOut(
        rotationId=rotation_id,
        totalPlayers=len(ranked),
        players=[
            RankingOut(
                rank=p.rank,
                playerId=p.player_id,
                playerName=p.name,
                gamesPlayed=p.games_played,
                wins=p.wins,
                losses=p.losses,
                winPct=p.win_pct,
            )
            for p in ranked
        ],
    )


@router.get("/{rotation_id}/overrides", response_model=list[OverrideOut])
async def list_overrides(
    rotation_id: str,
    key: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, rotation_id, user)
    rows = await override_service.list_overrides(session, rotation_id, key=key)
    return [override_out(row) for row in rows]


@router.post("/{rotation_id}/overrides", response_model=OverrideOut)
async def record_override(
    rotation_id: str,
    body: OverrideCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_admin),
):
    await rotation_for_user(session, rotation_id, user)
    row = await override_service.record_override(
        session, rotation_id, body.key, body.value, user_id=user.id
    )
    await session.commit()
    return override_out(row)
