from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..access import rotation_for_user
from ..db import get_session
from ..exceptions import NotFoundError
from ..models import Player, User
from ..schemas import CheckoutRequest, PlayerStatusOut, RotationPlayerRequest
from ..services import ledger
from .auth import require_operator
from .rotations import player_status_out

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/players", tags=["players"])


async def _visible_player(session: AsyncSession, player_id: str) -> Player:
    player = await session.get(Player, player_id)
    if player is None or player.deleted_at is not None:
        raise NotFoundError(f"player '{player_id}' not found", code="player_not_found")
    return player


@router.post("/{player_id}/checkin", response_model=PlayerStatusOut)
async def check_in(
    player_id: str,
    body: RotationPlayerRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, body.rotationId, user)
    await _visible_player(session, player_id)
    row = await ledger.check_in(session, body.rotationId, player_id)
    await session.commit()
    return player_status_out(row)


@router.post("/{player_id}/present", response_model=PlayerStatusOut)
async def mark_present(
    player_id: str,
    body: RotationPlayerRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, body.rotationId, user)
    await _visible_player(session, player_id)
    row = await ledger.mark_present(session, body.rotationId, player_id)
    await session.commit()
    return player_status_out(row)


@router.post("/{player_id}/checkout", response_model=PlayerStatusOut)
async def check_out(
    player_id: str,
    body: CheckoutRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, body.rotationId, user)
    row = await ledger.check_out(session, body.rotationId, player_id, body.status)
    await session.commit()
    return player_status_out(row)
