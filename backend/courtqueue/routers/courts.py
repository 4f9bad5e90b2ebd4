from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..access import court_for_user, rotation_for_user
from ..db import get_session
from ..models import Court, User
from ..schemas import CourtCreate, CourtOccupancyOut, CourtOut, CourtStatusUpdate
from ..services import rotations as rotation_service
from ..services.courts import set_court_status
from .auth import require_admin, require_operator

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/courts", tags=["courts"])


def court_out(court: Court) -> CourtOut:
    return CourtOut(
        id=court.id,
        name=court.name,
        notes=court.notes,
        active=bool(court.active),
    )


@router.get("", response_model=list[CourtOut])
async def list_courts(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    rows = (
        await session.execute(
            select(Court)
            .where(Court.created_by == user.scope_id, Court.deleted_at.is_(None))
            .order_by(Court.name, Court.id)
        )
    ).scalars().all()
    return [court_out(c) for c in rows]


@router.post("", response_model=CourtOut)
async def create_court(
    body: CourtCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_admin),
):
    court = await rotation_service.create_court(
        session, user.scope_id, body.name, notes=body.notes
    )
    await session.commit()
    return court_out(court)


@router.post("/{court_id}/status", response_model=CourtOccupancyOut)
async def update_court_status(
    court_id: str,
    body: CourtStatusUpdate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, body.rotationId, user)
    court = await court_for_user(session, court_id, user)
    occupancy = await set_court_status(session, body.rotationId, court.id, body.status)
    await session.commit()
    return CourtOccupancyOut(
        id=occupancy.id,
        rotationId=occupancy.rotation_id,
        courtId=occupancy.court_id,
        courtName=court.name,
        status=occupancy.status,
        currentMatchId=occupancy.current_match_id,
        nextMatchId=occupancy.next_match_id,
    )
