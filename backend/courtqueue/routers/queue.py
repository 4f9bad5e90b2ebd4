from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..access import open_rotation_for_user, rotation_for_user
from ..db import get_session
from ..models import QueueEntry, User
from ..schemas import EnqueueRequest, EntryRequest, QueueEntryOut, ReorderRequest
from ..services import queue as queue_service
from ..time_utils import coerce_utc
from .auth import require_operator

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/queue", tags=["queue"])


def entry_out(entry: QueueEntry) -> QueueEntryOut:
    return QueueEntryOut(
        id=entry.id,
        rotationId=entry.rotation_id,
        type=entry.type,
        status=entry.status,
        position=entry.position,
        manualOrder=bool(entry.manual_order),
        createdAt=coerce_utc(entry.created_at),
        playerIds=entry.player_ids,
    )


@router.get("/{rotation_id}", response_model=list[QueueEntryOut])
async def list_queue(
    rotation_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, rotation_id, user)
    entries = await queue_service.list_queue(session, rotation_id)
    return [entry_out(e) for e in entries]


@router.post("/{rotation_id}/enqueue", response_model=QueueEntryOut)
async def enqueue(
    rotation_id: str,
    body: EnqueueRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await open_rotation_for_user(session, rotation_id, user)
    entry = await queue_service.enqueue(session, rotation_id, body.type, body.playerIds)
    await session.commit()
    return entry_out(entry)


@router.post("/{rotation_id}/dequeue", response_model=QueueEntryOut)
async def dequeue(
    rotation_id: str,
    body: EntryRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await rotation_for_user(session, rotation_id, user)
    entry = await queue_service.remove(session, rotation_id, body.entryId)
    await session.commit()
    return entry_out(entry)


@router.post("/{rotation_id}/away", response_model=QueueEntryOut)
async def mark_away(
    rotation_id: str,
    body: EntryRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    # Same transition as dequeue.
    await rotation_for_user(session, rotation_id, user)
    entry = await queue_service.remove(session, rotation_id, body.entryId)
    await session.commit()
    return entry_out(entry)


@router.post("/{rotation_id}/reorder", response_model=list[QueueEntryOut])
async def reorder(
    rotation_id: str,
    body: ReorderRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_operator),
):
    await open_rotation_for_user(session, rotation_id, user)
    entries = await queue_service.reorder(session, rotation_id, body.orderedEntryIds)
    await session.commit()
    return [entry_out(e) for e in entries]
