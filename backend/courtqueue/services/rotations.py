"""Rotation and court bookkeeping around the queue core.

Opening a rotation gives every active court an occupancy row; at most one
rotation per owner may be open at a time.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Court, Rotation
from ..time_utils import utcnow
from .courts import ensure_occupancies

logger = logging.getLogger(__name__)


async def create_rotation(
    session: AsyncSession, owner_id: str, name: str, *, return_to_queue: bool = True
) -> Rotation:
    name = (name or "").strip()
    if not name:
        raise ValidationError("rotation name is required", code="rotation_invalid")
    rotation = Rotation(
        id=uuid.uuid4().hex,
        name=name,
        status="draft",
        return_to_queue=return_to_queue,
        created_by=owner_id,
        created_at=utcnow(),
    )
    session.add(rotation)
    await session.flush()
    return rotation


async def active_courts(session: AsyncSession, owner_id: str) -> list[Court]:
    rows = (
        await session.execute(
            select(Court)
            .where(
                Court.created_by == owner_id,
                Court.active.is_(True),
                Court.deleted_at.is_(None),
            )
            .order_by(Court.name, Court.id)
        )
    ).scalars().all()
    return list(rows)


async def get_open_rotation(session: AsyncSession, owner_id: str) -> Optional[Rotation]:
    return (
        await session.execute(
            select(Rotation).where(
                Rotation.created_by == owner_id, Rotation.status == "open"
            )
        )
    ).scalars().first()


async def open_rotation(session: AsyncSession, rotation: Rotation) -> Rotation:
    existing = await get_open_rotation(session, rotation.created_by)
    if existing is not None and existing.id != rotation.id:
        raise ConflictError(
            "another rotation is already open", code="rotation_already_open"
        )
    rotation.status = "open"
    rotation.closed_at = None
    courts = await active_courts(session, rotation.created_by)
    await ensure_occupancies(session, rotation.id, courts)
    await session.flush()
    logger.info("Opened rotation %s with %d courts", rotation.id, len(courts))
    return rotation


async def close_rotation(session: AsyncSession, rotation: Rotation) -> Rotation:
    rotation.status = "closed"
    rotation.closed_at = utcnow()
    await session.flush()
    logger.info("Closed rotation %s", rotation.id)
    return rotation


async def create_court(
    session: AsyncSession, owner_id: str, name: str, *, notes: str | None = None
) -> Court:
    """Register a court; an already open rotation gets an occupancy for it."""

    name = (name or "").strip()
    if not name:
        raise ValidationError("court name is required", code="court_invalid")
    court = Court(
        id=uuid.uuid4().hex,
        name=name,
        notes=notes,
        active=True,
        created_by=owner_id,
    )
    session.add(court)
    await session.flush()

    rotation = await get_open_rotation(session, owner_id)
    if rotation is not None:
        await ensure_occupancies(session, rotation.id, [court])
    return court


async def get_rotation(session: AsyncSession, rotation_id: str) -> Rotation:
    rotation = await session.get(Rotation, rotation_id)
    if rotation is None:
        raise NotFoundError("rotation not found", code="rotation_not_found")
    return rotation
