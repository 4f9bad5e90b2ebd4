"""Court occupancy coordinator.

Each (rotation, court) pair has one ``CourtOccupancy`` row moving through
``available ⇄ in_match``, with ``maintenance`` reachable only from
``available`` by an operator. Only the match lifecycle moves a court in and
out of ``in_match``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Court, CourtOccupancy, Match

logger = logging.getLogger(__name__)

COURT_STATUSES = {"available", "in_match", "maintenance"}

# Operator-driven transitions; in_match is entered and left by matches only.
OPERATOR_TRANSITIONS = {
    ("available", "maintenance"),
    ("maintenance", "available"),
}


async def get_occupancy(
    session: AsyncSession,
    rotation_id: str,
    occupancy_id: str,
    *,
    for_update: bool = False,
) -> CourtOccupancy:
    stmt = select(CourtOccupancy).where(
        CourtOccupancy.id == occupancy_id,
        CourtOccupancy.rotation_id == rotation_id,
    )
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    occupancy = (await session.execute(stmt)).scalar_one_or_none()
    if occupancy is None:
        raise NotFoundError("court occupancy not found", code="court_occupancy_not_found")
    return occupancy


async def occupy(
    session: AsyncSession, occupancy: CourtOccupancy, match_id: str
) -> CourtOccupancy:
    """Move an ``available`` court to ``in_match`` for ``match_id``.

    The write is a conditional update on ``status = 'available'``; if another
    transaction got there first no row matches and the call fails instead of
    double booking the court.
    """

    if occupancy.status != "available":
        raise ConflictError(
            f"court is {occupancy.status}, not available",
            code="court_not_available",
        )
    result = await session.execute(
        update(CourtOccupancy)
        .where(
            CourtOccupancy.id == occupancy.id,
            CourtOccupancy.status == "available",
        )
        .values(status="in_match", current_match_id=match_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            "court was taken by another match", code="court_not_available"
        )
    occupancy.status = "in_match"
    occupancy.current_match_id = match_id
    return occupancy


async def release(session: AsyncSession, occupancy_id: Optional[str]) -> None:
    """Return a court to ``available`` once its match is over."""

    if not occupancy_id:
        return
    occupancy = await session.get(CourtOccupancy, occupancy_id, with_for_update=True)
    if occupancy is None:
        logger.warning("Court occupancy %s vanished before release", occupancy_id)
        return
    occupancy.status = "available"
    occupancy.current_match_id = None
    occupancy.next_match_id = None


async def set_court_status(
    session: AsyncSession, rotation_id: str, court_id: str, status: str
) -> CourtOccupancy:
    """Apply an operator status change (maintenance on/off)."""

    if status not in COURT_STATUSES:
        raise ValidationError(
            f"unsupported court status: {status!r}", code="court_status_invalid"
        )
    if status == "in_match":
        raise ValidationError(
            "courts enter in_match only by starting a match",
            code="court_status_invalid",
        )

    occupancy = (
        await session.execute(
            select(CourtOccupancy)
            .where(
                CourtOccupancy.rotation_id == rotation_id,
                CourtOccupancy.court_id == court_id,
            )
            .with_for_update()
        )
    ).scalar_one_or_none()
    if occupancy is None:
        raise NotFoundError(
            "court is not part of this rotation", code="court_occupancy_not_found"
        )

    if occupancy.status == status:
        return occupancy
    if (occupancy.status, status) not in OPERATOR_TRANSITIONS:
        raise ConflictError(
            f"court cannot move from {occupancy.status} to {status}",
            code="court_transition_invalid",
        )
    occupancy.status = status
    await session.flush()
    logger.info(
        "Court %s set to %s in rotation %s", court_id, status, rotation_id
    )
    return occupancy


async def ensure_occupancies(
    session: AsyncSession, rotation_id: str, courts: list[Court]
) -> list[CourtOccupancy]:
    """Make sure every court has exactly one occupancy row in the rotation."""

    existing = (
        await session.execute(
            select(CourtOccupancy).where(CourtOccupancy.rotation_id == rotation_id)
        )
    ).scalars().all()
    by_court = {row.court_id: row for row in existing}
    for court in courts:
        if court.id in by_court:
            continue
        occupancy = CourtOccupancy(
            id=uuid.uuid4().hex,
            rotation_id=rotation_id,
            court_id=court.id,
            status="available",
            court=court,
        )
        session.add(occupancy)
        by_court[court.id] = occupancy
    await session.flush()
    return [by_court[court.id] for court in courts]


@dataclass
class CourtBoardRow:
    occupancy: CourtOccupancy
    match: Optional[Match]


async def court_board(session: AsyncSession, rotation_id: str) -> list[CourtBoardRow]:
    """Occupancies of active courts with the match each is hosting."""

    occupancies = (
        await session.execute(
            select(CourtOccupancy)
            .join(Court, Court.id == CourtOccupancy.court_id)
            .where(
                CourtOccupancy.rotation_id == rotation_id,
                Court.deleted_at.is_(None),
                Court.active.is_(True),
            )
            .order_by(Court.name, Court.id)
        )
    ).scalars().all()

    match_ids = [o.current_match_id for o in occupancies if o.current_match_id]
    matches: dict[str, Match] = {}
    if match_ids:
        rows = (
            await session.execute(select(Match).where(Match.id.in_(match_ids)))
        ).scalars().all()
        matches = {m.id: m for m in rows}

    return [
        CourtBoardRow(
            occupancy=o,
            match=matches.get(o.current_match_id) if o.current_match_id else None,
        )
        for o in occupancies
    ]
