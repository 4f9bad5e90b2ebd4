"""Ownership scoping for rotations and courts.

Every row a route touches must belong to the caller's owner scope (an admin,
or the admin a staff user works for). Rows outside the scope are reported as
missing rather than forbidden so their existence is not revealed.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .exceptions import ConflictError, NotFoundError
from .models import Court, Match, Rotation, User


async def rotation_for_user(
    session: AsyncSession, rotation_id: str, user: User
) -> Rotation:
    rotation = await session.get(Rotation, rotation_id)
    if rotation is None or rotation.created_by != user.scope_id:
        raise NotFoundError("rotation not found", code="rotation_not_found")
    return rotation


async def open_rotation_for_user(
    session: AsyncSession, rotation_id: str, user: User
) -> Rotation:
    """Like :func:`rotation_for_user` but also requires the rotation be open."""

    rotation = await rotation_for_user(session, rotation_id, user)
    if rotation.status != "open":
        raise ConflictError(
            f"rotation is {rotation.status}, not open", code="rotation_not_open"
        )
    return rotation


async def court_for_user(session: AsyncSession, court_id: str, user: User) -> Court:
    court = (
        await session.execute(
            select(Court).where(
                Court.id == court_id,
                Court.created_by == user.scope_id,
                Court.deleted_at.is_(None),
            )
        )
    ).scalar_one_or_none()
    if court is None:
        raise NotFoundError("court not found", code="court_not_found")
    return court


async def match_for_user(
    session: AsyncSession, match_id: str, user: User, *, rotation_id: str | None = None
) -> Match:
    """Resolve a match visible to ``user``, optionally pinned to a rotation."""

    match = await session.get(Match, match_id)
    if match is None or (rotation_id is not None and match.rotation_id != rotation_id):
        raise NotFoundError("match not found", code="match_not_found")
    await rotation_for_user(session, match.rotation_id, user)
    return match
