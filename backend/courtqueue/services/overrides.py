"""Append-only log of bracket corrections.

Values are opaque here; the bracket feature that reads them lives elsewhere.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import ValidationError
from ..models import BracketOverride
from ..time_utils import utcnow


async def record_override(
    session: AsyncSession,
    rotation_id: str,
    key: str,
    value: Any,
    *,
    user_id: str | None = None,
) -> BracketOverride:
    key = (key or "").strip()
    if not key:
        raise ValidationError("override key is required", code="override_invalid")
    override = BracketOverride(
        id=uuid.uuid4().hex,
        rotation_id=rotation_id,
        key=key,
        value=value,
        created_by=user_id,
        created_at=utcnow(),
    )
    session.add(override)
    await session.flush()
    return override


async def list_overrides(
    session: AsyncSession, rotation_id: str, *, key: str | None = None
) -> list[BracketOverride]:
    stmt = select(BracketOverride).where(BracketOverride.rotation_id == rotation_id)
    if key:
        stmt = stmt.where(BracketOverride.key == key)
    stmt = stmt.order_by(BracketOverride.created_at, BracketOverride.id)
    return list((await session.execute(stmt)).scalars().all())
