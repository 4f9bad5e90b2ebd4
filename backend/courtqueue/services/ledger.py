"""Player status ledger: per-rotation presence and cumulative results."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, ValidationError
from ..models import PlayerRotationStatus
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

PLAYER_STATUSES = {"checked_in", "present", "away", "done"}
CHECKOUT_STATUSES = {"away", "done"}


async def get_statuses(
    session: AsyncSession,
    rotation_id: str,
    player_ids: Iterable[str] | None = None,
    *,
    for_update: bool = False,
) -> dict[str, PlayerRotationStatus]:
    stmt = select(PlayerRotationStatus).where(
        PlayerRotationStatus.rotation_id == rotation_id
    )
    if player_ids is not None:
        stmt = stmt.where(PlayerRotationStatus.player_id.in_(list(player_ids)))
    if for_update:
        stmt = stmt.with_for_update()
    rows = (await session.execute(stmt)).scalars().all()
    return {row.player_id: row for row in rows}


async def list_statuses(
    session: AsyncSession, rotation_id: str
) -> list[PlayerRotationStatus]:
    rows = await get_statuses(session, rotation_id)
    return sorted(rows.values(), key=lambda row: row.player_id)


async def set_status(
    session: AsyncSession, rotation_id: str, player_id: str, status: str
) -> PlayerRotationStatus:
    """Upsert the player's row for this rotation with ``status``.

    The first row created for a player marks them as new to the rotation.
    """

    if status not in PLAYER_STATUSES:
        raise ValidationError(
            f"unsupported player status: {status!r}", code="player_status_invalid"
        )

    row = await session.get(
        PlayerRotationStatus, (rotation_id, player_id), with_for_update=True
    )
    now = utcnow()
    if row is None:
        row = PlayerRotationStatus(
            rotation_id=rotation_id,
            player_id=player_id,
            status=status,
            games_played=0,
            wins=0,
            losses=0,
            checked_in_at=now if status == "checked_in" else None,
            is_new_player=True,
        )
        session.add(row)
    else:
        if status == "checked_in" and row.status != "checked_in":
            row.checked_in_at = now
        row.status = status
    await session.flush()
    logger.info("Player %s is %s in rotation %s", player_id, status, rotation_id)
    return row


async def check_in(
    session: AsyncSession, rotation_id: str, player_id: str
) -> PlayerRotationStatus:
    return await set_status(session, rotation_id, player_id, "checked_in")


async def mark_present(
    session: AsyncSession, rotation_id: str, player_id: str
) -> PlayerRotationStatus:
    return await set_status(session, rotation_id, player_id, "present")


async def check_out(
    session: AsyncSession, rotation_id: str, player_id: str, status: str
) -> PlayerRotationStatus:
    """Move a checked-in player to ``away`` or ``done``."""

    if status not in CHECKOUT_STATUSES:
        raise ValidationError(
            "checkout status must be 'away' or 'done'", code="player_status_invalid"
        )
    row = await session.get(PlayerRotationStatus, (rotation_id, player_id))
    if row is None:
        raise NotFoundError(
            "player is not checked in to this rotation",
            code="player_not_checked_in",
        )
    return await set_status(session, rotation_id, player_id, status)


async def record_games(
    session: AsyncSession,
    rotation_id: str,
    player_ids: Sequence[str],
    played_at: datetime,
) -> dict[str, PlayerRotationStatus]:
    """Count a finished game for each player and return them to ``checked_in``.

    Players without a ledger row (never checked in here) get one, so their
    results are not lost.
    """

    rows = await get_statuses(session, rotation_id, player_ids, for_update=True)
    for pid in player_ids:
        row = rows.get(pid)
        if row is None:
            logger.warning(
                "Player %s finished a match in rotation %s without checking in",
                pid,
                rotation_id,
            )
            row = PlayerRotationStatus(
                rotation_id=rotation_id,
                player_id=pid,
                games_played=0,
                wins=0,
                losses=0,
                checked_in_at=played_at,
                is_new_player=True,
            )
            session.add(row)
            rows[pid] = row
        row.games_played = (row.games_played or 0) + 1
        row.last_played_at = played_at
        row.status = "checked_in"
    return rows


def apply_result_deltas(
    rows: dict[str, PlayerRotationStatus],
    teams: dict[int, Sequence[str]],
    deltas: dict[int, tuple[int, int]],
) -> None:
    """Add ``(wins, losses)`` deltas per team number to each player's row."""

    for team_number, (wins_delta, losses_delta) in deltas.items():
        for pid in teams.get(team_number, ()):
            row = rows.get(pid)
            if row is None:
                logger.warning("No ledger row for player %s; skipping result delta", pid)
                continue
            row.wins = (row.wins or 0) + wins_delta
            row.losses = (row.losses or 0) + losses_delta
