"""Queue store: waiting entries per rotation."""

from __future__ import annotations

import logging
import uuid
from typing import Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import TEAM_SIZES, QueueEntry, QueueEntryPlayer, Rotation
from ..time_utils import utcnow

logger = logging.getLogger(__name__)


def normalize_match_type(match_type: str) -> str:
    """Normalize and validate a match type identifier."""

    value = (match_type or "").strip().lower()
    if value not in TEAM_SIZES:
        raise ValidationError(
            f"unsupported match type: {match_type!r}",
            code="match_type_unsupported",
        )
    return value


def _unique_player_ids(player_ids: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for pid in player_ids:
        if not pid:
            raise ValidationError("player ids must not be empty", code="player_id_invalid")
        if pid in seen:
            raise ValidationError("duplicate player ids provided", code="duplicate_players")
        seen[pid] = None
    return list(seen)


def validate_group(match_type: str, player_ids: Sequence[str]) -> list[str]:
    """Check that ``player_ids`` is a valid group for ``match_type``."""

    expected = TEAM_SIZES[match_type]
    unique = _unique_player_ids(player_ids)
    if len(unique) != expected:
        raise ValidationError(
            f"{match_type.title()} requires {expected} player(s), got {len(unique)}",
            code="player_count_mismatch",
        )
    return unique


async def lock_rotation(session: AsyncSession, rotation_id: str) -> Rotation:
    """Load the rotation row with a write lock.

    Queue positions are allocated while holding this lock so concurrent
    enqueues and requeues cannot hand out the same position.
    """

    rotation = (
        await session.execute(
            select(Rotation).where(Rotation.id == rotation_id).with_for_update()
        )
    ).scalar_one_or_none()
    if rotation is None:
        raise NotFoundError("rotation not found", code="rotation_not_found")
    return rotation


async def next_position(session: AsyncSession, rotation_id: str) -> int:
    current = (
        await session.execute(
            select(func.max(QueueEntry.position)).where(
                QueueEntry.rotation_id == rotation_id
            )
        )
    ).scalar()
    return (current or 0) + 1


async def queued_player_ids(
    session: AsyncSession, rotation_id: str, player_ids: Sequence[str]
) -> list[str]:
    """Return which of ``player_ids`` already sit in a queued entry."""

    if not player_ids:
        return []
    rows = (
        await session.execute(
            select(QueueEntryPlayer.player_id)
            .join(QueueEntry, QueueEntry.id == QueueEntryPlayer.entry_id)
            .where(
                QueueEntry.rotation_id == rotation_id,
                QueueEntry.status == "queued",
                QueueEntryPlayer.player_id.in_(list(player_ids)),
            )
        )
    ).scalars().all()
    return sorted(set(rows))


def _new_entry(
    rotation_id: str, match_type: str, player_ids: Sequence[str], position: int
) -> QueueEntry:
    entry_id = uuid.uuid4().hex
    return QueueEntry(
        id=entry_id,
        rotation_id=rotation_id,
        type=match_type,
        status="queued",
        position=position,
        manual_order=False,
        created_at=utcnow(),
        players=[
            QueueEntryPlayer(entry_id=entry_id, player_id=pid) for pid in player_ids
        ],
    )


async def enqueue(
    session: AsyncSession,
    rotation_id: str,
    match_type: str,
    player_ids: Sequence[str],
) -> QueueEntry:
    """Add a singles or doubles entry to the back of the rotation's queue."""

    match_type = normalize_match_type(match_type)
    players = validate_group(match_type, player_ids)

    await lock_rotation(session, rotation_id)

    already_queued = await queued_player_ids(session, rotation_id, players)
    if already_queued:
        raise ConflictError(
            "players already in queue: " + ", ".join(already_queued),
            code="player_already_queued",
        )

    position = await next_position(session, rotation_id)
    entry = _new_entry(rotation_id, match_type, players, position)
    session.add(entry)
    await session.flush()
    logger.info(
        "Queued %s entry %s at position %d in rotation %s",
        match_type,
        entry.id,
        position,
        rotation_id,
    )
    return entry


async def _queued_entries_for_players(
    session: AsyncSession, rotation_id: str, player_ids: Sequence[str]
) -> list[QueueEntry]:
    if not player_ids:
        return []
    rows = (
        await session.execute(
            select(QueueEntry)
            .join(QueueEntryPlayer, QueueEntryPlayer.entry_id == QueueEntry.id)
            .where(
                QueueEntry.rotation_id == rotation_id,
                QueueEntry.status == "queued",
                QueueEntryPlayer.player_id.in_(list(player_ids)),
            )
            .with_for_update()
        )
    ).scalars().unique().all()
    return list(rows)


async def requeue_teams(
    session: AsyncSession,
    rotation_id: str,
    match_type: str,
    teams: Sequence[Sequence[str]],
) -> list[QueueEntry]:
    """Append one new queued entry per team, in team order.

    Used when a cancelled match sends its players back to the queue; the
    entries are fresh rows, never revivals of the consumed ones. Any entry
    those players joined while the match was running is superseded and
    marked ``removed``, so each player stays in at most one queued entry.
    """

    await lock_rotation(session, rotation_id)
    players = [pid for team in teams for pid in team]
    superseded = await _queued_entries_for_players(session, rotation_id, players)
    for entry in superseded:
        entry.status = "removed"
    if superseded:
        logger.info(
            "Requeue in rotation %s superseded %d queued entries",
            rotation_id,
            len(superseded),
        )
    position = await next_position(session, rotation_id)
    created: list[QueueEntry] = []
    for team in teams:
        if not team:
            continue
        entry = _new_entry(rotation_id, match_type, list(team), position)
        session.add(entry)
        created.append(entry)
        position += 1
    await session.flush()
    return created


async def reorder(
    session: AsyncSession, rotation_id: str, ordered_entry_ids: Sequence[str]
) -> list[QueueEntry]:
    """Rewrite positions of the supplied entries to their 1-based list index.

    Every rewritten entry switches to manual ordering. Entries left out keep
    their old position, which may now collide with a rewritten one;
    ``position`` is a sort key rather than a unique slot.
    """

    if not ordered_entry_ids:
        raise ValidationError("orderedEntryIds must not be empty", code="reorder_empty")
    if len(set(ordered_entry_ids)) != len(ordered_entry_ids):
        raise ValidationError(
            "orderedEntryIds must not repeat an entry", code="reorder_duplicate"
        )

    rows = (
        await session.execute(
            select(QueueEntry)
            .where(
                QueueEntry.id.in_(list(ordered_entry_ids)),
                QueueEntry.rotation_id == rotation_id,
                QueueEntry.status == "queued",
            )
            .with_for_update()
        )
    ).scalars().all()
    by_id = {entry.id: entry for entry in rows}
    missing = [eid for eid in ordered_entry_ids if eid not in by_id]
    if missing:
        raise NotFoundError(
            "queued entries not found: " + ", ".join(missing),
            code="queue_entry_not_found",
        )

    for index, entry_id in enumerate(ordered_entry_ids, start=1):
        entry = by_id[entry_id]
        entry.position = index
        entry.manual_order = True
    await session.flush()
    logger.info(
        "Reordered %d queue entries in rotation %s", len(ordered_entry_ids), rotation_id
    )
    return await list_queue(session, rotation_id)


async def remove(session: AsyncSession, rotation_id: str, entry_id: str) -> QueueEntry:
    """Take an entry out of the queue; repeating the call is harmless."""

    entry = (
        await session.execute(
            select(QueueEntry)
            .where(QueueEntry.id == entry_id, QueueEntry.rotation_id == rotation_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if entry is None:
        raise NotFoundError("queue entry not found", code="queue_entry_not_found")
    if entry.status == "removed":
        return entry
    if entry.status != "queued":
        raise ConflictError(
            f"queue entry is {entry.status}, not queued",
            code="queue_entry_not_queued",
        )
    entry.status = "removed"
    await session.flush()
    logger.info("Removed queue entry %s from rotation %s", entry_id, rotation_id)
    return entry


async def list_queue(
    session: AsyncSession, rotation_id: str, *, match_type: str | None = None
) -> list[QueueEntry]:
    stmt = select(QueueEntry).where(
        QueueEntry.rotation_id == rotation_id, QueueEntry.status == "queued"
    )
    if match_type is not None:
        stmt = stmt.where(QueueEntry.type == match_type)
    stmt = stmt.order_by(QueueEntry.position, QueueEntry.created_at)
    return list((await session.execute(stmt)).scalars().all())


async def assign_entries(
    session: AsyncSession, rotation_id: str, entry_ids: Sequence[str]
) -> list[QueueEntry]:
    """Mark explicitly consumed entries as ``assigned``."""

    unique_ids = list(dict.fromkeys(entry_ids))
    rows = (
        await session.execute(
            select(QueueEntry)
            .where(
                QueueEntry.id.in_(unique_ids),
                QueueEntry.rotation_id == rotation_id,
            )
            .with_for_update()
        )
    ).scalars().all()
    by_id = {entry.id: entry for entry in rows}
    missing = [eid for eid in unique_ids if eid not in by_id]
    if missing:
        raise NotFoundError(
            "queue entries not found: " + ", ".join(missing),
            code="queue_entry_not_found",
        )
    not_queued = [eid for eid in unique_ids if by_id[eid].status != "queued"]
    if not_queued:
        raise ConflictError(
            "queue entries are no longer queued: " + ", ".join(not_queued),
            code="queue_entry_not_queued",
        )
    for entry_id in unique_ids:
        by_id[entry_id].status = "assigned"
    return [by_id[eid] for eid in unique_ids]


async def assign_entries_for_players(
    session: AsyncSession, rotation_id: str, player_ids: Sequence[str]
) -> list[QueueEntry]:
    """Mark every queued entry holding any of ``player_ids`` as ``assigned``."""

    entry_ids = (
        await session.execute(
            select(QueueEntry.id)
            .join(QueueEntryPlayer, QueueEntryPlayer.entry_id == QueueEntry.id)
            .where(
                QueueEntry.rotation_id == rotation_id,
                QueueEntry.status == "queued",
                QueueEntryPlayer.player_id.in_(list(player_ids)),
            )
        )
    ).scalars().all()
    if not entry_ids:
        return []
    return await assign_entries(session, rotation_id, list(dict.fromkeys(entry_ids)))
