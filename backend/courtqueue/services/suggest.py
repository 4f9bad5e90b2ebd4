"""Match suggester: pick the next two queue entries to play."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import PlayerRotationStatus, QueueEntry
from ..time_utils import coerce_utc, utcnow
from .fairness import entry_score
from .ledger import get_statuses
from .queue import list_queue, normalize_match_type


@dataclass
class Suggestion:
    match_type: str
    teams: list[list[str]]
    entry_ids: list[str]


def eligible_entries(
    entries: Sequence[QueueEntry], statuses: dict[str, PlayerRotationStatus]
) -> list[QueueEntry]:
    """Keep entries whose every player is currently checked in."""

    eligible = []
    for entry in entries:
        player_ids = entry.player_ids
        if not player_ids:
            continue
        if all(
            pid in statuses and statuses[pid].status == "checked_in"
            for pid in player_ids
        ):
            eligible.append(entry)
    return eligible


def order_entries(
    entries: Sequence[QueueEntry],
    statuses: dict[str, PlayerRotationStatus],
    now: datetime,
) -> list[QueueEntry]:
    """Order eligible entries for play.

    A single manually ordered entry switches the whole set to position order;
    otherwise the most due entry (highest fairness score) goes first and ties
    go to whoever queued earlier.
    """

    if any(entry.manual_order for entry in entries):
        return sorted(entries, key=lambda entry: entry.position)

    def _sort_key(entry: QueueEntry):
        last_played = [
            coerce_utc(statuses[pid].last_played_at) for pid in entry.player_ids
        ]
        score = entry_score(now, coerce_utc(entry.created_at), last_played)
        return (-score, coerce_utc(entry.created_at))

    return sorted(entries, key=_sort_key)


async def suggest_match(
    session: AsyncSession,
    rotation_id: str,
    match_type: str,
    *,
    now: datetime | None = None,
) -> Optional[Suggestion]:
    """Propose the next match of ``match_type``, or ``None`` if too few are ready.

    Nothing is mutated; starting the match is a separate call.
    """

    match_type = normalize_match_type(match_type)
    entries = await list_queue(session, rotation_id, match_type=match_type)
    if len(entries) < 2:
        return None

    player_ids = {pid for entry in entries for pid in entry.player_ids}
    statuses = await get_statuses(session, rotation_id, player_ids)
    eligible = eligible_entries(entries, statuses)
    if len(eligible) < 2:
        return None

    first, second = order_entries(eligible, statuses, now or utcnow())[:2]
    return Suggestion(
        match_type=match_type,
        teams=[first.player_ids, second.player_ids],
        entry_ids=[first.id, second.id],
    )
