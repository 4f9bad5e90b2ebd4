"""Fairness scoring for queued entries (pure helpers, no I/O)."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..config import NEVER_PLAYED_REST_MINUTES
from ..time_utils import minutes_between


def rest_anchor(last_played: Iterable[Optional[datetime]]) -> Optional[datetime]:
    """Return the timestamp an entry's rest time is measured from.

    ``None`` means at least one player has never played, which earns the
    never-played credit. Otherwise the earliest ``lastPlayedAt`` wins, so the
    entry counts as rested as its longest-idle member.
    """

    times = list(last_played)
    if not times or any(t is None for t in times):
        return None
    return min(times)


def fairness_score(
    now: datetime,
    queued_at: datetime,
    last_played_at: Optional[datetime],
    *,
    never_played_minutes: float = NEVER_PLAYED_REST_MINUTES,
) -> float:
    """Score how "due" an entry is; higher plays sooner.

    ``score = wait minutes since queueing + rest minutes since last play``.
    Both terms are clamped at zero, so the score never decreases as either
    the wait or the rest grows.
    """

    wait_minutes = minutes_between(now, queued_at)
    if last_played_at is None:
        rest_minutes = never_played_minutes
    else:
        rest_minutes = minutes_between(now, last_played_at)
    return wait_minutes + rest_minutes


def entry_score(
    now: datetime,
    queued_at: datetime,
    last_played: Iterable[Optional[datetime]],
) -> float:
    """Fairness score for an entry given each member's ``lastPlayedAt``."""

    return fairness_score(now, queued_at, rest_anchor(last_played))
