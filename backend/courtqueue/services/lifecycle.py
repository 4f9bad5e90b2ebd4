"""Match lifecycle: start, end, cancel and result correction.

Every operation here runs inside the caller's transaction and only flushes;
the caller commits on success. If an operation raises, the caller must roll
the session back (``get_session`` does so on close), so a half-applied
transition is never persisted.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import TEAM_SIZES, Match, MatchParticipant, QueueEntry, Rotation
from ..time_utils import utcnow
from . import courts, ledger, queue

logger = logging.getLogger(__name__)

# Sentinel for "field not supplied", distinct from an explicit ``None``.
UNSET: Any = object()

WINNER_VALUES = (None, 1, 2)

# (previous winner, next winner) -> {team: (wins delta, losses delta)}.
# Corrections reverse the old result and apply the new one; the table holds
# the net effect so the symmetry of every case can be read off directly.
RESULT_TRANSITIONS: dict[tuple[Optional[int], Optional[int]], dict[int, tuple[int, int]]] = {
    (None, None): {},
    (1, 1): {},
    (2, 2): {},
    (None, 1): {1: (1, 0), 2: (0, 1)},
    (None, 2): {1: (0, 1), 2: (1, 0)},
    (1, None): {1: (-1, 0), 2: (0, -1)},
    (2, None): {1: (0, -1), 2: (-1, 0)},
    (1, 2): {1: (-1, 1), 2: (1, -1)},
    (2, 1): {1: (1, -1), 2: (-1, 1)},
}


def result_deltas(
    previous: Optional[int], new: Optional[int]
) -> dict[int, tuple[int, int]]:
    """Return the per-team ``(wins, losses)`` change for a result transition."""

    try:
        return RESULT_TRANSITIONS[(previous, new)]
    except KeyError:
        raise ValidationError(
            "winnerTeam must be 1, 2 or null", code="winner_team_invalid"
        ) from None


def _validate_winner(winner_team: Optional[int]) -> Optional[int]:
    if isinstance(winner_team, bool) or winner_team not in WINNER_VALUES:
        raise ValidationError("winnerTeam must be 1, 2 or null", code="winner_team_invalid")
    return winner_team


def validate_teams(match_type: str, teams: Sequence[Sequence[str]]) -> list[list[str]]:
    """Check there are two teams of the right size and no shared players."""

    if len(teams) != 2:
        raise ValidationError("a match needs exactly two teams", code="team_count_invalid")
    size = TEAM_SIZES[match_type]
    normalized: list[list[str]] = []
    for index, team in enumerate(teams, start=1):
        members = list(team)
        if len(members) != size:
            raise ValidationError(
                f"{match_type.title()} teams need {size} player(s); team {index} has {len(members)}",
                code="team_size_mismatch",
            )
        normalized.append(members)
    everyone = [pid for team in normalized for pid in team]
    if any(not pid for pid in everyone):
        raise ValidationError("player ids must not be empty", code="player_id_invalid")
    if len(set(everyone)) != len(everyone):
        raise ValidationError(
            "a player cannot appear twice in one match", code="duplicate_players"
        )
    return normalized


async def get_match(
    session: AsyncSession, match_id: str, *, for_update: bool = False
) -> Match:
    stmt = select(Match).where(Match.id == match_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    match = (await session.execute(stmt)).scalar_one_or_none()
    if match is None:
        raise NotFoundError("match not found", code="match_not_found")
    return match


async def _get_active_match(session: AsyncSession, match_id: str) -> Match:
    match = await get_match(session, match_id, for_update=True)
    if match.status != "active":
        raise ConflictError(
            f"match is {match.status}, not active", code="match_not_active"
        )
    return match


async def start_match(
    session: AsyncSession,
    rotation_id: str,
    court_occupancy_id: str,
    match_type: str,
    teams: Sequence[Sequence[str]],
    consumed_entry_ids: Optional[Sequence[str]] = None,
) -> Match:
    """Put two teams on a free court.

    Consumed queue entries are marked ``assigned``. Without explicit entry
    ids, any queued entry that shares a player with the match is consumed.
    """

    match_type = queue.normalize_match_type(match_type)
    team_lists = validate_teams(match_type, teams)

    occupancy = await courts.get_occupancy(
        session, rotation_id, court_occupancy_id, for_update=True
    )
    if occupancy.status != "available":
        raise ConflictError(
            f"court is {occupancy.status}, not available",
            code="court_not_available",
        )

    match_id = uuid.uuid4().hex
    match = Match(
        id=match_id,
        rotation_id=rotation_id,
        court_occupancy_id=occupancy.id,
        status="active",
        match_type=match_type,
        started_at=utcnow(),
        participants=[
            MatchParticipant(
                id=uuid.uuid4().hex,
                match_id=match_id,
                player_id=pid,
                team_number=team_number,
            )
            for team_number, team in enumerate(team_lists, start=1)
            for pid in team
        ],
    )
    session.add(match)
    await session.flush()

    await courts.occupy(session, occupancy, match_id)

    if consumed_entry_ids:
        await queue.assign_entries(session, rotation_id, consumed_entry_ids)
    else:
        await queue.assign_entries_for_players(
            session, rotation_id, [pid for team in team_lists for pid in team]
        )

    await session.flush()
    logger.info(
        "Started %s match %s on court occupancy %s in rotation %s",
        match_type,
        match_id,
        occupancy.id,
        rotation_id,
    )
    return match


async def end_match(
    session: AsyncSession,
    match_id: str,
    score: Any = None,
    winner_team: Optional[int] = None,
) -> Match:
    """Finish an active match and credit its players.

    Players go back to ``checked_in`` but are not re-queued.
    """

    winner_team = _validate_winner(winner_team)
    match = await _get_active_match(session, match_id)

    now = utcnow()
    match.status = "ended"
    match.ended_at = now
    if score is not None:
        match.score = score
    match.winner_team = winner_team

    await courts.release(session, match.court_occupancy_id)

    teams = {1: match.team(1), 2: match.team(2)}
    rows = await ledger.record_games(
        session, match.rotation_id, teams[1] + teams[2], now
    )
    ledger.apply_result_deltas(rows, teams, result_deltas(None, winner_team))

    await session.flush()
    logger.info(
        "Ended match %s in rotation %s (winner=%s)",
        match_id,
        match.rotation_id,
        winner_team,
    )
    return match


async def cancel_match(session: AsyncSession, match_id: str) -> tuple[Match, list[QueueEntry]]:
    """Abandon an active match, optionally sending both teams back to the queue.

    Returns the match and any queue entries created for the returning teams.
    """

    match = await _get_active_match(session, match_id)
    rotation = await session.get(Rotation, match.rotation_id)
    if rotation is None:
        raise NotFoundError("rotation not found", code="rotation_not_found")

    match.status = "cancelled"
    match.ended_at = utcnow()
    await courts.release(session, match.court_occupancy_id)

    requeued: list[QueueEntry] = []
    if rotation.return_to_queue:
        requeued = await queue.requeue_teams(
            session,
            match.rotation_id,
            match.match_type,
            [match.team(1), match.team(2)],
        )

    await session.flush()
    logger.info(
        "Cancelled match %s in rotation %s (%d entries requeued)",
        match_id,
        match.rotation_id,
        len(requeued),
    )
    return match, requeued


async def correct_result(
    session: AsyncSession,
    match_id: str,
    score: Any = UNSET,
    winner_team: Any = UNSET,
) -> Match:
    """Amend the recorded score and/or winner of an ended match.

    Only supplied fields change. An explicit ``winner_team=None`` clears the
    winner and reverses the old win/loss deltas.
    """

    if winner_team is not UNSET:
        winner_team = _validate_winner(winner_team)

    match = await get_match(session, match_id, for_update=True)
    if match.status != "ended":
        raise ConflictError(
            f"match is {match.status}; only ended matches can be corrected",
            code="match_not_ended",
        )

    if score is not UNSET:
        match.score = score

    if winner_team is not UNSET:
        previous = match.winner_team
        deltas = result_deltas(previous, winner_team)
        if deltas:
            teams = {1: match.team(1), 2: match.team(2)}
            rows = await ledger.get_statuses(
                session, match.rotation_id, teams[1] + teams[2], for_update=True
            )
            ledger.apply_result_deltas(rows, teams, deltas)
        match.winner_team = winner_team
        logger.info(
            "Corrected match %s winner %s -> %s", match_id, previous, winner_team
        )

    await session.flush()
    return match


async def match_history(session: AsyncSession, rotation_id: str) -> list[Match]:
    """Finished (ended or cancelled) matches of a rotation, newest first."""

    rows = (
        await session.execute(
            select(Match)
            .where(
                Match.rotation_id == rotation_id,
                Match.status.in_(("ended", "cancelled")),
            )
            .order_by(Match.ended_at.desc(), Match.id)
        )
    ).scalars().all()
    return list(rows)
