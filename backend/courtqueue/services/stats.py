from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Player, PlayerRotationStatus


@dataclass
class RankedPlayer:
    player_id: str
    name: str
    games_played: int
    wins: int
    losses: int
    win_pct: float
    rank: int = 0


def win_percentage(wins: int, games_played: int) -> float:
    """Return ``wins / games_played``, or ``0.0`` before the first game."""
    if games_played <= 0:
        return 0.0
    return wins / games_played


def rank_players(
    rows: Iterable[tuple[str, Optional[str], int, int, int]],
) -> list[RankedPlayer]:
    """Rank players by win %, then wins, then games played, then name.

    Args:
        rows: iterable of ``(player_id, name, games_played, wins, losses)``.
    Returns:
        Players in rank order with a 1-based ``rank``.
    """
    players = [
        RankedPlayer(
            player_id=pid,
            name=name or "",
            games_played=games or 0,
            wins=wins or 0,
            losses=losses or 0,
            win_pct=win_percentage(wins or 0, games or 0),
        )
        for pid, name, games, wins, losses in rows
    ]
    players.sort(
        key=lambda p: (-p.win_pct, -p.wins, -p.games_played, p.name.casefold())
    )
    for index, player in enumerate(players, start=1):
        player.rank = index
    return players


async def rotation_rankings(
    session: AsyncSession, rotation_id: str
) -> list[RankedPlayer]:
    """Rankings of every player with a ledger row in the rotation."""
    rows = (
        await session.execute(
            select(
                PlayerRotationStatus.player_id,
                Player.full_name,
                PlayerRotationStatus.games_played,
                PlayerRotationStatus.wins,
                PlayerRotationStatus.losses,
            )
            .join(Player, Player.id == PlayerRotationStatus.player_id, isouter=True)
            .where(PlayerRotationStatus.rotation_id == rotation_id)
        )
    ).all()
    return rank_players(tuple(row) for row in rows)
