import pytest

from courtqueue.models import PlayerRotationStatus
from courtqueue.services.stats import rank_players, rotation_rankings, win_percentage


def test_win_percentage_handles_no_games():
    assert win_percentage(0, 0) == 0.0
    assert win_percentage(3, 4) == pytest.approx(0.75)


def test_rank_players_orders_by_win_pct_then_wins_then_games_then_name():
    ranked = rank_players(
        [
            ("a", "Zed", 2, 1, 1),
            ("b", "amy", 4, 2, 2),
            ("c", "Bob", 4, 2, 2),
            ("d", "Cat", 3, 3, 0),
            ("e", None, 0, 0, 0),
        ]
    )
    assert [p.player_id for p in ranked] == ["d", "b", "c", "a", "e"]
    assert [p.rank for p in ranked] == [1, 2, 3, 4, 5]
    assert ranked[0].win_pct == pytest.approx(1.0)
    assert ranked[-1].name == ""


@pytest.mark.anyio
async def test_rotation_rankings_reads_ledger_with_names(session, club):
    rows = {
        "p1": (3, 2, 1),
        "p2": (3, 3, 0),
    }
    for pid, (games, wins, losses) in rows.items():
        row = await session.get(PlayerRotationStatus, (club.rotation_id, pid))
        row.games_played = games
        row.wins = wins
        row.losses = losses
    await session.commit()

    ranked = await rotation_rankings(session, club.rotation_id)

    assert len(ranked) == len(club.player_ids)
    assert ranked[0].player_id == "p2"
    assert ranked[0].name == "Player 2"
    assert ranked[1].player_id == "p1"
    assert all(p.games_played == 0 for p in ranked[2:])
