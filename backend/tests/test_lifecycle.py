import pytest
from sqlalchemy import select

from courtqueue.exceptions import ConflictError, NotFoundError, ValidationError
from courtqueue.models import CourtOccupancy, PlayerRotationStatus
from courtqueue.services import lifecycle, queue
from courtqueue.services.lifecycle import RESULT_TRANSITIONS, result_deltas


async def _ledger(session, rid):
    rows = (
        await session.execute(
            select(PlayerRotationStatus).where(PlayerRotationStatus.rotation_id == rid)
        )
    ).scalars().all()
    return {r.player_id: (r.games_played, r.wins, r.losses) for r in rows}


async def _doubles(session, club, *, entry_ids=True):
    rid = club.rotation_id
    a = await queue.enqueue(session, rid, "doubles", ["p1", "p2"])
    b = await queue.enqueue(session, rid, "doubles", ["p3", "p4"])
    match = await lifecycle.start_match(
        session,
        rid,
        club.occupancies[0].id,
        "doubles",
        [["p1", "p2"], ["p3", "p4"]],
        [a.id, b.id] if entry_ids else None,
    )
    await session.commit()
    return match, a, b


def test_result_transitions_are_symmetric():
    for (previous, new), deltas in RESULT_TRANSITIONS.items():
        assert RESULT_TRANSITIONS[(new, previous)] == {
            team: (-w, -l) for team, (w, l) in deltas.items()
        }


def test_result_deltas_rejects_unknown_winner():
    with pytest.raises(ValidationError):
        result_deltas(None, 3)


@pytest.mark.anyio
async def test_start_occupies_court_and_consumes_entries(session, club):
    match, a, b = await _doubles(session, club)

    occupancy = await session.get(CourtOccupancy, club.occupancies[0].id)
    assert match.status == "active"
    assert occupancy.status == "in_match"
    assert occupancy.current_match_id == match.id
    assert a.status == b.status == "assigned"
    assert match.team(1) == ["p1", "p2"]
    assert match.team(2) == ["p3", "p4"]


@pytest.mark.anyio
async def test_second_start_on_same_court_conflicts(session, club):
    busy_id, free_id = (o.id for o in club.occupancies)
    first, _, _ = await _doubles(session, club)
    first_id = first.id

    with pytest.raises(ConflictError) as exc:
        await lifecycle.start_match(
            session,
            club.rotation_id,
            busy_id,
            "doubles",
            [["p5", "p6"], ["p7", "p8"]],
        )
    assert exc.value.code == "court_not_available"
    await session.rollback()

    busy = await session.get(CourtOccupancy, busy_id)
    assert busy.status == "in_match"
    assert busy.current_match_id == first_id

    other = await lifecycle.start_match(
        session,
        club.rotation_id,
        free_id,
        "doubles",
        [["p5", "p6"], ["p7", "p8"]],
    )
    await session.commit()
    assert other.court_occupancy_id == free_id


@pytest.mark.anyio
@pytest.mark.parametrize(
    "match_type, teams",
    [
        ("doubles", [["p1", "p2"], ["p3"]]),
        ("singles", [["p1", "p2"], ["p3", "p4"]]),
        ("singles", [["p1"], ["p1"]]),
        ("singles", [["p1"]]),
    ],
)
async def test_start_validates_teams(session, club, match_type, teams):
    with pytest.raises(ValidationError):
        await lifecycle.start_match(
            session, club.rotation_id, club.occupancies[0].id, match_type, teams
        )
    occupancy = await session.get(CourtOccupancy, club.occupancies[0].id)
    assert occupancy.status == "available"


@pytest.mark.anyio
async def test_start_on_unknown_court_is_not_found(session, club):
    with pytest.raises(NotFoundError):
        await lifecycle.start_match(
            session, club.rotation_id, "missing", "singles", [["p1"], ["p2"]]
        )


@pytest.mark.anyio
async def test_start_with_stale_entry_rolls_back(session, club):
    rid = club.rotation_id
    occupancy_id = club.occupancies[0].id
    entry = await queue.enqueue(session, rid, "singles", ["p1"])
    await queue.remove(session, rid, entry.id)
    await session.commit()
    entry_id = entry.id

    with pytest.raises(ConflictError):
        await lifecycle.start_match(
            session, rid, occupancy_id, "singles", [["p1"], ["p2"]], [entry_id]
        )
    await session.rollback()

    occupancy = await session.get(CourtOccupancy, occupancy_id)
    await session.refresh(occupancy)
    assert occupancy.status == "available"
    assert occupancy.current_match_id is None


@pytest.mark.anyio
async def test_start_without_entry_ids_consumes_entries_of_players(session, club):
    rid = club.rotation_id
    untouched = await queue.enqueue(session, rid, "doubles", ["p5", "p6"])
    match, a, b = await _doubles(session, club, entry_ids=False)

    assert a.status == b.status == "assigned"
    assert untouched.status == "queued"
    assert [e.id for e in await queue.list_queue(session, rid)] == [untouched.id]


@pytest.mark.anyio
async def test_end_records_games_and_frees_court(session, club):
    match, _, _ = await _doubles(session, club)

    ended = await lifecycle.end_match(
        session, match.id, score={"sets": [[6, 3], [6, 4]]}, winner_team=1
    )
    await session.commit()

    assert ended.status == "ended"
    assert ended.ended_at is not None
    assert ended.winner_team == 1
    assert ended.score == {"sets": [[6, 3], [6, 4]]}
    occupancy = await session.get(CourtOccupancy, club.occupancies[0].id)
    assert occupancy.status == "available"
    assert occupancy.current_match_id is None

    stats = await _ledger(session, club.rotation_id)
    assert stats["p1"] == stats["p2"] == (1, 1, 0)
    assert stats["p3"] == stats["p4"] == (1, 0, 1)
    assert stats["p5"] == (0, 0, 0)

    row = await session.get(PlayerRotationStatus, (club.rotation_id, "p1"))
    assert row.status == "checked_in"
    assert row.last_played_at is not None
    # Ending does not put anyone back in the queue.
    assert await queue.list_queue(session, club.rotation_id) == []


@pytest.mark.anyio
async def test_end_without_winner_counts_games_only(session, club):
    match = await lifecycle.start_match(
        session, club.rotation_id, club.occupancies[0].id, "singles", [["p1"], ["p2"]]
    )
    await lifecycle.end_match(session, match.id)
    await session.commit()

    stats = await _ledger(session, club.rotation_id)
    assert stats["p1"] == stats["p2"] == (1, 0, 0)


@pytest.mark.anyio
async def test_end_creates_ledger_row_for_unknown_player(session, club):
    match = await lifecycle.start_match(
        session, club.rotation_id, club.occupancies[0].id, "singles", [["p1"], ["walk-in"]]
    )
    await lifecycle.end_match(session, match.id, winner_team=2)
    await session.commit()

    stats = await _ledger(session, club.rotation_id)
    assert stats["walk-in"] == (1, 1, 0)
    row = await session.get(PlayerRotationStatus, (club.rotation_id, "walk-in"))
    assert row.is_new_player is True


@pytest.mark.anyio
async def test_ending_twice_conflicts(session, club):
    match, _, _ = await _doubles(session, club)
    await lifecycle.end_match(session, match.id, winner_team=2)
    await session.commit()

    with pytest.raises(ConflictError) as exc:
        await lifecycle.end_match(session, match.id, winner_team=1)
    assert exc.value.code == "match_not_active"
    with pytest.raises(ConflictError):
        await lifecycle.cancel_match(session, match.id)


@pytest.mark.anyio
async def test_cancel_requeues_teams_behind_existing_entries(session, club):
    rid = club.rotation_id
    waiting = await queue.enqueue(session, rid, "doubles", ["p5", "p6"])
    match, a, b = await _doubles(session, club)

    cancelled, requeued = await lifecycle.cancel_match(session, match.id)
    await session.commit()

    assert cancelled.status == "cancelled"
    assert [e.player_ids for e in requeued] == [["p1", "p2"], ["p3", "p4"]]
    assert requeued[0].position < requeued[1].position
    assert requeued[0].position > b.position > waiting.position
    assert {e.id for e in requeued}.isdisjoint({a.id, b.id})
    assert a.status == b.status == "assigned"

    queued = await queue.list_queue(session, rid)
    assert [e.id for e in queued] == [waiting.id] + [e.id for e in requeued]

    occupancy = await session.get(CourtOccupancy, club.occupancies[0].id)
    assert occupancy.status == "available"
    # A cancelled game is not played.
    stats = await _ledger(session, rid)
    assert stats["p1"] == (0, 0, 0)


@pytest.mark.anyio
async def test_cancel_requeue_supersedes_entries_joined_mid_match(session, club):
    rid = club.rotation_id
    match, a, b = await _doubles(session, club)
    # p1 queued for singles while the doubles match was running.
    solo = await queue.enqueue(session, rid, "singles", ["p1"])
    await session.commit()

    _, requeued = await lifecycle.cancel_match(session, match.id)
    await session.commit()

    assert solo.status == "removed"
    assert a.status == b.status == "assigned"
    queued = await queue.list_queue(session, rid)
    assert [e.id for e in queued] == [e.id for e in requeued]
    for pid in ("p1", "p2", "p3", "p4"):
        holders = [e for e in queued if pid in e.player_ids]
        assert len(holders) == 1


@pytest.mark.anyio
async def test_cancel_without_return_to_queue(session, club):
    club.rotation.return_to_queue = False
    await session.commit()
    match, _, _ = await _doubles(session, club)

    _, requeued = await lifecycle.cancel_match(session, match.id)
    await session.commit()

    assert requeued == []
    assert await queue.list_queue(session, club.rotation_id) == []


@pytest.mark.anyio
async def test_correction_round_trip_restores_totals(session, club):
    match, _, _ = await _doubles(session, club)
    await lifecycle.end_match(session, match.id, winner_team=1)
    await session.commit()
    original = await _ledger(session, club.rotation_id)

    await lifecycle.correct_result(session, match.id, winner_team=2)
    await session.commit()
    flipped = await _ledger(session, club.rotation_id)
    assert flipped["p1"] == flipped["p2"] == (1, 0, 1)
    assert flipped["p3"] == flipped["p4"] == (1, 1, 0)

    await lifecycle.correct_result(session, match.id, winner_team=1)
    await session.commit()
    assert await _ledger(session, club.rotation_id) == original


@pytest.mark.anyio
async def test_correction_to_no_winner_reverses_result(session, club):
    match, _, _ = await _doubles(session, club)
    await lifecycle.end_match(session, match.id, score={"points": [21, 15]}, winner_team=2)
    await session.commit()

    corrected = await lifecycle.correct_result(session, match.id, winner_team=None)
    await session.commit()

    assert corrected.winner_team is None
    assert corrected.score == {"points": [21, 15]}
    stats = await _ledger(session, club.rotation_id)
    for pid in ("p1", "p2", "p3", "p4"):
        assert stats[pid] == (1, 0, 0)


@pytest.mark.anyio
async def test_correction_of_score_only_keeps_winner(session, club):
    match, _, _ = await _doubles(session, club)
    await lifecycle.end_match(session, match.id, winner_team=1)
    await session.commit()
    before = await _ledger(session, club.rotation_id)

    corrected = await lifecycle.correct_result(session, match.id, score={"points": [21, 19]})
    await session.commit()

    assert corrected.winner_team == 1
    assert corrected.score == {"points": [21, 19]}
    assert await _ledger(session, club.rotation_id) == before


@pytest.mark.anyio
async def test_only_ended_matches_can_be_corrected(session, club):
    match, _, _ = await _doubles(session, club)
    with pytest.raises(ConflictError) as exc:
        await lifecycle.correct_result(session, match.id, winner_team=1)
    assert exc.value.code == "match_not_ended"

    with pytest.raises(NotFoundError):
        await lifecycle.correct_result(session, "missing", winner_team=1)


@pytest.mark.anyio
async def test_history_lists_finished_matches(session, club):
    first, _, _ = await _doubles(session, club)
    await lifecycle.end_match(session, first.id, winner_team=1)
    second = await lifecycle.start_match(
        session, club.rotation_id, club.occupancies[1].id, "singles", [["p5"], ["p6"]]
    )
    await lifecycle.cancel_match(session, second.id)
    active = await lifecycle.start_match(
        session, club.rotation_id, club.occupancies[0].id, "singles", [["p7"], ["p8"]]
    )
    await session.commit()

    history = await lifecycle.match_history(session, club.rotation_id)
    ids = {m.id for m in history}
    assert ids == {first.id, second.id}
    assert active.id not in ids
