import httpx
import pytest

from courtqueue import db
from courtqueue.config import API_PREFIX
from courtqueue.main import app
from courtqueue.models import Court, Player, User
from courtqueue.routers.auth import get_current_user

BASE = f"{API_PREFIX}/v0"


@pytest.fixture
async def client(session_maker):
    current = {"user": None}

    async def _session_override():
        async with session_maker() as session:
            yield session

    async def _user_override():
        return current["user"]

    app.dependency_overrides[db.get_session] = _session_override
    app.dependency_overrides[get_current_user] = _user_override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.as_user = lambda user: current.__setitem__("user", user)
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def people(session):
    admin = User(id="admin", username="admin", role="admin")
    staff = User(id="desk", username="desk", role="staff", owner_id="admin")
    outsider = User(id="other", username="other", role="admin")
    session.add_all([admin, staff, outsider])
    session.add_all(
        Player(id=f"p{i}", full_name=f"Player {i}", created_by="admin")
        for i in range(1, 7)
    )
    await session.commit()
    return admin, staff, outsider


async def _open_rotation(client):
    resp = await client.post(f"{BASE}/courts", json={"name": "Court 1"})
    assert resp.status_code == 200
    resp = await client.post(f"{BASE}/rotations", json={"name": "Friday Social"})
    assert resp.status_code == 200
    rotation = resp.json()
    assert rotation["status"] == "draft"
    resp = await client.post(f"{BASE}/rotations/{rotation['id']}/open")
    assert resp.status_code == 200
    assert resp.json()["status"] == "open"
    return rotation["id"]


@pytest.mark.anyio
async def test_full_match_flow(client, people):
    admin, staff, _ = people
    client.as_user(admin)
    rid = await _open_rotation(client)

    client.as_user(staff)
    for pid in ("p1", "p2", "p3", "p4"):
        resp = await client.post(f"{BASE}/players/{pid}/checkin", json={"rotationId": rid})
        assert resp.status_code == 200
        assert resp.json()["status"] == "checked_in"
        assert resp.json()["isNewPlayer"] is True

    first = await client.post(
        f"{BASE}/queue/{rid}/enqueue", json={"type": "doubles", "playerIds": ["p1", "p2"]}
    )
    second = await client.post(
        f"{BASE}/queue/{rid}/enqueue", json={"type": "doubles", "playerIds": ["p3", "p4"]}
    )
    assert first.status_code == second.status_code == 200

    resp = await client.post(f"{BASE}/matches/{rid}/suggest", json={"matchType": "doubles"})
    assert resp.status_code == 200
    suggestion = resp.json()
    assert sorted(suggestion["entryIds"]) == sorted([first.json()["id"], second.json()["id"]])

    board = (await client.get(f"{BASE}/rotations/{rid}/board")).json()
    occupancy_id = board["courts"][0]["id"]
    assert board["courts"][0]["status"] == "available"

    start_body = {
        "courtOccupancyId": occupancy_id,
        "matchType": "doubles",
        "teams": suggestion["teams"],
        "entryIds": suggestion["entryIds"],
    }
    resp = await client.post(f"{BASE}/matches/{rid}/start", json=start_body)
    assert resp.status_code == 200
    match_id = resp.json()["matchId"]

    resp = await client.post(f"{BASE}/matches/{rid}/start", json=start_body)
    assert resp.status_code == 409
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["code"] == "court_not_available"

    board = (await client.get(f"{BASE}/rotations/{rid}/board")).json()
    assert board["courts"][0]["status"] == "in_match"
    assert board["courts"][0]["currentMatch"]["id"] == match_id
    assert (await client.get(f"{BASE}/queue/{rid}")).json() == []

    winners = suggestion["teams"][0]
    resp = await client.post(
        f"{BASE}/matches/{rid}/end",
        json={"matchId": match_id, "score": {"points": [21, 17]}, "winnerTeam": 1},
    )
    assert resp.status_code == 200

    rankings = (await client.get(f"{BASE}/rotations/{rid}/rankings")).json()
    assert rankings["totalPlayers"] == 4
    assert {p["playerId"] for p in rankings["players"][:2]} == set(winners)
    assert rankings["players"][0]["winPct"] == 1.0

    resp = await client.post(
        f"{BASE}/matches/{rid}/correct", json={"matchId": match_id, "winnerTeam": None}
    )
    assert resp.status_code == 200
    assert resp.json()["winnerTeam"] is None
    assert resp.json()["score"] == {"points": [21, 17]}

    players = (await client.get(f"{BASE}/rotations/{rid}/players")).json()
    assert all(p["gamesPlayed"] == 1 and p["wins"] == 0 for p in players)

    history = (await client.get(f"{BASE}/matches/{rid}/history")).json()
    assert [m["id"] for m in history] == [match_id]
    detail = (await client.get(f"{BASE}/matches/detail/{match_id}")).json()
    assert detail["status"] == "ended"
    assert len(detail["participants"]) == 4


@pytest.mark.anyio
async def test_cancel_route_requeues(client, people):
    admin, _, _ = people
    client.as_user(admin)
    rid = await _open_rotation(client)
    occupancy_id = (await client.get(f"{BASE}/rotations/{rid}/board")).json()["courts"][0]["id"]

    resp = await client.post(
        f"{BASE}/matches/{rid}/start",
        json={"courtOccupancyId": occupancy_id, "matchType": "singles", "teams": [["p1"], ["p2"]]},
    )
    match_id = resp.json()["matchId"]

    resp = await client.post(f"{BASE}/matches/{rid}/cancel", json={"matchId": match_id})
    assert resp.status_code == 200
    requeued = resp.json()["requeuedEntryIds"]
    assert len(requeued) == 2
    queue = (await client.get(f"{BASE}/queue/{rid}")).json()
    assert [e["id"] for e in queue] == requeued
    assert [e["playerIds"] for e in queue] == [["p1"], ["p2"]]


@pytest.mark.anyio
async def test_queue_routes_validate_and_reorder(client, people):
    admin, _, _ = people
    client.as_user(admin)
    rid = await _open_rotation(client)

    resp = await client.post(
        f"{BASE}/queue/{rid}/enqueue", json={"type": "doubles", "playerIds": ["p1"]}
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "player_count_mismatch"

    ids = []
    for pid in ("p1", "p2", "p3"):
        resp = await client.post(
            f"{BASE}/queue/{rid}/enqueue", json={"type": "singles", "playerIds": [pid]}
        )
        ids.append(resp.json()["id"])

    resp = await client.post(
        f"{BASE}/queue/{rid}/enqueue", json={"type": "singles", "playerIds": ["p2"]}
    )
    assert resp.status_code == 409

    resp = await client.post(
        f"{BASE}/queue/{rid}/reorder", json={"orderedEntryIds": [ids[2], ids[0], ids[1]]}
    )
    assert resp.status_code == 200
    assert [e["id"] for e in resp.json()] == [ids[2], ids[0], ids[1]]
    assert all(e["manualOrder"] for e in resp.json())

    resp = await client.post(f"{BASE}/queue/{rid}/away", json={"entryId": ids[0]})
    assert resp.json()["status"] == "removed"
    resp = await client.post(f"{BASE}/queue/{rid}/dequeue", json={"entryId": ids[0]})
    assert resp.status_code == 200
    assert [e["id"] for e in (await client.get(f"{BASE}/queue/{rid}")).json()] == [
        ids[2],
        ids[1],
    ]


@pytest.mark.anyio
async def test_queue_requires_open_rotation(client, people):
    admin, _, _ = people
    client.as_user(admin)
    resp = await client.post(f"{BASE}/rotations", json={"name": "Draft"})
    rid = resp.json()["id"]

    resp = await client.post(
        f"{BASE}/queue/{rid}/enqueue", json={"type": "singles", "playerIds": ["p1"]}
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "rotation_not_open"


@pytest.mark.anyio
async def test_rotations_are_scoped_to_owner(client, people):
    admin, _, outsider = people
    client.as_user(admin)
    rid = await _open_rotation(client)

    client.as_user(outsider)
    resp = await client.get(f"{BASE}/queue/{rid}")
    assert resp.status_code == 404
    assert resp.json()["code"] == "rotation_not_found"
    assert (await client.get(f"{BASE}/rotations")).json() == []


@pytest.mark.anyio
async def test_staff_cannot_manage_rotations(client, people):
    _, staff, _ = people
    client.as_user(staff)
    resp = await client.post(f"{BASE}/rotations", json={"name": "Nope"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "auth_forbidden"


@pytest.mark.anyio
async def test_suggest_without_enough_players_is_404(client, people):
    admin, _, _ = people
    client.as_user(admin)
    rid = await _open_rotation(client)
    resp = await client.post(f"{BASE}/matches/{rid}/suggest", json={"matchType": "singles"})
    assert resp.status_code == 404
    assert resp.json()["code"] == "suggestion_unavailable"


@pytest.mark.anyio
async def test_court_status_and_checkout_routes(client, people):
    admin, _, _ = people
    client.as_user(admin)
    rid = await _open_rotation(client)
    court_id = (await client.get(f"{BASE}/courts")).json()[0]["id"]

    resp = await client.post(
        f"{BASE}/courts/{court_id}/status", json={"rotationId": rid, "status": "maintenance"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "maintenance"
    resp = await client.post(
        f"{BASE}/courts/{court_id}/status", json={"rotationId": rid, "status": "in_match"}
    )
    assert resp.status_code == 400

    resp = await client.post(
        f"{BASE}/players/p1/checkout", json={"rotationId": rid, "status": "away"}
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "player_not_checked_in"
    await client.post(f"{BASE}/players/p1/checkin", json={"rotationId": rid})
    resp = await client.post(
        f"{BASE}/players/p1/checkout", json={"rotationId": rid, "status": "done"}
    )
    assert resp.json()["status"] == "done"


@pytest.mark.anyio
async def test_bracket_overrides_are_logged(client, people):
    admin, _, _ = people
    client.as_user(admin)
    rid = await _open_rotation(client)

    resp = await client.post(
        f"{BASE}/rotations/{rid}/overrides", json={"key": "seed:p1", "value": {"seed": 1}}
    )
    assert resp.status_code == 200
    assert resp.json()["createdBy"] == "admin"
    await client.post(f"{BASE}/rotations/{rid}/overrides", json={"key": "bye", "value": "p2"})

    rows = (await client.get(f"{BASE}/rotations/{rid}/overrides")).json()
    assert [r["key"] for r in rows] == ["seed:p1", "bye"]
    rows = (await client.get(f"{BASE}/rotations/{rid}/overrides", params={"key": "bye"})).json()
    assert [r["value"] for r in rows] == ["p2"]
