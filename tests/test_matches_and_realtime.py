import asyncio
from datetime import datetime

from fastapi.testclient import TestClient

from fiesta.main import app
from fiesta.models import Match, MatchStatus, Team
from fiesta.realtime.active_users import ActiveUserCounter
from fiesta.realtime.hub import RealtimeHub
from tests.conftest import auth_header, seed


def _match(home, away, number=1, **fields):
    return seed(Match(
        match_number=number,
        home_team_id=home.id,
        away_team_id=away.id,
        scheduled_time=datetime(2026, 11, 1, 9, 0),
        **fields,
    ))


def test_create_match_takes_next_number(admin):
    home, away = seed(Team(name="Strikers"), Team(name="Titans"))
    _match(home, away, number=7)

    with TestClient(app) as client:
        response = client.post(
            "/api/matches/",
            json={
                "home_team_id": home.id,
                "away_team_id": away.id,
                "scheduled_time": "2026-11-02T10:00:00",
                "venue": "Ground 2",
            },
            headers=auth_header(admin),
        )
        same_team = client.post(
            "/api/matches/",
            json={"home_team_id": home.id, "away_team_id": home.id, "scheduled_time": "2026-11-02T10:00:00"},
            headers=auth_header(admin),
        )

    assert response.status_code == 201
    assert response.json()["data"]["match_number"] == 8
    assert response.json()["data"]["status"] == "UPCOMING"
    assert same_team.status_code == 400


def test_match_writes_need_an_admin(member):
    home, away = seed(Team(name="Strikers"), Team(name="Titans"))
    match = _match(home, away)

    with TestClient(app) as client:
        anonymous = client.post(f"/api/matches/{match.id}/start")
        as_member = client.post(f"/api/matches/{match.id}/start", headers=auth_header(member))
        public_read = client.get(f"/api/matches/{match.id}")

    assert anonymous.status_code == 401
    assert as_member.status_code == 403
    assert public_read.status_code == 200
    assert public_read.json()["data"]["home_team"]["name"] == "Strikers"


def test_match_lifecycle_and_filters(admin):
    home, away, other = seed(Team(name="Strikers"), Team(name="Titans"), Team(name="Royals"))
    match = _match(home, away)
    _match(away, other, number=2)
    headers = auth_header(admin)

    with TestClient(app) as client:
        started = client.post(f"/api/matches/{match.id}/start", headers=headers)
        live = client.get("/api/matches/", params={"status": "LIVE"})
        wrong_winner = client.post(f"/api/matches/{match.id}/end", json={"winner_id": other.id}, headers=headers)
        ended = client.post(
            f"/api/matches/{match.id}/end",
            json={"winner_id": away.id, "result": "Titans won by 4 wickets"},
            headers=headers,
        )
        restart = client.post(f"/api/matches/{match.id}/start", headers=headers)
        re_end = client.post(f"/api/matches/{match.id}/end", json={"winner_id": home.id}, headers=headers)
        for_royals = client.get("/api/matches/", params={"team_id": other.id})

    assert started.json()["data"]["status"] == "LIVE"
    assert started.json()["data"]["actual_start_time"] is not None
    assert live.json()["count"] == 1
    assert wrong_winner.status_code == 400
    assert ended.json()["data"]["status"] == "COMPLETED"
    assert ended.json()["data"]["winner_id"] == away.id
    assert restart.status_code == 400
    assert re_end.status_code == 409
    assert [m["match_number"] for m in for_royals.json()["data"]] == [2]


def test_score_update_reaches_room_subscribers(admin):
    home, away = seed(Team(name="Strikers"), Team(name="Titans"))
    match = _match(home, away, status=MatchStatus.LIVE)

    with TestClient(app) as client:
        with client.websocket_connect("/ws") as websocket:
            greeting = websocket.receive_json()
            websocket.send_json({"action": "subscribe", "room": f"match:{match.id}"})
            ack = websocket.receive_json()

            response = client.post(
                f"/api/matches/{match.id}/score",
                json={"home_score": "87/3 (9.2)"},
                headers=auth_header(admin),
            )
            events = [websocket.receive_json(), websocket.receive_json()]

            websocket.send_json({"action": "dance"})
            error = websocket.receive_json()

    assert greeting["event"] == "stats:active-users"
    assert greeting["data"]["count"] >= 1
    assert ack == {"event": "subscribed", "room": f"match:{match.id}"}
    assert response.status_code == 200

    by_event = {event["event"]: event for event in events}
    assert by_event["match:score-update"]["room"] == f"match:{match.id}"
    assert by_event["match:score-update"]["data"]["home_score"] == "87/3 (9.2)"
    assert by_event["live-feed:update"]["data"]["match_id"] == match.id
    assert error["event"] == "error"


class FakeSocket:
    def __init__(self, broken=False):
        self.received = []
        self.broken = broken

    async def accept(self):
        pass

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("socket closed")
        self.received.append(message)


def test_hub_routes_events_to_rooms_and_skips_excluded():
    async def scenario():
        hub = RealtimeHub()
        first, second, dead = FakeSocket(), FakeSocket(), FakeSocket(broken=True)
        for socket in (first, second, dead):
            await hub.connect(socket)
        hub.join(first, "team:1")

        counts = [
            hub.publish("team:assigned", {"team_id": 1}, room="team:1"),
            hub.publish("stats:active-users", {"count": 3}, exclude=second),
            hub.publish("nobody", {}, room="team:99"),
        ]
        await asyncio.sleep(0)

        hub.disconnect(first)
        return hub, first, second, counts

    hub, first, second, counts = asyncio.run(scenario())

    assert counts == [1, 2, 0]
    assert [m["event"] for m in first.received] == ["team:assigned", "stats:active-users"]
    assert first.received[0]["room"] == "team:1"
    assert second.received == []
    assert "team:1" not in hub.rooms
    assert first not in hub.connections


def test_local_active_user_counter_never_goes_negative():
    async def scenario():
        counter = ActiveUserCounter(redis_url=None)
        values = [await counter.increment(), await counter.increment()]
        values += [await counter.decrement(), await counter.decrement(), await counter.decrement()]
        values.append(await counter.get())
        return values

    assert asyncio.run(scenario()) == [1, 2, 1, 0, 0, 0]
