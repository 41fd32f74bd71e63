import asyncio
from datetime import datetime

from fastapi.testclient import TestClient
from sqlmodel import select

from fiesta.main import app
from fiesta.models import (
    FoodRegistration,
    Match,
    MatchFormat,
    Player,
    Team,
    Tournament,
    TournamentStanding,
    TournamentType,
    User,
    UserRole,
)
from tests.conftest import AsyncSessionLocal, auth_header, make_user, seed


def _player(trainee_id, name, **fields):
    fields.setdefault("department", "Engineering")
    return Player(trainee_id=trainee_id, full_name=name, **fields)


async def _all(model):
    async with AsyncSessionLocal() as session:
        return (await session.exec(select(model))).all()


def test_team_names_are_unique_ignoring_case(admin):
    with TestClient(app) as client:
        created = client.post("/api/teams/", json={"name": "Thunder Bolts", "color": "#ff0"}, headers=auth_header(admin))
        duplicate = client.post("/api/teams/", json={"name": "thunder bolts"}, headers=auth_header(admin))
        renamed = client.patch(
            f"/api/teams/{created.json()['data']['id']}",
            json={"name": "Thunder Bolts", "color": "#00f"},
            headers=auth_header(admin),
        )

    assert created.status_code == 201
    assert duplicate.status_code == 409
    assert renamed.json()["data"]["color"] == "#00f"


def test_team_listing_counts_players_and_results():
    strikers, titans = seed(Team(name="Strikers"), Team(name="Titans"))
    seed(_player("T1", "Asha", team_id=strikers.id), _player("T2", "Ben", team_id=strikers.id))
    seed(
        Match(match_number=1, home_team_id=strikers.id, away_team_id=titans.id,
              scheduled_time=datetime(2026, 11, 1), winner_id=strikers.id),
        Match(match_number=2, home_team_id=titans.id, away_team_id=strikers.id,
              scheduled_time=datetime(2026, 11, 2)),
    )

    with TestClient(app) as client:
        teams = client.get("/api/teams/").json()["data"]
        detail = client.get(f"/api/teams/{strikers.id}").json()["data"]

    by_name = {team["name"]: team for team in teams}
    assert by_name["Strikers"]["player_count"] == 2
    assert (by_name["Strikers"]["matches_played"], by_name["Strikers"]["matches_won"]) == (1, 1)
    assert (by_name["Titans"]["matches_played"], by_name["Titans"]["matches_won"]) == (1, 0)
    assert [p["full_name"] for p in detail["players"]] == ["Asha", "Ben"]
    assert len(detail["matches"]) == 2


def test_team_with_matches_cannot_be_deleted(admin):
    strikers, titans, spare = seed(Team(name="Strikers"), Team(name="Titans"), Team(name="Spare"))
    seed(Match(match_number=1, home_team_id=strikers.id, away_team_id=titans.id, scheduled_time=datetime(2026, 11, 1)))
    seed(_player("T1", "Asha", team_id=spare.id))

    with TestClient(app) as client:
        refused = client.delete(f"/api/teams/{strikers.id}", headers=auth_header(admin))
        deleted = client.delete(f"/api/teams/{spare.id}", headers=auth_header(admin))

    assert refused.status_code == 409
    assert deleted.status_code == 200
    (player,) = asyncio.run(_all(Player))
    assert player.team_id is None


def test_auto_assign_spreads_unassigned_players(admin):
    red, blue = seed(Team(name="Red"), Team(name="Blue"))
    seed(*[_player(f"T{i}", f"Player {i}") for i in range(5)])
    seed(_player("KEEP", "Already Placed", team_id=red.id))

    with TestClient(app) as client:
        response = client.post("/api/teams/auto-assign", headers=auth_header(admin))
        again = client.post("/api/teams/auto-assign", headers=auth_header(admin))

    data = response.json()["data"]
    assert data["assigned_count"] == 5
    counts = {team["name"]: team["player_count"] for team in data["teams"]}
    assert counts == {"Red": 4, "Blue": 2}
    assert again.status_code == 400
    assert again.json()["message"] == "No unassigned players found."


def test_auto_assign_without_teams_fails(admin):
    seed(_player("T1", "Asha"))

    with TestClient(app) as client:
        response = client.post("/api/teams/auto-assign", headers=auth_header(admin))

    assert response.status_code == 400
    assert response.json()["message"] == "No teams found. Please create teams first."


def test_player_creation_rejects_duplicate_trainee_id(admin):
    payload = {"trainee_id": "TR-100", "full_name": "Asha Rao", "department": "QA"}

    with TestClient(app) as client:
        created = client.post("/api/players/", json=payload, headers=auth_header(admin))
        duplicate = client.post("/api/players/", json=payload, headers=auth_header(admin))

    assert created.status_code == 201
    assert created.json()["data"]["position"] == "BATSMAN"
    assert duplicate.status_code == 409


def test_player_listing_needs_login_and_includes_food_and_project(member):
    player = seed(_player("TR-1", "Asha", email="asha@fiesta.test"))
    seed(
        FoodRegistration(trainee_id="TR-1", full_name="Asha", department="Engineering"),
        User(email="asha@fiesta.test", first_name="Asha", role=UserRole.USER,
             player_id=player.id, project_name="Scoreboard"),
    )

    with TestClient(app) as client:
        anonymous = client.get("/api/players/")
        response = client.get("/api/players/", headers=auth_header(member))

    assert anonymous.status_code == 401
    body = response.json()
    assert body["count"] == 1
    assert body["data"][0]["project_name"] == "Scoreboard"
    assert body["data"][0]["food_registration"]["food_collected"] is False


def test_public_players_only_lists_approved(admin):
    team = seed(Team(name="Red"))
    shown, hidden = seed(
        _player("TR-1", "Shown", team_id=team.id, contact_number="999"),
        _player("TR-2", "Hidden"),
    )

    with TestClient(app) as client:
        before = client.get("/api/players/public").json()["data"]
        client.put(f"/api/players/{shown.id}/approval", json={"is_approved": True}, headers=auth_header(admin))
        after = client.get("/api/players/public").json()["data"]

    assert before == []
    assert [p["full_name"] for p in after] == ["Shown"]
    assert after[0]["team"] == {"id": team.id, "name": "Red"}
    assert "contact_number" not in after[0]


def test_bulk_approval_reports_count(admin):
    players = seed(_player("TR-1", "A"), _player("TR-2", "B"), _player("TR-3", "C"))

    with TestClient(app) as client:
        response = client.put(
            "/api/players/bulk-approval",
            json={"player_ids": [players[0].id, players[2].id], "is_approved": True},
            headers=auth_header(admin),
        )
        empty = client.put("/api/players/bulk-approval", json={"player_ids": [], "is_approved": True}, headers=auth_header(admin))

    assert response.json()["data"] == {"count": 2}
    assert empty.status_code == 400
    assert sorted(p.trainee_id for p in asyncio.run(_all(Player)) if p.is_approved) == ["TR-1", "TR-3"]


def test_scan_marks_attendance_once(admin):
    seed(_player("TR-9", "Asha"))

    with TestClient(app) as client:
        first = client.post("/api/players/scan", json={"trainee_id": " TR-9 "}, headers=auth_header(admin))
        second = client.post("/api/players/scan", json={"trainee_id": "TR-9"}, headers=auth_header(admin))
        unknown = client.post("/api/players/scan", json={"trainee_id": "NOPE"}, headers=auth_header(admin))

    assert first.status_code == 200
    assert first.json()["data"]["attended"] is True
    assert first.json()["data"]["attended_at"] is not None
    assert second.status_code == 400
    assert second.json()["message"] == "Already marked attendance"
    assert unknown.status_code == 404


def test_bulk_import_reports_per_row_outcomes(admin):
    seed(_player("TR-1", "Existing"))
    rows = [
        {"full_name": "New One", "trainee_id": "TR-2", "contact_number": 98765, "department": "QA", "email": " NEW@Fiesta.test "},
        {"full_name": "Dup", "trainee_id": "TR-1", "contact_number": "1", "department": "QA"},
        {"full_name": "No Contact", "trainee_id": "TR-3", "department": "QA"},
        {"full_name": "Twice", "trainee_id": "TR-2", "contact_number": "2", "department": "QA"},
    ]

    with TestClient(app) as client:
        strict = client.post("/api/players/bulk-import", json={"players": rows}, headers=auth_header(admin))

    data = strict.json()["data"]
    assert (data["imported"], data["failed"], data["skipped"]) == (1, 3, 0)
    assert data["errors"][1]["error"] == "Missing required fields: Contact Number"
    assert data["errors"][1]["row_number"] == 3

    players = {p.trainee_id: p for p in asyncio.run(_all(Player))}
    assert players["TR-2"].email == "new@fiesta.test"
    assert players["TR-2"].contact_number == "98765"


def test_bulk_import_can_skip_duplicates(admin):
    seed(_player("TR-1", "Existing"))
    rows = [{"full_name": "Dup", "trainee_id": "TR-1", "contact_number": "1", "department": "QA"}]

    with TestClient(app) as client:
        response = client.post(
            "/api/players/bulk-import",
            json={"players": rows, "skip_duplicates": True},
            headers=auth_header(admin),
        )

    assert response.json()["data"] == {"imported": 0, "failed": 0, "skipped": 1, "errors": []}


def test_deleting_player_unlinks_users(admin):
    player = seed(_player("TR-1", "Asha"))
    user = make_user("asha@fiesta.test", UserRole.USER)
    user.player_id = player.id
    seed(user)

    with TestClient(app) as client:
        response = client.delete(f"/api/players/{player.id}", headers=auth_header(admin))
        missing = client.get(f"/api/players/{player.id}")

    assert response.status_code == 200
    assert missing.status_code == 404
    linked = [u for u in asyncio.run(_all(User)) if u.email == "asha@fiesta.test"]
    assert linked[0].player_id is None


def test_team_entered_in_tournament_cannot_be_deleted(admin):
    team = seed(Team(name="Entrants"))
    tournament = seed(Tournament(
        name="Cup", type=TournamentType.LEAGUE, format=MatchFormat.T10,
        start_date=datetime(2026, 11, 1), end_date=datetime(2026, 11, 2), number_of_teams=4,
    ))
    seed(TournamentStanding(tournament_id=tournament.id, team_id=team.id))

    with TestClient(app) as client:
        response = client.delete(f"/api/teams/{team.id}", headers=auth_header(admin))

    assert response.status_code == 409
    assert response.json()["message"] == "Team is entered in a tournament and cannot be deleted"
    assert len(asyncio.run(_all(Team))) == 1
