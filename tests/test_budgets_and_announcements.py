from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from fiesta.main import app
from fiesta.models import Announcement, Budget, BudgetExpense, BudgetStatus
from tests.conftest import auth_header, seed


def _expense(amount, paid_date="2026-11-01T10:00:00", **fields):
    return {"description": "Balls and stumps", "amount": amount, "paid_by": "Ravi", "paid_date": paid_date, **fields}


def test_budgets_are_for_super_admins_only(admin, member):
    with TestClient(app) as client:
        as_admin = client.get("/api/budgets/", headers=auth_header(admin))
        as_member = client.post("/api/budgets/", json={"category": "Food", "allocated": 100}, headers=auth_header(member))
        anonymous = client.get("/api/budgets/analytics/summary")

    assert as_admin.status_code == 403
    assert as_member.status_code == 403
    assert anonymous.status_code == 401


def test_budget_rejects_non_positive_amounts(super_admin):
    with TestClient(app) as client:
        zero = client.post("/api/budgets/", json={"category": "Food", "allocated": 0}, headers=auth_header(super_admin))
        blank = client.post("/api/budgets/", json={"category": "  ", "allocated": 50}, headers=auth_header(super_admin))
        created = client.post("/api/budgets/", json={"category": "Food", "allocated": 50}, headers=auth_header(super_admin))
        negative = client.post(
            f"/api/budgets/{created.json()['data']['id']}/expenses",
            json=_expense(-5),
            headers=auth_header(super_admin),
        )

    assert zero.status_code == 400
    assert zero.json()["message"] == "Allocated amount must be greater than 0"
    assert blank.json()["message"] == "Category is required"
    assert created.status_code == 201
    assert negative.status_code == 400


def test_expenses_drive_spent_and_exceeded_status(super_admin):
    headers = auth_header(super_admin)
    with TestClient(app) as client:
        budget_id = client.post(
            "/api/budgets/", json={"category": "Equipment", "allocated": 100}, headers=headers
        ).json()["data"]["id"]
        first = client.post(f"/api/budgets/{budget_id}/expenses", json=_expense(60), headers=headers)
        second = client.post(
            f"/api/budgets/{budget_id}/expenses", json=_expense(55, "2026-11-02T10:00:00"), headers=headers
        )
        over = client.get(f"/api/budgets/{budget_id}", headers=headers).json()["data"]
        removed = client.delete(
            f"/api/budgets/{budget_id}/expenses/{second.json()['data']['expense']['id']}", headers=headers
        )
        back = client.get(f"/api/budgets/{budget_id}", headers=headers).json()["data"]

    assert first.status_code == 201
    assert first.json()["data"]["budget"]["spent"] == 60
    assert first.json()["data"]["budget"]["status"] == "ACTIVE"
    assert second.json()["data"]["budget"]["status"] == "EXCEEDED"
    assert over["spent"] == 115
    assert over["remaining"] == -15
    assert [e["amount"] for e in over["expenses"]] == [55, 60]
    assert removed.status_code == 200
    assert back["spent"] == 60
    assert back["status"] == "ACTIVE"
    assert len(back["expenses"]) == 1


def test_updating_an_expense_recalculates_the_budget(super_admin):
    budget = seed(Budget(category="Prizes", allocated=200))
    expense = seed(BudgetExpense(budget_id=budget.id, description="Trophies", amount=50,
                                 paid_by="Meera", paid_date=datetime(2026, 11, 3)))

    with TestClient(app) as client:
        client.post(f"/api/budgets/{budget.id}/expenses", json=_expense(20), headers=auth_header(super_admin))
        updated = client.put(
            f"/api/budgets/{budget.id}/expenses/{expense.id}",
            json={"amount": 250},
            headers=auth_header(super_admin),
        )
        detail = client.get(f"/api/budgets/{budget.id}", headers=auth_header(super_admin)).json()["data"]

    assert updated.status_code == 200
    assert updated.json()["data"]["amount"] == 250
    assert detail["spent"] == 270
    assert detail["status"] == "EXCEEDED"


def test_expense_must_belong_to_the_budget(super_admin):
    food, venue = seed(Budget(category="Food", allocated=100), Budget(category="Venue", allocated=100))
    expense = seed(BudgetExpense(budget_id=food.id, description="Snacks", amount=10,
                                 paid_by="Ravi", paid_date=datetime(2026, 11, 1)))

    with TestClient(app) as client:
        wrong = client.delete(f"/api/budgets/{venue.id}/expenses/{expense.id}", headers=auth_header(super_admin))
        missing = client.get("/api/budgets/999", headers=auth_header(super_admin))

    assert wrong.status_code == 404
    assert wrong.json()["message"] == "Expense not found"
    assert missing.status_code == 404


def test_budget_listing_and_summary(super_admin):
    seed(
        Budget(category="Food", allocated=100, spent=40),
        Budget(category="Venue", allocated=50, spent=75, status=BudgetStatus.EXCEEDED),
    )

    with TestClient(app) as client:
        listing = client.get("/api/budgets/", headers=auth_header(super_admin)).json()
        summary = client.get("/api/budgets/analytics/summary", headers=auth_header(super_admin)).json()["data"]

    assert len(listing["data"]) == 2
    assert listing["summary"] == {"total_allocated": 150, "total_spent": 115, "total_remaining": 35}
    assert summary["total_budgets"] == 2
    assert summary["exceeded_budgets"] == 1
    assert summary["active_budgets"] == 1
    food = next(c for c in summary["by_category"] if c["category"] == "Food")
    assert food["percentage"] == 40
    assert food["remaining"] == 60


def test_deleting_a_budget_removes_its_expenses(super_admin):
    budget = seed(Budget(category="Misc", allocated=30))
    seed(BudgetExpense(budget_id=budget.id, description="Tape", amount=5, paid_by="Ravi", paid_date=datetime(2026, 11, 1)))

    with TestClient(app) as client:
        deleted = client.delete(f"/api/budgets/{budget.id}", headers=auth_header(super_admin))
        gone = client.get(f"/api/budgets/{budget.id}", headers=auth_header(super_admin))
        listing = client.get("/api/budgets/", headers=auth_header(super_admin)).json()

    assert deleted.status_code == 200
    assert gone.status_code == 404
    assert listing["data"] == []


def test_active_announcements_follow_window_flag_and_priority():
    now = datetime.utcnow()
    seed(
        Announcement(title="Low", content="x", priority=1, start_date=now - timedelta(days=1)),
        Announcement(title="High", content="x", priority=5, start_date=now - timedelta(days=1),
                     end_date=now + timedelta(days=1)),
        Announcement(title="Later", content="x", start_date=now + timedelta(days=2)),
        Announcement(title="Over", content="x", start_date=now - timedelta(days=5), end_date=now - timedelta(days=1)),
        Announcement(title="Hidden", content="x", is_active=False, start_date=now - timedelta(days=1)),
    )

    with TestClient(app) as client:
        response = client.get("/api/announcements/active")

    assert response.status_code == 200
    assert [a["title"] for a in response.json()["data"]] == ["High", "Low"]


def test_announcement_management(super_admin, admin):
    headers = auth_header(super_admin)
    with TestClient(app) as client:
        forbidden = client.post("/api/announcements/", json={"title": "Hi", "content": "x"}, headers=auth_header(admin))
        created = client.post(
            "/api/announcements/",
            json={"title": "Final on Sunday", "content": "Main ground, 4 PM", "priority": 3},
            headers=headers,
        )
        announcement_id = created.json()["data"]["id"]
        visible = client.get("/api/announcements/active").json()["data"]
        toggled = client.patch(f"/api/announcements/{announcement_id}/toggle", headers=headers)
        hidden = client.get("/api/announcements/active").json()["data"]
        bad_window = client.put(
            f"/api/announcements/{announcement_id}",
            json={"start_date": "2026-11-10T00:00:00", "end_date": "2026-11-01T00:00:00"},
            headers=headers,
        )
        renamed = client.put(f"/api/announcements/{announcement_id}", json={"title": "Final moved"}, headers=headers)
        listing = client.get("/api/announcements/", headers=headers).json()["data"]
        deleted = client.delete(f"/api/announcements/{announcement_id}", headers=headers)
        missing = client.get(f"/api/announcements/{announcement_id}", headers=headers)

    assert forbidden.status_code == 403
    assert created.status_code == 201
    assert created.json()["data"]["type"] == "INFO"
    assert [a["id"] for a in visible] == [announcement_id]
    assert toggled.json()["data"]["is_active"] is False
    assert hidden == []
    assert bad_window.status_code == 400
    assert bad_window.json()["message"] == "End date must not be before the start date"
    assert renamed.json()["data"]["title"] == "Final moved"
    assert [a["title"] for a in listing] == ["Final moved"]
    assert deleted.status_code == 200
    assert missing.status_code == 404
