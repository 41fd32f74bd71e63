import asyncio
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update
from sqlmodel import select

from fiesta.main import app
from fiesta.models import FoodRegistration, LoginRequest, OneTimePasscode, Player
from fiesta.services import otp as otp_service
from tests.conftest import AsyncSessionLocal, seed


@pytest.fixture(autouse=True)
def registrations():
    seed(
        FoodRegistration(trainee_id="T200", full_name="Tia Trainee", email="tia@fiesta.test", department="OPS"),
        Player(trainee_id="T100", full_name="Pat Player", email="pat@fiesta.test", department="ENG"),
    )


@pytest.fixture
def codes(monkeypatch):
    issued = iter(["111111", "222222", "333333", "444444"])
    monkeypatch.setattr(otp_service, "generate_code", lambda: next(issued))


async def _codes():
    async with AsyncSessionLocal() as session:
        return (await session.exec(select(OneTimePasscode).order_by(OneTimePasscode.id))).all()


async def _shift(**changes):
    async with AsyncSessionLocal() as session:
        await session.execute(update(OneTimePasscode).values(**changes))
        await session.commit()


def test_request_and_verify_grants_trainee(codes, mailer):
    with TestClient(app) as client:
        requested = client.post("/api/auth/otp/request", json={"email": "Tia@fiesta.test"})
        verified = client.post("/api/auth/otp/verify", json={"email": "tia@fiesta.test", "code": "111111"})

    assert requested.status_code == 200
    assert "111111" not in requested.text
    assert mailer.sent == [{
        "to": "tia@fiesta.test",
        "subject": "Your Cricket Fiesta login code",
        "template": "otp",
        "data": {"name": "Tia Trainee", "code": "111111", "minutes": 10},
    }]
    assert verified.status_code == 200
    assert verified.json()["data"]["token"]
    assert asyncio.run(_codes()) == []


def test_request_for_unregistered_email_is_not_found():
    with TestClient(app) as client:
        response = client.post("/api/auth/otp/request", json={"email": "stranger@fiesta.test"})

    assert response.status_code == 404


def test_new_request_replaces_previous_code(codes):
    with TestClient(app) as client:
        client.post("/api/auth/otp/request", json={"email": "tia@fiesta.test"})
        client.post("/api/auth/otp/request", json={"email": "tia@fiesta.test"})
        old = client.post("/api/auth/otp/verify", json={"email": "tia@fiesta.test", "code": "111111"})

    remaining = asyncio.run(_codes())
    assert [c.code for c in remaining] == ["222222"]
    assert old.status_code == 401
    assert old.json()["category"] == "INVALID_CREDENTIAL"


def test_expired_code_fails_even_when_it_matches(codes):
    with TestClient(app) as client:
        client.post("/api/auth/otp/request", json={"email": "tia@fiesta.test"})
        asyncio.run(_shift(expires_at=datetime.utcnow() - timedelta(seconds=1)))
        response = client.post("/api/auth/otp/verify", json={"email": "tia@fiesta.test", "code": "111111"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired code"


def test_resend_is_rate_limited_for_sixty_seconds(codes):
    with TestClient(app) as client:
        client.post("/api/auth/otp/request", json={"email": "tia@fiesta.test"})
        too_soon = client.post("/api/auth/otp/resend", json={"email": "tia@fiesta.test"})

        asyncio.run(_shift(created_at=datetime.utcnow() - timedelta(seconds=61)))
        resent = client.post("/api/auth/otp/resend", json={"email": "tia@fiesta.test"})
        old = client.post("/api/auth/otp/verify", json={"email": "tia@fiesta.test", "code": "111111"})
        new = client.post("/api/auth/otp/verify", json={"email": "tia@fiesta.test", "code": "222222"})

    assert too_soon.status_code == 429
    assert too_soon.json()["category"] == "RATE_LIMITED"
    assert resent.status_code == 200
    assert old.status_code == 401
    assert new.status_code == 200


def test_mail_failure_does_not_fail_the_request(codes, mailer):
    mailer.fail = True

    with TestClient(app) as client:
        response = client.post("/api/auth/otp/request", json={"email": "tia@fiesta.test"})

    assert response.status_code == 200
    assert mailer.sent == []
    assert [c.code for c in asyncio.run(_codes())] == ["111111"]


def test_player_verify_goes_through_approval(codes):
    with TestClient(app) as client:
        client.post("/api/auth/otp/request", json={"email": "pat@fiesta.test"})
        first = client.post("/api/auth/otp/verify", json={"email": "pat@fiesta.test", "code": "111111"})
        client.post("/api/auth/otp/request", json={"email": "pat@fiesta.test"})
        second = client.post("/api/auth/otp/verify", json={"email": "pat@fiesta.test", "code": "222222"})

    assert first.status_code == 202
    assert second.status_code == 202

    async def requests():
        async with AsyncSessionLocal() as session:
            return (await session.exec(select(LoginRequest))).all()

    assert len(asyncio.run(requests())) == 1
