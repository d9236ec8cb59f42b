"""Tests for the FastAPI integration (optional; requires route-access-otp[fastapi])."""

from __future__ import annotations

import pytest

fastapi = pytest.importorskip("fastapi")

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.testclient import TestClient

from route_access.contrib.fastapi import (
    RouteAccessUser,
    create_route_access_router,
    install_route_access_error_handlers,
    require_route_access,
)


def get_current_user(request: Request) -> RouteAccessUser:
    user_id = request.headers.get("x-test-user")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return RouteAccessUser(id=user_id, email=f"{user_id}@example.com")


@pytest.fixture
def app(service) -> FastAPI:
    app = FastAPI()
    install_route_access_error_handlers(app)
    app.include_router(create_route_access_router(service, get_current_user))

    guard = require_route_access(service, "comparison", get_current_user)

    @app.get("/comparison/personas")
    async def list_personas(user: RouteAccessUser = Depends(guard)):  # noqa: B008
        return {"owner": user.id}

    return app


@pytest.fixture
def client(app):
    with TestClient(app, headers={"x-test-user": "user-1"}) as client:
        yield client


def test_status_for_fresh_user(client):
    response = client.get("/route-access/status", params={"routeKey": "comparison"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["data"] == {
        "routeKey": "comparison",
        "required": True,
        "verified": False,
        "verificationExpiresAt": None,
        "challengeActive": False,
        "challengeExpiresAt": None,
        "remainingSends24h": 5,
        "resendAvailableAt": None,
    }


def test_status_requires_route_key(client):
    response = client.get("/route-access/status")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_unknown_route_is_bad_request(client):
    response = client.get("/route-access/status", params={"routeKey": "settings"})

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": {
            "status": 400,
            "code": "BAD_REQUEST",
            "message": "Route does not support email OTP verification",
        },
    }


def test_send_verify_and_access(client, email_sender, repository):
    guarded = client.get("/comparison/personas")
    assert guarded.status_code == 403
    assert guarded.json()["error"]["code"] == "ROUTE_VERIFICATION_REQUIRED"

    sent = client.post(
        "/route-access/email-otp/send",
        json={"routeKey": "comparison"},
        headers={
            "x-forwarded-for": "203.0.113.7, 10.0.0.1",
            "user-agent": "pytest-agent",
        },
    )
    assert sent.status_code == 200
    assert sent.json()["data"]["remainingSends24h"] == 4
    assert email_sender.sent[0].email == "user-1@example.com"
    assert repository.challenges[0].ip_address == "203.0.113.7"
    assert repository.challenges[0].user_agent == "pytest-agent"

    verified = client.post(
        "/route-access/email-otp/verify",
        json={"routeKey": "comparison", "code": email_sender.last_code},
    )
    assert verified.status_code == 200
    assert verified.json()["data"]["verified"] is True
    assert verified.json()["data"]["verificationExpiresAt"].startswith("9999-12-31")

    assert client.get("/comparison/personas").json() == {"owner": "user-1"}


def test_real_ip_header_fallback(client, repository):
    client.post(
        "/route-access/email-otp/send",
        json={"routeKey": "comparison"},
        headers={"x-real-ip": "198.51.100.2"},
    )
    assert repository.challenges[0].ip_address == "198.51.100.2"


def test_cooldown_error_envelope(client):
    client.post("/route-access/email-otp/send", json={"routeKey": "comparison"})
    response = client.post("/route-access/email-otp/send", json={"routeKey": "comparison"})

    assert response.status_code == 429
    error = response.json()["error"]
    assert error["status"] == 429
    assert error["code"] == "ROUTE_OTP_COOLDOWN"
    assert "resendAvailableAt" in error["details"]


def test_malformed_code(client):
    client.post("/route-access/email-otp/send", json={"routeKey": "comparison"})
    response = client.post(
        "/route-access/email-otp/verify", json={"routeKey": "comparison", "code": "12"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "ROUTE_OTP_INVALID_OR_EXPIRED"


def test_invalid_payload(client):
    response = client.post("/route-access/email-otp/send", json={})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_unauthenticated_request(app):
    with TestClient(app) as client:
        response = client.get("/route-access/status", params={"routeKey": "comparison"})
    assert response.status_code == 401
