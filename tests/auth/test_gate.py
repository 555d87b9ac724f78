# tests/auth/test_gate.py
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from picsearch_backend.app.core.errors import SessionStoreError
from picsearch_backend.app.models import Provider

NOT_AUTHENTICATED = {"error": "Not authenticated"}


def _me(client, raw_cookie):
    """GET /auth/user presenting exactly `raw_cookie` and nothing from the jar."""
    client.cookies.clear()
    return client.get("/auth/user", headers={"Cookie": f"picsearch_session={raw_cookie}"})


def test_no_cookie_is_401(client):
    r = client.get("/auth/user")
    assert r.status_code == 401
    assert r.json() == NOT_AUTHENTICATED


def test_tampered_cookie_is_401(client, login):
    login("google", {"id": "g1"})
    raw = client.cookies.get("picsearch_session")
    tampered = ("x" if raw[0] != "x" else "y") + raw[1:]

    r = _me(client, tampered)
    assert r.status_code == 401
    assert r.json() == NOT_AUTHENTICATED


def test_well_signed_but_unknown_session_is_401(client, services):
    r = _me(client, services.cookies._session.dumps("not-a-real-session"))
    assert r.status_code == 401
    assert r.json() == NOT_AUTHENTICATED


def test_expired_session_is_401(client, login, services):
    login("google", {"id": "g1"})
    assert client.get("/auth/user").status_code == 200

    real_clock = services.sessions.clock
    services.sessions.clock = lambda: real_clock() + timedelta(days=1, seconds=1)

    r = client.get("/auth/user")
    assert r.status_code == 401
    assert r.json() == NOT_AUTHENTICATED


def test_logout_revokes_and_is_idempotent(client, login):
    login("github", {"id": "h1", "username": "bob"})
    old = client.cookies.get("picsearch_session")

    r = client.post("/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"message": "Logged out successfully"}
    assert client.get("/auth/user").status_code == 401

    # replaying the old cookie does not bring the session back
    r = _me(client, old)
    assert r.status_code == 401
    assert r.json() == NOT_AUTHENTICATED

    assert client.post("/auth/logout", headers={"Cookie": f"picsearch_session={old}"}).status_code == 200
    client.cookies.clear()
    assert client.post("/auth/logout").status_code == 200


def test_logout_leaves_other_browsers_signed_in(app_instance, client, login, start_login, fake_providers):
    login("google", {"id": "g1"}, code="laptop")

    phone = TestClient(app_instance, follow_redirects=False)
    fake_providers[Provider.GOOGLE].grants["phone"] = {"id": "g1"}
    state = start_login(phone, "google")
    phone.get("/auth/google/callback", params={"code": "phone", "state": state})

    laptop_id = client.get("/auth/user").json()["user"]["id"]
    assert phone.get("/auth/user").json()["user"]["id"] == laptop_id

    client.post("/auth/logout")
    assert client.get("/auth/user").status_code == 401
    assert phone.get("/auth/user").status_code == 200


def test_logout_store_failure_is_500(client, login, services, monkeypatch):
    login("google", {"id": "g1"})

    async def down(session_id):
        raise SessionStoreError("down")

    monkeypatch.setattr(services.sessions.store, "mark_revoked", down)

    r = client.post("/auth/logout")
    assert r.status_code == 500
    assert r.json() == {"error": "Logout failed"}


@pytest.mark.parametrize(
    "method,path",
    [("get", "/search/top-searches"), ("post", "/search/search"), ("get", "/history/history")],
)
def test_protected_routes_reject_anonymous(client, method, path):
    r = getattr(client, method)(path)
    assert r.status_code == 401
    assert r.json() == NOT_AUTHENTICATED


def test_health_is_open(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
