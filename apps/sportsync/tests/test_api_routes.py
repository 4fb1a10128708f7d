"""
API route tests through the FastAPI TestClient.

The client runs the application lifespan, so every test gets a fresh
in-memory repository (STORAGE_BACKEND=memory from conftest).
"""

import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from sportsync.api.main import app
from sportsync.utils.datetime_utils import utcnow


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def register(client, name, email, password="secret123"):
    response = client.post(
        "/api/auth/register", json={"name": name, "email": email, "password": password}
    )
    assert response.status_code == 200, response.text
    body = response.json()
    return body["token"], body["user"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def match_payload(**overrides):
    payload = {
        "title": "Sunday League",
        "location": "Riverside Pitch",
        "date": (utcnow() + timedelta(days=3)).isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def organiser(client, monkeypatch):
    """An admin-promoted account moved to the basic plan, so it can create matches."""
    monkeypatch.setenv("ADMIN_EMAILS", "boss@example.com")
    token, user = register(client, "Boss", "boss@example.com")
    response = client.put(f"/api/users/{user['id']}/plan", json={"plan": "basic"}, headers=auth(token))
    assert response.status_code == 200, response.text
    return token, user


# ──────────────────────────────────────────────────────────────
# Health & auth
# ──────────────────────────────────────────────────────────────


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["storage_backend"] == "memory"
    assert body["websocket_connections"] == 0


def test_register_login_me(client):
    token, user = register(client, "Nina Nine", "Nina@Example.com")

    assert user["email"] == "nina@example.com"
    assert user["plan"] == "free"
    assert "password_hash" not in user

    login = client.post("/api/auth/login", json={"email": "nina@example.com", "password": "secret123"})
    assert login.status_code == 200
    me = client.get("/api/auth/me", headers=auth(login.json()["token"]))
    assert me.status_code == 200
    assert me.json()["id"] == user["id"]


def test_login_wrong_password(client):
    register(client, "Nina", "nina@example.com")

    response = client.post("/api/auth/login", json={"email": "nina@example.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Email or password is incorrect"


def test_register_duplicate_email(client):
    register(client, "Nina", "nina@example.com")

    response = client.post(
        "/api/auth/register", json={"name": "Other", "email": "nina@example.com", "password": "secret123"}
    )

    assert response.status_code == 400


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer not-a-token"}])
def test_protected_route_requires_valid_token(client, headers):
    response = client.get("/api/auth/me", headers=headers)

    assert response.status_code == 401
    assert "WWW-Authenticate" in response.headers


def test_malformed_body_is_400(client):
    token, _ = register(client, "Nina", "nina@example.com")

    response = client.post("/api/matches", json={"title": "No date"}, headers=auth(token))

    assert response.status_code == 400
    assert isinstance(response.json()["detail"], list)


def test_admin_routes_forbidden_for_players(client):
    token, user = register(client, "Nina", "nina@example.com")

    response = client.put(f"/api/users/{user['id']}/plan", json={"plan": "advanced"}, headers=auth(token))

    assert response.status_code == 403


# ──────────────────────────────────────────────────────────────
# Matches & quotas
# ──────────────────────────────────────────────────────────────


def test_free_user_cannot_create_match(client):
    token, _ = register(client, "Nina", "nina@example.com")

    response = client.post("/api/matches", json=match_payload(), headers=auth(token))

    assert response.status_code == 403
    limits = response.json()["detail"]["limits"]
    assert limits["plan"] == "free"
    assert limits["can_create"] is False
    assert limits["max_created"] == 0


def test_create_and_join_by_code(client, organiser):
    org_token, org = organiser
    created = client.post("/api/matches", json=match_payload(), headers=auth(org_token))
    assert created.status_code == 200, created.text
    match = created.json()
    assert match["created_by"] == org["id"]
    assert len(match["invite_code"]) == 8
    assert match["invite_link"].endswith(match["invite_code"])

    player_token, player = register(client, "Pat Player", "pat@example.com")
    joined = client.post(
        "/api/matches/join-by-code",
        json={"code": match["invite_code"].lower()},
        headers=auth(player_token),
    )
    assert joined.status_code == 200, joined.text
    assert joined.json()["id"] == match["id"]

    participants = client.get(f"/api/matches/{match['id']}/participants", headers=auth(org_token))
    assert participants.status_code == 200
    assert player["id"] in [p["user"]["id"] for p in participants.json()]

    limits = client.get("/api/user/plan-limits", headers=auth(player_token)).json()
    assert limits["joined_count"] == 1
    assert limits["can_join"] is False


def test_join_with_unknown_code(client):
    token, _ = register(client, "Nina", "nina@example.com")

    response = client.post("/api/matches/join-by-code", json={"code": "ZZZZ9999"}, headers=auth(token))

    assert response.status_code == 404


def test_get_unknown_match(client):
    token, _ = register(client, "Nina", "nina@example.com")

    assert client.get("/api/matches/9999", headers=auth(token)).status_code == 404


def test_private_match_hidden_from_outsiders(client, organiser):
    org_token, _ = organiser
    match = client.post(
        "/api/matches", json=match_payload(is_public=False), headers=auth(org_token)
    ).json()
    outsider_token, _ = register(client, "Olly Outsider", "olly@example.com")

    assert client.get("/api/matches", headers=auth(outsider_token)).json() == []
    response = client.get(f"/api/matches/{match['id']}", headers=auth(outsider_token))
    assert response.status_code == 404
    assert match["invite_code"] not in response.text

    own = client.get(f"/api/matches/{match['id']}", headers=auth(org_token))
    assert own.status_code == 200
    assert own.json()["invite_code"] == match["invite_code"]


def test_delete_match(client, organiser):
    org_token, _ = organiser
    match = client.post("/api/matches", json=match_payload(), headers=auth(org_token)).json()

    response = client.delete(f"/api/matches/{match['id']}", headers=auth(org_token))

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.get(f"/api/matches/{match['id']}", headers=auth(org_token)).status_code == 404


# ──────────────────────────────────────────────────────────────
# Social & notifications
# ──────────────────────────────────────────────────────────────


def test_friend_request_creates_notification(client):
    alice_token, _ = register(client, "Alice", "alice@example.com")
    bob_token, bob = register(client, "Bob", "bob@example.com")

    sent = client.post("/api/friend-requests", json={"user_id": bob["id"]}, headers=auth(alice_token))
    assert sent.status_code == 200, sent.text

    assert client.get("/api/notifications/unread-count", headers=auth(bob_token)).json() == {"count": 1}
    marked = client.put("/api/notifications/mark-all-read", headers=auth(bob_token))
    assert marked.json() == {"success": True, "count": 1}

    accepted = client.put(
        f"/api/friend-requests/{sent.json()['id']}", json={"status": "accepted"}, headers=auth(bob_token)
    )
    assert accepted.status_code == 200, accepted.text
    friends = client.get("/api/friends", headers=auth(alice_token)).json()
    assert [f["id"] for f in friends] == [bob["id"]]


def test_posts_like_and_comment(client):
    token, user = register(client, "Alice", "alice@example.com")

    post = client.post("/api/posts", json={"content": "Who's in for Sunday?"}, headers=auth(token)).json()
    liked = client.post(f"/api/posts/{post['id']}/like", headers=auth(token)).json()
    comment = client.post(
        f"/api/posts/{post['id']}/comments", json={"content": "me"}, headers=auth(token)
    )

    assert liked["likes"] == [user["id"]]
    assert comment.status_code == 200
    assert len(client.get(f"/api/posts/{post['id']}/comments", headers=auth(token)).json()) == 1


# ──────────────────────────────────────────────────────────────
# WebSocket
# ──────────────────────────────────────────────────────────────


def test_websocket_ping_pong(client):
    token, _ = register(client, "Alice", "alice@example.com")

    with client.websocket_connect(f"/ws?token={token}") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_text() == "pong"
        health = client.get("/api/health").json()
        assert health["websocket_connections"] == 1


@pytest.mark.parametrize("path", ["/ws", "/ws?token=garbage"])
def test_websocket_rejects_bad_token(client, path):
    with client.websocket_connect(path) as websocket:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            websocket.receive_text()

    assert exc_info.value.code == 1008


def test_websocket_receives_new_post_event(client):
    token, _ = register(client, "Alice", "alice@example.com")
    other_token, _ = register(client, "Bob", "bob@example.com")

    with client.websocket_connect(f"/ws?token={token}") as websocket:
        client.post("/api/posts", json={"content": "Kick-off moved to 8pm"}, headers=auth(other_token))
        event = websocket.receive_json()

    assert event["type"] == "NEW_POST"
    assert event["data"]["content"] == "Kick-off moved to 8pm"
