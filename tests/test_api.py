"""
Tests for the HTTP and WebSocket surface
"""
import pytest
from fastapi.testclient import TestClient

from classroom_arena.main import create_app

from conftest import OPERATOR_EMAIL, OPERATOR_PASSWORD

URL = "https://example.org/demo"


@pytest.fixture
def client(settings, clock):
    with TestClient(create_app(settings, clock)) as client:
        yield client


@pytest.fixture
def auth(client):
    response = client.post("/admin/login", json={"email": OPERATOR_EMAIL, "password": OPERATOR_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def register(client, name="Ada"):
    response = client.post("/teams/register", json={"team_name": name})
    assert response.status_code == 200
    return response.json()["team_id"]


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["session_status"] == "idle"


def test_login_rejects_bad_password(client):
    response = client.post("/admin/login", json={"email": OPERATOR_EMAIL, "password": "nope"})
    assert response.status_code == 401
    assert response.json()["error"] == "AuthorizationError"


def test_admin_actions_need_token(client):
    assert client.post("/admin/start", json={"minutes": 10}).status_code == 401
    assert client.get("/admin/queue").status_code == 401


def test_logout_invalidates_token(client, auth):
    client.post("/admin/logout", headers=auth)
    assert client.post("/admin/reveal", headers=auth).status_code == 401


def test_start_validates_minutes(client, auth):
    assert client.post("/admin/start", json={}, headers=auth).status_code == 400
    assert client.post("/admin/start", json={"minutes": 0}, headers=auth).status_code == 400


def test_timer_flow(client, auth, clock):
    response = client.post("/admin/start", json={"minutes": 25}, headers=auth)
    assert response.status_code == 200
    assert response.json()["session"]["isRunning"] is True

    clock.advance(9 * 60 + 55)
    session = client.get("/session").json()
    assert session["remaining"] == 905
    assert session["clock"] == "15:05"

    paused = client.post("/admin/pause", json={"remaining_seconds": 905}, headers=auth).json()["session"]
    assert paused["remainingSeconds"] == 905
    assert paused["endTime"] is None

    clock.advance(60)
    assert client.get("/session").json()["remaining"] == 905

    client.post("/admin/resume", headers=auth)
    clock.advance(5)
    assert client.get("/session").json()["remaining"] == 900

    stopped = client.post("/admin/stop", headers=auth).json()["session"]
    assert stopped["status"] == "idle"


def test_team_flow(client, auth):
    team_id = register(client)
    assert client.get(f"/teams/{team_id}").json()["screen"] == "standby"

    closed = client.post(f"/teams/{team_id}/submit", json={"challenge_id": 1, "url": URL})
    assert closed.status_code == 409

    client.post("/admin/start", json={"minutes": 10}, headers=auth)
    submitted = client.post(f"/teams/{team_id}/submit", json={"challenge_id": 1, "url": URL})
    assert submitted.json()["accepted"] is True
    again = client.post(f"/teams/{team_id}/submit", json={"challenge_id": 1, "url": URL})
    assert again.json()["accepted"] is False

    queue = client.get("/admin/queue", headers=auth).json()
    assert queue["metrics"]["pending"] == 1
    assert queue["queue"][0]["team"]["id"] == team_id

    graded = client.post("/admin/grade", json={"team_id": team_id, "challenge_id": 1}, headers=auth)
    assert graded.status_code == 200
    assert graded.json()["team"]["score"] == 20

    regrade = client.post("/admin/grade", json={"team_id": team_id, "challenge_id": 1}, headers=auth)
    assert regrade.status_code == 404

    view = client.get(f"/teams/{team_id}").json()
    assert view["screen"] == "board"
    assert view["challenges"][0]["state"] == "completed"


def test_register_resumes_with_team_id(client):
    team_id = register(client)
    response = client.post("/teams/register", json={"team_id": team_id})
    assert response.json()["team_id"] == team_id


def test_register_validation(client):
    assert client.post("/teams/register", json={"team_name": "  "}).status_code == 400


def test_unknown_team(client):
    assert client.get("/teams/team-nobody-000000").status_code == 404


def test_submit_needs_integer_challenge(client):
    team_id = register(client)
    response = client.post(f"/teams/{team_id}/submit", json={"challenge_id": "one", "url": URL})
    assert response.status_code == 400


def test_queue_search(client, auth):
    register(client, "Ada")
    register(client, "Babbage")
    queue = client.get("/admin/queue", params={"search": "bab"}, headers=auth).json()
    assert [e["team"]["name"] for e in queue["queue"]] == ["Babbage"]
    assert queue["metrics"]["total"] == 2


def test_display_and_reveal(client, auth):
    team_id = register(client)
    client.post("/admin/start", json={"minutes": 10}, headers=auth)
    client.post(f"/teams/{team_id}/submit", json={"challenge_id": 2, "url": URL})
    client.post("/admin/grade", json={"team_id": team_id, "challenge_id": 2, "points": 10}, headers=auth)

    assert client.get("/display").json()["leaderboard"] == []
    client.post("/admin/reveal", headers=auth)
    board = client.get("/display").json()["leaderboard"]
    assert board[0]["team_id"] == team_id
    assert board[0]["score"] == 10

    assert client.get(f"/teams/{team_id}").json()["screen"] == "locked"


def test_reset_requires_unlock(client, auth):
    register(client)
    assert client.post("/admin/reset/confirm", headers=auth).status_code == 401
    client.post("/admin/reset/unlock", headers=auth)
    response = client.post("/admin/reset/confirm", headers=auth)
    assert response.status_code == 200
    assert client.get("/admin/queue", headers=auth).json()["metrics"]["total"] == 0


def test_close_blocks_registration(client, auth):
    client.post("/admin/close", headers=auth)
    assert client.post("/teams/register", json={"team_name": "Late"}).status_code == 409


def test_challenges(client):
    data = client.get("/challenges").json()
    assert data["total"] == 5
    assert data["challenges"][0]["name"] == "Bubble Sort"


def test_session_socket_pushes_views(client, auth):
    with client.websocket_connect("/ws/session") as ws:
        first = ws.receive_json()
        assert first["type"] == "VIEW"
        assert first["view"]["status"] == "idle"

        client.post("/admin/start", json={"minutes": 10}, headers=auth)
        while True:
            msg = ws.receive_json()
            if msg["view"]["status"] == "active":
                break
        assert msg["view"]["remaining"] == 600


def test_team_socket_submit(client, auth):
    team_id = register(client)
    client.post("/admin/start", json={"minutes": 10}, headers=auth)
    with client.websocket_connect(f"/ws/teams/{team_id}") as ws:
        ws.send_json({"type": "SUBMIT", "challenge_id": 4, "url": URL})
        while True:
            msg = ws.receive_json()
            if msg["type"] == "SUBMITTED":
                break
        assert msg["accepted"] is True


def test_admin_socket_rejects_missing_token(client):
    with client.websocket_connect("/ws/admin") as ws:
        msg = ws.receive_json()
    assert msg["error"] == "AuthorizationError"


def test_grade_unknown_challenge_is_not_found(client, auth):
    team_id = register(client)
    response = client.post("/admin/grade", json={"team_id": team_id, "challenge_id": 99}, headers=auth)
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"


def test_grade_without_token_is_unauthorized(client):
    response = client.post("/admin/grade", json={"team_id": "nobody", "challenge_id": 99})
    assert response.status_code == 401


def test_grade_malformed_team_id(client, auth):
    response = client.post("/admin/grade", json={"team_id": "x/y", "challenge_id": 3, "points": 20}, headers=auth)
    assert response.status_code == 404


def test_register_non_string_name(client):
    assert client.post("/teams/register", json={"team_name": 123}).status_code == 400
    assert client.post("/teams/register", json={"team_name": "Ada", "team_id": 7}).status_code == 400


def test_submit_non_string_url(client, auth):
    team_id = register(client)
    client.post("/admin/start", json={"minutes": 10}, headers=auth)
    response = client.post(f"/teams/{team_id}/submit", json={"challenge_id": 1, "url": 123})
    assert response.status_code == 400


def test_admin_socket_survives_bad_grade(client, auth):
    token = auth["Authorization"].split(" ", 1)[1]
    with client.websocket_connect(f"/ws/admin?token={token}") as ws:
        ws.send_json({"type": "GRADE", "challenge_id": 3})
        while True:
            msg = ws.receive_json()
            if msg["type"] == "ERROR":
                break
        assert msg["error"] == "NotFoundError"

        ws.send_json({"type": "PING"})
        while msg["type"] != "PONG":
            msg = ws.receive_json()
