import pytest
from werkzeug.security import generate_password_hash

from app.tracker import create_app
from app.tracker.constants import Role
from app.tracker.db import session_scope
from app.tracker.models import Base, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("JWT_SECRET", "JWT_EXPIRES_SECONDS", "PROJECT_CREATE_ADMIN_ONLY", "LOGIN_RATE_LIMIT"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with session_scope(app) as s:
        s.add(
            User(
                name="Admin",
                email="admin@example.com",
                password_hash=generate_password_hash("pw-admin"),
                role=Role.ADMIN,
            )
        )
    return app.test_client()


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def board(client):
    """Admin-owned project with one invited developer and one outsider."""
    r = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "pw-admin"})
    admin = r.json["token"]
    r = client.post("/api/projects", json={"title": "Alpha"}, headers=_auth(admin))
    project_id = r.json["id"]

    r = client.post("/api/auth/register", json={"name": "Dev", "email": "dev@example.com", "password": "secret1"})
    dev, dev_id = r.json["token"], r.json["user"]["id"]
    client.post(f"/api/projects/{project_id}/invite", json={"email": "dev@example.com"}, headers=_auth(admin))

    r = client.post("/api/auth/register", json={"name": "Out", "email": "out@example.com", "password": "secret1"})
    outsider, outsider_id = r.json["token"], r.json["user"]["id"]

    return {
        "admin": admin,
        "dev": dev,
        "dev_id": dev_id,
        "outsider": outsider,
        "outsider_id": outsider_id,
        "project_id": project_id,
    }


def _new_ticket(client, board, **fields):
    body = {"projectId": board["project_id"], "title": "Ticket", **fields}
    r = client.post("/api/tickets", json=body, headers=_auth(board["admin"]))
    assert r.status_code == 201, r.json
    return r.json


def test_create_then_fetch_round_trip(client, board):
    created = _new_ticket(
        client,
        board,
        title="Login broken",
        description="500 on submit",
        priority="High",
        status="In Progress",
        assignee=board["dev_id"],
    )
    r = client.get(f"/api/tickets/{created['id']}", headers=_auth(board["dev"]))
    assert r.status_code == 200
    assert r.json == created
    assert created["status"] == "In Progress"
    assert created["priority"] == "High"
    assert created["assignee"]["id"] == board["dev_id"]
    assert created["projectId"] == board["project_id"]


def test_defaults_are_low_and_to_do(client, board):
    t = _new_ticket(client, board)
    assert t["priority"] == "Low"
    assert t["status"] == "To Do"
    assert t["assignee"] is None


def test_invalid_enum_values_rejected(client, board):
    body = {"projectId": board["project_id"], "title": "T", "status": "Blocked"}
    assert client.post("/api/tickets", json=body, headers=_auth(board["admin"])).status_code == 400
    body = {"projectId": board["project_id"], "title": "T", "priority": "urgent"}
    assert client.post("/api/tickets", json=body, headers=_auth(board["admin"])).status_code == 400
    body = {"projectId": board["project_id"]}
    assert client.post("/api/tickets", json=body, headers=_auth(board["admin"])).status_code == 400


def test_non_member_cannot_touch_tickets(client, board):
    t = _new_ticket(client, board)
    out = _auth(board["outsider"])
    assert client.get(f"/api/tickets/{t['id']}", headers=out).status_code == 403
    assert client.put(f"/api/tickets/{t['id']}", json={"status": "Done"}, headers=out).status_code == 403
    assert client.delete(f"/api/tickets/{t['id']}", headers=out).status_code == 403
    assert client.get(f"/api/tickets?projectId={board['project_id']}", headers=out).status_code == 403
    body = {"projectId": board["project_id"], "title": "Sneaky"}
    assert client.post("/api/tickets", json=body, headers=out).status_code == 403


def test_assignee_must_be_a_member(client, board):
    body = {"projectId": board["project_id"], "title": "T", "assignee": board["outsider_id"]}
    r = client.post("/api/tickets", json=body, headers=_auth(board["admin"]))
    assert r.status_code == 400
    assert r.json["message"] == "Assigned user is not a member of this project"

    t = _new_ticket(client, board)
    r = client.put(f"/api/tickets/{t['id']}/assign", json={"userId": board["outsider_id"]}, headers=_auth(board["admin"]))
    assert r.status_code == 400

    r = client.put(f"/api/tickets/{t['id']}/assign", json={"userId": 9999}, headers=_auth(board["admin"]))
    assert r.status_code == 404

    r = client.put(f"/api/tickets/{t['id']}/assign", json={}, headers=_auth(board["admin"]))
    assert r.status_code == 400


def test_assign_and_unassign(client, board):
    t = _new_ticket(client, board)
    r = client.put(f"/api/tickets/{t['id']}/assign", json={"userId": board["dev_id"]}, headers=_auth(board["dev"]))
    assert r.status_code == 200
    assert r.json["assignee"]["id"] == board["dev_id"]

    # A missing field leaves the assignee alone; an explicit null clears it.
    r = client.put(f"/api/tickets/{t['id']}", json={"title": "Renamed"}, headers=_auth(board["dev"]))
    assert r.json["assignee"]["id"] == board["dev_id"]
    r = client.put(f"/api/tickets/{t['id']}", json={"assignee": None}, headers=_auth(board["dev"]))
    assert r.json["assignee"] is None


def test_status_moves_in_any_direction(client, board):
    t = _new_ticket(client, board)
    for status in ("Done", "To Do", "In Progress", "To Do"):
        r = client.put(f"/api/tickets/{t['id']}", json={"status": status}, headers=_auth(board["dev"]))
        assert r.status_code == 200
        assert r.json["status"] == status


def test_list_requires_project_id(client, board):
    r = client.get("/api/tickets", headers=_auth(board["admin"]))
    assert r.status_code == 400
    assert r.json["message"] == "Project ID is required"


def test_list_filters(client, board):
    a = _new_ticket(client, board, title="Crash on LOGIN", priority="High", assignee=board["dev_id"])
    b = _new_ticket(client, board, title="Typo", description="login page typo", status="Done")
    c = _new_ticket(client, board, title="100% CPU", priority="Medium")
    url = f"/api/tickets?projectId={board['project_id']}"
    h = _auth(board["dev"])

    r = client.get(url, headers=h)
    assert [t["id"] for t in r.json] == [a["id"], b["id"], c["id"]]

    r = client.get(url + "&status=Done", headers=h)
    assert [t["id"] for t in r.json] == [b["id"]]

    r = client.get(url + "&priority=High", headers=h)
    assert [t["id"] for t in r.json] == [a["id"]]

    r = client.get(url + "&assignee=unassigned", headers=h)
    assert [t["id"] for t in r.json] == [b["id"], c["id"]]

    r = client.get(url + f"&assignee={board['dev_id']}", headers=h)
    assert [t["id"] for t in r.json] == [a["id"]]

    r = client.get(url + "&keyword=login", headers=h)
    assert [t["id"] for t in r.json] == [a["id"], b["id"]]

    r = client.get(url + "&keyword=100%25", headers=h)
    assert [t["id"] for t in r.json] == [c["id"]]

    r = client.get(url + "&keyword=%25", headers=h)
    assert [t["id"] for t in r.json] == [c["id"]]

    r = client.get(url + "&status=Done&priority=High", headers=h)
    assert r.json == []

    r = client.get(url + "&status=", headers=h)
    assert len(r.json) == 3


def test_list_rejects_bad_filters(client, board):
    url = f"/api/tickets?projectId={board['project_id']}"
    h = _auth(board["admin"])
    assert client.get(url + "&status=Blocked", headers=h).status_code == 400
    assert client.get(url + "&priority=Urgent", headers=h).status_code == 400
    assert client.get(url + "&assignee=abc", headers=h).status_code == 404
    assert client.get("/api/tickets?projectId=xyz", headers=h).status_code == 404


def test_delete_ticket(client, board):
    t = _new_ticket(client, board)
    r = client.delete(f"/api/tickets/{t['id']}", headers=_auth(board["dev"]))
    assert r.status_code == 200
    assert client.get(f"/api/tickets/{t['id']}", headers=_auth(board["dev"])).status_code == 404


def test_out_of_range_ids_are_404(client, board):
    huge = "99999999999999999999"
    h = _auth(board["admin"])
    assert client.get(f"/api/projects/{huge}", headers=h).status_code == 404
    assert client.get(f"/api/tickets/{huge}", headers=h).status_code == 404
    assert client.put(f"/api/tickets/{huge}/assign", json={"userId": 1}, headers=h).status_code == 404
    assert client.get(f"/api/tickets?projectId={board['project_id']}&assignee={huge}", headers=h).status_code == 404
    assert client.get(f"/api/tickets?projectId={huge}", headers=h).status_code == 404

    r = client.post("/api/tickets", json={"projectId": int(huge), "title": "T"}, headers=h)
    assert r.status_code == 404
    body = {"projectId": board["project_id"], "title": "T", "assignee": 2**31}
    assert client.post("/api/tickets", json=body, headers=h).status_code == 404
    assert client.post("/api/comments", json={"ticketId": huge, "text": "x"}, headers=h).status_code == 404

    # The largest storable id is still just an unknown ticket.
    assert client.get(f"/api/tickets/{2**31 - 1}", headers=h).status_code == 404
