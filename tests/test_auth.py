import uuid

from main import app
from core.security import get_current_user

from conftest import ORG_ID


def test_register_login_and_me(client):
    app.dependency_overrides.pop(get_current_user, None)

    registered = client.post("/auth/register", json={
        "email": "clerk@example.com",
        "username": "clerk",
        "password": "scanner-pass-1",
        "org_id": str(ORG_ID),
    })
    assert registered.status_code == 200, registered.text
    assert registered.json()["role"] == "OPERATOR"

    login = client.post("/auth/login", data={"username": "clerk@example.com", "password": "scanner-pass-1"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["org_id"] == str(ORG_ID)

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["org_id"] == str(ORG_ID)


def test_privileged_roles_cannot_self_register(client):
    response = client.post("/auth/register", json={
        "email": "boss@example.com",
        "username": "boss",
        "password": "scanner-pass-1",
        "org_id": str(uuid.uuid4()),
        "role": "admin",
    })
    assert response.status_code == 403


def test_manifest_routes_require_login(client):
    app.dependency_overrides.pop(get_current_user, None)
    assert client.get("/api/manifests/").status_code == 401
    assert client.post("/auth/login", data={"username": "nobody@example.com", "password": "x"}).status_code == 401
