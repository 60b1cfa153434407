import pytest
from fastapi.testclient import TestClient

from pulsevote.main import app
from pulsevote.security.tokens import decode_access_token

client = TestClient(app)

PASSWORD = "Passw0rd!"


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _login(email: str, password: str):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_bootstrap_admin_only_once():
    first = client.post("/api/auth/init-admin", json={"email": "root@example.com", "password": PASSWORD})
    assert first.status_code == 201
    claims = decode_access_token(first.json()["access_token"])
    assert claims["email"] == "root@example.com"
    assert claims["roles"] == [{"organisation_id": None, "role": "admin"}]

    second = client.post("/api/auth/init-admin", json={"email": "other@example.com", "password": PASSWORD})
    assert second.status_code == 409
    assert second.json() == {"detail": "admin_already_exists"}

    # The rejected attempt must not leave an account behind.
    assert _login("other@example.com", PASSWORD).status_code == 401


def test_bootstrap_rejected_when_admin_registered_another_way(admin_token):
    made = client.post(
        "/api/auth/register-admin",
        json={"email": "second-admin@example.com", "password": PASSWORD},
        headers=_auth(admin_token),
    )
    assert made.status_code == 201
    again = client.post("/api/auth/init-admin", json={"email": "late@example.com", "password": PASSWORD})
    assert again.status_code == 409


def test_register_user_returns_user_token():
    res = client.post("/api/auth/register-user", json={"email": "a@x.com", "password": PASSWORD})
    assert res.status_code == 201
    body = res.json()
    assert body["token_type"] == "bearer"
    claims = decode_access_token(body["access_token"])
    assert claims["roles"] == [{"organisation_id": None, "role": "user"}]


def test_email_is_case_insensitive_identity(register_user):
    register_user("Mixed.Case@Example.com")
    assert _login("mixed.case@example.com", PASSWORD).status_code == 200


@pytest.mark.parametrize("path", ["register-user", "register-manager", "register-admin", "init-admin"])
def test_duplicate_email_rejected_for_every_role(path, admin_token):
    # admin@example.com already exists via the admin_token fixture
    res = client.post(
        f"/api/auth/{path}",
        json={"email": "admin@example.com", "password": PASSWORD},
        headers=_auth(admin_token),
    )
    if path == "init-admin":
        # bootstrap is closed once an admin exists
        assert res.status_code == 409
    else:
        assert res.status_code == 400
        assert res.json() == {"detail": "email_already_registered"}


def test_duplicate_email_rejected_before_any_admin_exists(register_user):
    register_user("dup@example.com")
    res = client.post("/api/auth/register-user", json={"email": "DUP@example.com", "password": PASSWORD})
    assert res.status_code == 400
    assert res.json() == {"detail": "email_already_registered"}

    res = client.post("/api/auth/init-admin", json={"email": "dup@example.com", "password": PASSWORD})
    assert res.status_code == 400


@pytest.mark.parametrize(
    "password, fragment",
    [
        ("short1!", "at least 8"),
        ("alllowercase1!", "uppercase"),
        ("ALLUPPERCASE1!", "lowercase"),
        ("NoDigitsHere!", "digit"),
        ("NoSpecial123", "special"),
        (" Spaced1! ", "surrounding"),
    ],
)
def test_weak_passwords_rejected(password, fragment):
    res = client.post("/api/auth/register-user", json={"email": "weak@example.com", "password": password})
    assert res.status_code == 400
    body = res.json()
    assert body["detail"] == "validation_error"
    messages = [e["message"] for e in body["errors"] if e["field"] == "password"]
    assert messages and fragment in messages[0]


def test_invalid_email_rejected():
    res = client.post("/api/auth/register-user", json={"email": "nope", "password": PASSWORD})
    assert res.status_code == 400
    assert any(e["field"] == "email" for e in res.json()["errors"])


def test_login_success_returns_fresh_token(register_user):
    register_user("voter@example.com")
    res = _login("voter@example.com", PASSWORD)
    assert res.status_code == 200
    claims = decode_access_token(res.json()["access_token"])
    assert claims["email"] == "voter@example.com"
    assert claims["exp"] > claims["iat"]


def test_login_failures_are_indistinguishable(register_user):
    register_user("known@example.com")
    wrong_password = _login("known@example.com", "Wrong-Passw0rd!")
    unknown_user = _login("ghost@example.com", PASSWORD)
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"detail": "invalid_credentials"}


def test_user_cannot_register_manager_scenario():
    client.post("/api/auth/register-user", json={"email": "a@x.com", "password": PASSWORD})
    login = _login("a@x.com", PASSWORD)
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert [c["role"] for c in decode_access_token(token)["roles"]] == ["user"]

    res = client.post(
        "/api/auth/register-manager",
        json={"email": "b@x.com", "password": PASSWORD},
        headers=_auth(token),
    )
    assert res.status_code == 403
    assert res.json() == {"detail": "forbidden"}
