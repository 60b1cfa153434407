from fastapi.testclient import TestClient

from pulsevote.core.settings import reload_settings
from pulsevote.main import (
    ALLOWED_ORIGINS,
    SECURITY_HEADERS,
    STRICT_TRANSPORT_SECURITY,
    app,
)

client = TestClient(app)


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_security_headers_present():
    response = client.get("/health")
    for header, value in SECURITY_HEADERS.items():
        assert response.headers.get(header) == value
    assert response.headers.get("Strict-Transport-Security") == STRICT_TRANSPORT_SECURITY


def test_cors_preflight_allows_known_origin():
    origin = ALLOWED_ORIGINS[0]
    response = client.options(
        "/api/auth/login",
        headers={
            "origin": origin,
            "access-control-request-method": "POST",
            "access-control-request-headers": "authorization",
        },
    )

    assert response.status_code == 200
    assert response.headers.get("access-control-allow-origin") == origin
    assert response.headers.get("access-control-allow-credentials") == "true"
    allow_methods = response.headers.get("access-control-allow-methods", "").upper()
    assert "GET" in allow_methods and "POST" in allow_methods


def test_simple_get_disallowed_origin_omits_acao():
    res = client.get("/health", headers={"Origin": "https://evil.com"})
    assert res.status_code == 200
    # No ACAO header => browsers will block cross-origin access
    assert "access-control-allow-origin" not in {k.lower() for k in res.headers.keys()}


def test_put_and_delete_are_rejected():
    for method in ("PUT", "DELETE"):
        res = client.request(method, "/api/polls/close/1")
        assert res.status_code == 405
        assert res.headers.get("Allow") == "GET, POST, OPTIONS"


def test_post_body_must_be_json():
    res = client.post(
        "/api/auth/login",
        content=b"email=a@x.com&password=x",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert res.status_code == 415


def test_validation_errors_are_400_with_fields():
    res = client.post("/api/auth/login", json={"email": "not-an-email"})
    assert res.status_code == 400
    body = res.json()
    assert body["detail"] == "validation_error"
    fields = {e["field"] for e in body["errors"]}
    assert {"email", "password"} <= fields


def test_reset_wipes_data(register_user):
    register_user("someone@example.com")
    assert client.post("/reset").status_code == 200

    res = client.post("/api/auth/login", json={"email": "someone@example.com", "password": "Passw0rd!"})
    assert res.status_code == 401


def test_reset_disabled_without_flag(monkeypatch):
    monkeypatch.setenv("ALLOW_RESET", "0")
    reload_settings()
    try:
        res = client.post("/reset")
        assert res.status_code == 403
        assert res.json() == {"detail": "reset_disabled"}
    finally:
        monkeypatch.setenv("ALLOW_RESET", "1")
        reload_settings()


def test_unhandled_errors_return_generic_500(manager_token, monkeypatch):
    def _boom(db):
        raise RuntimeError("join code pool exhausted")

    monkeypatch.setattr("pulsevote.routers.organisations._fresh_join_code", _boom)
    quiet = TestClient(app, raise_server_exceptions=False)
    res = quiet.post(
        "/api/organisations/create-organisation",
        json={"name": "Broken"},
        headers={"Authorization": f"Bearer {manager_token}"},
    )
    assert res.status_code == 500
    assert res.json() == {"detail": "internal_server_error"}


def test_empty_expiry_setting_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("JWT_EXPIRE_MINUTES", "")
    try:
        assert reload_settings().jwt_expire_minutes == 60
    finally:
        monkeypatch.delenv("JWT_EXPIRE_MINUTES")
        reload_settings()
