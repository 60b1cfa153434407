import os
import tempfile

# Configure before the app (and its engine) is imported.
_TMP = tempfile.mkdtemp(prefix="pulsevote-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'pulsevote.sqlite3')}"
os.environ["LOG_FILE"] = os.path.join(_TMP, "pulsevote.log")
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["ALLOW_RESET"] = "1"
os.environ["JWT_SECRET"] = "test-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from pulsevote.core.settings import get_settings  # noqa: E402

get_settings.cache_clear()

from pulsevote.db import SessionLocal, wipe_all  # noqa: E402
from pulsevote.main import app  # noqa: E402

PASSWORD = "Passw0rd!"
ADMIN_EMAIL = "admin@example.com"
MANAGER_EMAIL = "manager@example.com"


@pytest.fixture(autouse=True)
def clean_state():
    db = SessionLocal()
    try:
        wipe_all(db)
    finally:
        db.close()
    limiter = getattr(app.state, "limiter", None)
    if limiter is not None:
        limiter.reset()
    yield


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_token(client) -> str:
    r = client.post("/api/auth/init-admin", json={"email": ADMIN_EMAIL, "password": PASSWORD})
    assert r.status_code == 201, r.text
    return r.json()["access_token"]


@pytest.fixture
def manager_token(client, admin_token) -> str:
    r = client.post(
        "/api/auth/register-manager",
        json={"email": MANAGER_EMAIL, "password": PASSWORD},
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    assert r.status_code == 201, r.text
    return r.json()["access_token"]


@pytest.fixture
def register_user(client):
    def _register(email: str, password: str = PASSWORD) -> str:
        r = client.post("/api/auth/register-user", json={"email": email, "password": password})
        assert r.status_code == 201, r.text
        return r.json()["access_token"]

    return _register
