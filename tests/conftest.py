import os
import tempfile

import pytest

# Point the app at throwaway storage before any qrtracker module reads settings.
_tmp_dir = tempfile.mkdtemp(prefix="qrtracker-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["QR_IMAGE_DIR"] = os.path.join(_tmp_dir, "qr_images")
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["IPGEOLOCATION_API_KEY"] = ""
os.environ["GTM_ID"] = ""
os.environ["ADMIN_USERNAME"] = "root"
os.environ["ADMIN_PASSWORD"] = "rootpass"
os.environ["OWNER_SCOPING"] = "true"

from fastapi.testclient import TestClient

from qrtracker.core.config import get_settings
from qrtracker.db.base import Base
from qrtracker.db.session import SessionLocal, engine
from qrtracker.main import app


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def signup_and_login(client, username="alice", password="secret123"):
    r = client.post("/api/auth/signup", json={"username": username, "password": password})
    assert r.status_code == 201, r.text
    r = client.post("/api/auth/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['data']['token']}"}


@pytest.fixture
def auth_headers(client):
    return signup_and_login(client)


@pytest.fixture
def login_as(client):
    def _login(username, password="secret123"):
        return signup_and_login(client, username, password)

    return _login
