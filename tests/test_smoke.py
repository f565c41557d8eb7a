from urllib.parse import urlparse

import pytest
from werkzeug.security import generate_password_hash

from app.fred import create_app
from app.fred.db import session_scope
from app.fred.models import Base, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("SMTP_SERVER", raising=False)

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(username="rcuser1", password_hash=generate_password_hash("pw"), role="RC", is_active=True))
        s.add(User(username="olduser", password_hash=generate_password_hash("pw"), role="RC", is_active=False))

    return app.test_client()


def _path(r) -> str:
    return urlparse(r.headers["Location"]).path


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_login_page_renders(client):
    r = client.get("/login")
    assert r.status_code == 200
    assert b'name="username"' in r.data


def test_home_without_session_goes_to_login(client):
    r = client.get("/")
    assert r.status_code == 302
    assert _path(r) == "/login"


def test_login_lands_on_role_dashboard(client):
    r = client.post("/login", data={"username": "rcuser1", "password": "pw"})
    assert r.status_code == 302
    assert _path(r) == "/rc/dashboard"

    r = client.get("/rc/dashboard")
    assert r.status_code == 200
    assert b"Rental Coordinator Dashboard" in r.data


def test_logged_in_user_visiting_login_is_redirected(client):
    client.post("/login", data={"username": "rcuser1", "password": "pw"})
    r = client.get("/login")
    assert r.status_code == 302
    assert _path(r) == "/rc/dashboard"


def test_bad_password_rejected(client):
    r = client.post("/login", data={"username": "rcuser1", "password": "wrong"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Invalid username or password." in r.data
    r = client.get("/rc/dashboard")
    assert _path(r) == "/login"


def test_inactive_user_cannot_log_in(client):
    r = client.post("/login", data={"username": "olduser", "password": "pw"}, follow_redirects=True)
    assert b"Invalid username or password." in r.data


def test_logout_clears_session(client):
    client.post("/login", data={"username": "rcuser1", "password": "pw"})
    r = client.get("/logout")
    assert r.status_code == 302
    r = client.get("/rc/dashboard")
    assert _path(r) == "/login"


def test_post_without_csrf_token_rejected(client):
    client.post("/login", data={"username": "rcuser1", "password": "pw"})
    r = client.post("/rc/rentals/1/deny", data={"reason": "x"})
    assert r.status_code == 400
    assert b"CSRF token missing or invalid." in r.data
