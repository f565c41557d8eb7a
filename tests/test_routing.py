"""Section guard and home redirector, end to end through the Flask app."""
from urllib.parse import urlparse

import pytest
from werkzeug.security import generate_password_hash

from app.fred import create_app
from app.fred.db import session_scope
from app.fred.models import Base, User

ACCOUNTS = {
    "es1": "ES",
    "rc1": "RC",
    "fin1": "FIN",
    "mgr1": "Manager",
    "admin1": "ADMIN",
    "dist1": "Dist User",
    "entry1": "Data Entry",
    "ghost1": "Contractor",
}


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
        for username, role in ACCOUNTS.items():
            s.add(User(username=username, password_hash=generate_password_hash("pw"), role=role, is_active=True))

    return app.test_client()


def _login(client, username):
    r = client.post("/login", data={"username": username, "password": "pw"})
    assert r.status_code == 302
    return r


def _path(r) -> str:
    return urlparse(r.headers["Location"]).path


def test_fin_visiting_es_form_is_sent_home(client):
    _login(client, "fin1")
    r = client.get("/es/rentals/new")
    assert r.status_code == 302
    assert _path(r) == "/"

    # and home lands on the finance dashboard
    r = client.get("/")
    assert _path(r) == "/fin/dashboard"


def test_anonymous_visiting_manager_config_is_sent_to_login(client):
    r = client.get("/manager/config")
    assert r.status_code == 302
    assert _path(r) == "/login"


@pytest.mark.parametrize("path", ["/es/dashboard", "/rc/rentals", "/fin/receipts", "/manager/users", "/api/districts/1/sections"])
def test_anonymous_is_always_sent_to_login(client, path):
    r = client.get(path)
    assert r.status_code == 302
    assert _path(r) == "/login"


def test_admin_can_open_manager_reports(client):
    _login(client, "admin1")
    r = client.get("/manager/reports")
    assert r.status_code == 200
    assert b"System Reports" in r.data


@pytest.mark.parametrize(
    "username,landing",
    [
        ("es1", "/es/dashboard"),
        ("rc1", "/rc/dashboard"),
        ("fin1", "/fin/dashboard"),
        ("mgr1", "/manager/dashboard"),
        ("admin1", "/manager/dashboard"),
        ("dist1", "/es/dashboard"),
        ("entry1", "/rc/dashboard"),
    ],
)
def test_each_role_lands_on_a_page_it_can_open(client, username, landing):
    r = _login(client, username)
    assert _path(r) == landing
    r = client.get(landing)
    assert r.status_code == 200


@pytest.mark.parametrize(
    "username,allowed,denied",
    [
        ("es1", "/es/reports", "/rc/reports"),
        ("dist1", "/es/rentals", "/manager/dashboard"),
        ("rc1", "/rc/purchase-orders", "/fin/invoices"),
        ("entry1", "/rc/invoices", "/es/dashboard"),
        ("fin1", "/fin/invoices", "/manager/config"),
        ("mgr1", "/manager/config", "/rc/rentals"),
    ],
)
def test_section_access_matrix(client, username, allowed, denied):
    _login(client, username)
    assert client.get(allowed).status_code == 200
    r = client.get(denied)
    assert r.status_code == 302
    assert _path(r) == "/"


def test_side_menu_follows_role(client):
    _login(client, "rc1")
    r = client.get("/rc/dashboard")
    assert b'href="/rc/purchase-orders"' in r.data
    assert b'href="/es/rentals/new"' not in r.data
    assert b"Sign out" in r.data


def test_unknown_role_gets_no_access_page_instead_of_loop(client):
    r = _login(client, "ghost1")
    assert _path(r) == "/es/dashboard"
    r = client.get("/es/dashboard")
    assert _path(r) == "/"
    r = client.get("/")
    assert r.status_code == 200
    assert b"No section available" in r.data
    assert b"Sign out" in r.data


def test_login_next_is_honoured_only_when_allowed(client):
    r = client.post("/login", data={"username": "rc1", "password": "pw", "next": "/rc/purchase-orders"})
    assert _path(r) == "/rc/purchase-orders"
    client.get("/logout")

    r = client.post("/login", data={"username": "rc1", "password": "pw", "next": "/manager/config"})
    assert _path(r) == "/rc/dashboard"
    client.get("/logout")

    r = client.post("/login", data={"username": "rc1", "password": "pw", "next": "//evil.example.com/x"})
    assert _path(r) == "/rc/dashboard"


def test_deactivated_user_loses_access(client):
    _login(client, "es1")
    assert client.get("/es/dashboard").status_code == 200

    app = client.application
    with session_scope(app) as s:
        s.query(User).filter(User.username == "es1").one().is_active = False

    r = client.get("/es/dashboard")
    assert _path(r) == "/login"


@pytest.mark.parametrize("stored_role", ["ADMIN ", " Manager", "admin", "RC\n"])
def test_near_miss_role_strings_open_nothing(client, stored_role):
    with session_scope(client.application) as s:
        s.add(User(username="padded1", password_hash=generate_password_hash("pw"), role=stored_role, is_active=True))

    r = _login(client, "padded1")
    assert _path(r) == "/es/dashboard"
    for path in ("/manager/reports", "/rc/dashboard", "/es/dashboard"):
        assert _path(client.get(path)) == "/"
