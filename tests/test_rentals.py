"""Rental request flow: form loading, submit, process/deny, resubmit, delete."""
from decimal import Decimal
from urllib.parse import urlparse

import pytest
from werkzeug.security import generate_password_hash

from app.fred import create_app
from app.fred.db import session_scope
from app.fred.models import AuditEvent, Base, User
from app.fred.modules.reference.models import District, NigpCode, Section
from app.fred.modules.rentals import admin as rentals_admin
from app.fred.modules.rentals.models import Rental, RentalStatusHistory
from app.fred.modules.rentals.service import validate_rental_payload
from app.fred.results import Failure


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
        s.add_all(
            [
                District(dist_nbr=14, dist_nm="Austin", dist_abrvn="AUS"),
                District(dist_nbr=15, dist_nm="San Antonio", dist_abrvn="SAT"),
                NigpCode(nigp_cd="07045", dscr="Backhoe Loader", avg_monthly_rate=Decimal("3200.00")),
            ]
        )
        s.flush()
        s.add_all(
            [
                Section(sect_id=1, dist_nbr=14, sect_nbr="01", sect_nm="Austin Maintenance"),
                Section(sect_id=2, dist_nbr=15, sect_nbr="01", sect_nm="San Antonio Maintenance"),
            ]
        )
        for username, role in (("es1", "ES"), ("es2", "ES"), ("rc1", "RC"), ("entry1", "Data Entry")):
            s.add(
                User(
                    username=username,
                    password_hash=generate_password_hash("pw"),
                    role=role,
                    email=f"{username}@example.com",
                    is_active=True,
                )
            )

    return app.test_client()


def _login(client, username):
    client.post("/login", data={"username": username, "password": "pw"})
    with client.session_transaction() as sess:
        sess["csrf_token"] = "test-token"


def _path(r) -> str:
    return urlparse(r.headers["Location"]).path


def _form(**overrides):
    data = {
        "csrf_token": "test-token",
        "dist_nbr": "14",
        "sect_id": "1",
        "nigp_cd": "07045",
        "eqpmt_qty": "1",
        "dlvry_rqst_dt": "2026-11-02",
        "dur_lngth": "3",
        "dur_uom": "Months",
        "dlvry_locn": "Austin yard, gate 2",
        "poc_nm": "Pat Lee",
        "poc_phn_nbr": "512-555-0100",
        "cf_fund": "0006",
    }
    data.update(overrides)
    return data


def _submit(client, **overrides) -> int:
    r = client.post("/es/rentals/new", data=_form(**overrides))
    assert r.status_code == 302, r.data
    return int(_path(r).rstrip("/").rsplit("/", 1)[-1])


def _rental(client, rental_id) -> Rental | None:
    with session_scope(client.application) as s:
        return s.get(Rental, rental_id)


# ---------- Form loading ----------
def test_new_rental_form_lists_reference_data(client):
    _login(client, "es1")
    r = client.get("/es/rentals/new")
    assert r.status_code == 200
    assert b'name="nigp_cd"' in r.data
    assert b"Backhoe Loader" in r.data
    assert b"14 - Austin" in r.data


def test_form_shows_failure_when_nigp_read_fails(client):
    _login(client, "es1")
    engine = client.application.extensions["sqlalchemy_engine"]
    NigpCode.__table__.drop(engine)

    r = client.get("/es/rentals/new")
    assert r.status_code == 200
    assert b"Failed to load form data. Please try again." in r.data
    assert b"Failed to fetch NIGP codes" in r.data
    assert b'name="nigp_cd"' not in r.data
    assert b'name="dist_nbr"' not in r.data


def test_form_shows_failure_when_district_read_fails(client, monkeypatch):
    _login(client, "es1")
    monkeypatch.setattr(rentals_admin, "list_districts", lambda s: Failure("Failed to fetch districts"))

    r = client.get("/es/rentals/new")
    assert r.status_code == 200
    assert b"Failed to fetch districts" in r.data
    assert b'name="nigp_cd"' not in r.data


def test_form_rerender_shows_section_read_failure(client, monkeypatch):
    _login(client, "es1")
    monkeypatch.setattr(rentals_admin, "list_sections_by_district", lambda s, n: Failure("Failed to fetch sections"))

    r = client.post("/es/rentals/new", data=_form(poc_nm=""))
    assert r.status_code == 400
    assert b"Contact name is required." in r.data
    assert b"Failed to fetch sections" in r.data


def test_sections_endpoint_returns_json(client):
    _login(client, "es1")
    r = client.get("/api/districts/14/sections")
    assert r.status_code == 200
    assert r.json["success"] is True
    assert r.json["data"] == [{"sect_id": 1, "sect_nbr": "01", "sect_nm": "Austin Maintenance", "label": "01 - Austin Maintenance"}]


# ---------- Validation ----------
def test_validate_rental_payload_reports_missing_fields():
    errors = validate_rental_payload({})
    assert "District is required." in errors
    assert "Section is required." in errors
    assert "Equipment type is required." in errors
    assert "Delivery date is required." in errors
    assert "Duration is required." in errors


def test_validate_rental_payload_accepts_complete_form():
    assert validate_rental_payload(_form()) == []


def test_validate_rental_payload_rejects_bad_values():
    errors = validate_rental_payload(_form(eqpmt_qty="0", dlvry_rqst_dt="11/02/2026", dur_uom="Years"))
    assert "Quantity must be at least 1." in errors
    assert "Delivery date must be a valid date (YYYY-MM-DD)." in errors
    assert any(e.startswith("Invalid duration unit.") for e in errors)


# ---------- Submit ----------
def test_submit_rental_creates_submitted_request(client):
    _login(client, "es1")
    rental_id = _submit(client)

    rental = _rental(client, rental_id)
    assert rental.rent_status == "Submitted"
    assert rental.rqst_by == "es1"
    assert rental.cf_fund == "0006"
    assert rental.submit_dt is not None

    with session_scope(client.application) as s:
        history = s.query(RentalStatusHistory).filter(RentalStatusHistory.rental_id == rental_id).all()
        assert [h.status for h in history] == ["Submitted"]
        assert s.query(AuditEvent).filter(AuditEvent.action == "rental.submit").count() == 1

    r = client.get(f"/es/rentals/{rental_id}")
    assert r.status_code == 200
    assert b"Rental request submitted successfully!" in r.data


def test_submit_with_errors_rerenders_form(client):
    _login(client, "es1")
    r = client.post("/es/rentals/new", data=_form(dlvry_rqst_dt=""))
    assert r.status_code == 400
    assert b"Delivery date is required." in r.data
    assert b'name="nigp_cd"' in r.data
    assert b"Austin yard, gate 2" in r.data


def test_submit_rejects_section_from_another_district(client):
    _login(client, "es1")
    r = client.post("/es/rentals/new", data=_form(sect_id="2"))
    assert r.status_code == 400
    assert b"Selected section does not belong to the selected district." in r.data


def test_es_sees_only_own_rentals(client):
    _login(client, "es1")
    rental_id = _submit(client)
    client.get("/logout")

    _login(client, "es2")
    assert client.get(f"/es/rentals/{rental_id}").status_code == 404
    r = client.get("/es/rentals")
    assert f"/es/rentals/{rental_id}".encode() not in r.data


# ---------- RC processing ----------
def test_rc_processes_rental(client):
    _login(client, "es1")
    rental_id = _submit(client)
    client.get("/logout")

    _login(client, "rc1")
    r = client.get(f"/rc/rentals/{rental_id}")
    assert r.status_code == 200
    assert b"Process (mark Active)" in r.data

    r = client.post(f"/rc/rentals/{rental_id}/process", data={"csrf_token": "test-token"})
    assert r.status_code == 302
    rental = _rental(client, rental_id)
    assert rental.rent_status == "Active"
    assert rental.rcvd_by == "rc1"


def test_data_entry_can_view_but_not_process(client):
    _login(client, "es1")
    rental_id = _submit(client)
    client.get("/logout")

    _login(client, "entry1")
    r = client.get(f"/rc/rentals/{rental_id}")
    assert r.status_code == 200
    assert b"Process (mark Active)" not in r.data

    r = client.post(f"/rc/rentals/{rental_id}/process", data={"csrf_token": "test-token"}, follow_redirects=True)
    assert b"Insufficient permissions" in r.data
    assert _rental(client, rental_id).rent_status == "Submitted"


def test_rc_denies_with_reason(client):
    _login(client, "es1")
    rental_id = _submit(client)
    client.get("/logout")

    _login(client, "rc1")
    client.post(f"/rc/rentals/{rental_id}/deny", data={"csrf_token": "test-token", "reason": "No budget"})
    rental = _rental(client, rental_id)
    assert rental.rent_status == "Denied"
    assert rental.spcl_inst == "[DENIED]: No budget"


def test_deny_without_reason_uses_default_note(client):
    _login(client, "es1")
    rental_id = _submit(client)
    client.get("/logout")

    _login(client, "rc1")
    client.post(f"/rc/rentals/{rental_id}/deny", data={"csrf_token": "test-token"})
    assert _rental(client, rental_id).spcl_inst == "[DENIED] - Rental request was denied"


# ---------- Resubmit ----------
def test_denied_rental_can_be_edited_and_resubmitted(client):
    _login(client, "es1")
    rental_id = _submit(client)
    client.get("/logout")
    _login(client, "rc1")
    client.post(f"/rc/rentals/{rental_id}/deny", data={"csrf_token": "test-token", "reason": "Wrong fund"})
    client.get("/logout")

    _login(client, "es1")
    r = client.get(f"/es/rentals/{rental_id}/edit")
    assert r.status_code == 200
    assert b"[DENIED]" not in r.data

    r = client.post(f"/es/rentals/{rental_id}/edit", data=_form(cf_fund="0001"))
    assert r.status_code == 302
    rental = _rental(client, rental_id)
    assert rental.rent_status == "Submitted"
    assert rental.cf_fund == "0001"

    with session_scope(client.application) as s:
        statuses = [
            h.status
            for h in s.query(RentalStatusHistory)
            .filter(RentalStatusHistory.rental_id == rental_id)
            .order_by(RentalStatusHistory.id)
        ]
    assert statuses == ["Submitted", "Denied", "Resubmitted"]


def test_only_denied_rentals_can_be_resubmitted(client):
    _login(client, "es1")
    rental_id = _submit(client)

    r = client.get(f"/es/rentals/{rental_id}/edit")
    assert r.status_code == 302

    r = client.post(f"/es/rentals/{rental_id}/edit", data=_form(cf_fund="0001"))
    assert r.status_code == 400
    assert b"Only denied rentals can be modified and resubmitted" in r.data
    assert _rental(client, rental_id).cf_fund == "0006"


# ---------- Delete ----------
def test_submitted_rental_can_be_deleted(client):
    _login(client, "es1")
    rental_id = _submit(client)
    r = client.post(f"/es/rentals/{rental_id}/delete", data={"csrf_token": "test-token"})
    assert r.status_code == 302
    assert _path(r) == "/es/rentals"
    assert _rental(client, rental_id) is None


def test_active_rental_cannot_be_deleted(client):
    _login(client, "es1")
    rental_id = _submit(client)
    client.get("/logout")
    _login(client, "rc1")
    client.post(f"/rc/rentals/{rental_id}/process", data={"csrf_token": "test-token"})
    client.get("/logout")

    _login(client, "es1")
    r = client.post(f"/es/rentals/{rental_id}/delete", data={"csrf_token": "test-token"}, follow_redirects=True)
    assert b"Cannot delete rental with status: Active" in r.data
    assert _rental(client, rental_id) is not None


def test_other_users_rental_cannot_be_deleted(client):
    _login(client, "es1")
    rental_id = _submit(client)
    client.get("/logout")

    _login(client, "es2")
    r = client.post(f"/es/rentals/{rental_id}/delete", data={"csrf_token": "test-token"}, follow_redirects=True)
    assert b"You don&#39;t have permission to delete this rental" in r.data
    assert _rental(client, rental_id) is not None


def test_es_dashboard_counts(client):
    _login(client, "es1")
    _submit(client)
    _submit(client)
    r = client.get("/es/dashboard")
    assert r.status_code == 200
    assert b"Total Requests" in r.data
    assert b"Backhoe Loader" in r.data
