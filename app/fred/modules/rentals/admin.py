from __future__ import annotations

from datetime import date

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.fred.constants import CHARTFIELDS, DURATION_UNITS, RENTAL_ACTIVE, RENTAL_DENIED, RENTAL_OPEN_STATUSES, RENTAL_STATUSES
from app.fred.db import db_session
from app.fred.models import User
from app.fred.modules.purchase_orders.service import link_po_to_rental, list_linkable_purchase_orders, unlink_po_from_rental
from app.fred.modules.reference.service import list_districts, list_nigp_codes, list_sections_by_district
from app.fred.modules.rentals.models import Rental
from app.fred.modules.rentals.service import (
    EDITABLE_FIELDS,
    PROCESSING_ROLES,
    can_modify,
    delete_rental,
    deny_rental,
    list_recent_rentals,
    list_rentals_for,
    rental_to_payload,
    submit_rental,
    update_and_resubmit_rental,
    update_rental_status,
    validate_rental_payload,
)
from app.fred.rbac import protect_section, user_has_role
from app.fred.results import fetch_all
from app.fred.roles import SECTION_ES, SECTION_RC

es_bp = protect_section(Blueprint("es_rentals", __name__), SECTION_ES)
rc_bp = protect_section(Blueprint("rc_rentals", __name__), SECTION_RC)

FORM_FIELDS = ("dist_nbr", "sect_id", "nigp_cd", "eqpmt_qty", "dlvry_rqst_dt", "dur_lngth", "dur_uom") + EDITABLE_FIELDS


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _payload_from_form() -> dict:
    return {key: request.form.get(key) for key in FORM_FIELDS}


def _render_rental_form(payload: dict, *, rental: Rental | None = None, status: int = 200):
    """
    Render the create/edit form. Districts and NIGP codes are both required;
    if either read fails the page shows the failure instead of the form.
    """
    loaded = fetch_all(list_districts, list_nigp_codes)
    if not loaded.ok:
        return render_template("rentals/form_unavailable.html", message=loaded.message, rental=rental), status
    districts, nigp_codes = loaded.data

    sections = []
    try:
        dist_nbr = int(payload.get("dist_nbr") or 0)
    except (TypeError, ValueError):
        dist_nbr = 0
    if dist_nbr:
        res = list_sections_by_district(db_session(), dist_nbr)
        if res.ok:
            sections = res.data
        else:
            flash(res.message, "danger")

    return (
        render_template(
            "rentals/form.html",
            payload=payload,
            rental=rental,
            districts=districts,
            sections=sections,
            nigp_codes=nigp_codes,
            duration_units=DURATION_UNITS,
            chartfields=CHARTFIELDS,
        ),
        status,
    )


def _own_rental_or_404(rental_id: int) -> Rental:
    rental = db_session().get(Rental, rental_id)
    if not rental or not can_modify(rental, _current_user()):
        abort(404)
    return rental


# ---------- ES: list ----------
@es_bp.get("/rentals")
def es_rentals_list():
    u = _current_user()
    rentals = list_rentals_for(db_session(), u.username)
    return render_template("es/rentals/list.html", rentals=rentals, open_statuses=RENTAL_OPEN_STATUSES)


# ---------- ES: new ----------
@es_bp.get("/rentals/new")
def es_rentals_new_get():
    return _render_rental_form({"eqpmt_qty": 1, "dur_uom": "Months"})


@es_bp.post("/rentals/new")
def es_rentals_new_post():
    s = db_session()
    u = _current_user()
    payload = _payload_from_form()

    errors = validate_rental_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_rental_form(payload, status=400)

    result = submit_rental(s, payload, u)
    if not result.ok:
        flash(result.message, "danger")
        return _render_rental_form(payload, status=400)

    flash("Rental request submitted successfully!", "success")
    return redirect(url_for("es_rentals.es_rental_detail", rental_id=result.data.id))


# ---------- ES: detail ----------
@es_bp.get("/rentals/<int:rental_id>")
def es_rental_detail(rental_id: int):
    rental = _own_rental_or_404(rental_id)
    return render_template(
        "es/rentals/detail.html",
        rental=rental,
        chartfields=CHARTFIELDS,
        can_delete=rental.rent_status in RENTAL_OPEN_STATUSES,
        can_edit=rental.rent_status == RENTAL_DENIED,
    )


# ---------- ES: edit & resubmit ----------
@es_bp.get("/rentals/<int:rental_id>/edit")
def es_rental_edit_get(rental_id: int):
    rental = _own_rental_or_404(rental_id)
    if rental.rent_status != RENTAL_DENIED:
        flash("Only denied rentals can be modified and resubmitted.", "warning")
        return redirect(url_for("es_rentals.es_rental_detail", rental_id=rental_id))
    return _render_rental_form(rental_to_payload(rental), rental=rental)


@es_bp.post("/rentals/<int:rental_id>/edit")
def es_rental_edit_post(rental_id: int):
    s = db_session()
    u = _current_user()
    rental = _own_rental_or_404(rental_id)
    payload = _payload_from_form()

    errors = validate_rental_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_rental_form(payload, rental=rental, status=400)

    result = update_and_resubmit_rental(s, rental_id, payload, u)
    if not result.ok:
        flash(result.message, "danger")
        return _render_rental_form(payload, rental=rental, status=400)

    flash("Rental request updated and resubmitted successfully!", "success")
    return redirect(url_for("es_rentals.es_rental_detail", rental_id=rental_id))


# ---------- ES: delete ----------
@es_bp.post("/rentals/<int:rental_id>/delete")
def es_rental_delete(rental_id: int):
    u = _current_user()
    result = delete_rental(db_session(), rental_id, u)
    if not result.ok:
        flash(result.message, "danger")
        rental = db_session().get(Rental, rental_id)
        if rental is not None and can_modify(rental, u):
            return redirect(url_for("es_rentals.es_rental_detail", rental_id=rental_id))
        return redirect(url_for("es_rentals.es_rentals_list"))
    flash("Rental request deleted.", "success")
    return redirect(url_for("es_rentals.es_rentals_list"))


# ---------- RC: list ----------
@rc_bp.get("/rentals")
def rc_rentals_list():
    rentals = list_recent_rentals(db_session(), limit=50)
    return render_template("rc/rentals/list.html", rentals=rentals, open_statuses=RENTAL_OPEN_STATUSES)


# ---------- RC: detail ----------
@rc_bp.get("/rentals/<int:rental_id>")
def rc_rental_detail(rental_id: int):
    s = db_session()
    rental = s.get(Rental, rental_id)
    if not rental:
        abort(404)
    linked_ids = {link.po_id for link in rental.po_links}
    return render_template(
        "rc/rentals/detail.html",
        rental=rental,
        chartfields=CHARTFIELDS,
        statuses=RENTAL_STATUSES,
        can_process=user_has_role(g.user_session, PROCESSING_ROLES),
        is_open=rental.rent_status in RENTAL_OPEN_STATUSES,
        linkable_pos=[po for po in list_linkable_purchase_orders(s) if po.id not in linked_ids],
        today=date.today(),
    )


@rc_bp.post("/rentals/<int:rental_id>/process")
def rc_rental_process(rental_id: int):
    result = update_rental_status(db_session(), rental_id, RENTAL_ACTIVE, _current_user())
    if result.ok:
        flash("Rental processed and marked Active.", "success")
    else:
        flash(result.message, "danger")
    return redirect(url_for("rc_rentals.rc_rental_detail", rental_id=rental_id))


@rc_bp.post("/rentals/<int:rental_id>/status")
def rc_rental_status(rental_id: int):
    status = (request.form.get("status") or "").strip()
    result = update_rental_status(db_session(), rental_id, status, _current_user())
    if result.ok:
        flash(f"Rental status updated to {status}.", "success")
    else:
        flash(result.message, "danger")
    return redirect(url_for("rc_rentals.rc_rental_detail", rental_id=rental_id))


@rc_bp.post("/rentals/<int:rental_id>/deny")
def rc_rental_deny(rental_id: int):
    reason = (request.form.get("reason") or "").strip()
    result = deny_rental(db_session(), rental_id, _current_user(), reason=reason)
    if result.ok:
        flash("Rental request denied.", "success")
    else:
        flash(result.message, "danger")
    return redirect(url_for("rc_rentals.rc_rental_detail", rental_id=rental_id))


# ---------- RC: PO links ----------
@rc_bp.post("/rentals/<int:rental_id>/links")
def rc_rental_link_po(rental_id: int):
    try:
        po_id = int(request.form.get("po_id") or 0)
    except ValueError:
        po_id = 0
    if not po_id:
        flash("Select a purchase order to link.", "danger")
        return redirect(url_for("rc_rentals.rc_rental_detail", rental_id=rental_id))
    result = link_po_to_rental(db_session(), po_id, rental_id, _current_user())
    flash("Purchase order linked." if result.ok else result.message, "success" if result.ok else "danger")
    return redirect(url_for("rc_rentals.rc_rental_detail", rental_id=rental_id))


@rc_bp.post("/rentals/<int:rental_id>/links/<int:po_id>/delete")
def rc_rental_unlink_po(rental_id: int, po_id: int):
    result = unlink_po_from_rental(db_session(), po_id, rental_id, _current_user())
    flash("Purchase order unlinked." if result.ok else result.message, "success" if result.ok else "danger")
    return redirect(url_for("rc_rentals.rc_rental_detail", rental_id=rental_id))
