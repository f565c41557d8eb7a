from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.fred.constants import PO_STATUSES
from app.fred.db import db_session
from app.fred.models import User
from app.fred.modules.purchase_orders.models import PurchaseOrder
from app.fred.modules.purchase_orders.service import (
    FLAG_FIELDS,
    allowed_next_statuses,
    create_purchase_order,
    delete_purchase_order,
    link_po_to_rental,
    list_po_types,
    list_vendors,
    po_to_payload,
    search_purchase_orders,
    status_workflow_info,
    unlink_po_from_rental,
    update_purchase_order,
    validate_po_payload,
)
from app.fred.rbac import protect_section
from app.fred.roles import SECTION_RC

bp = protect_section(Blueprint("purchase_orders", __name__), SECTION_RC)

FORM_FIELDS = (
    "po_rlse_nbr",
    "po_bu_nbr",
    "e_rqstn_nbr",
    "po_rcvd_by",
    "po_status",
    "po_type",
    "po_start_dt",
    "po_expir_dt",
    "vendr_nm",
    "vendor_mail",
    "vendor_phn_nbr",
    "mnth_eq_rate",
    "spcl_evnt",
) + FLAG_FIELDS


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _payload_from_form() -> dict:
    return {key: request.form.get(key) for key in FORM_FIELDS}


def _render_form(payload: dict, *, po: PurchaseOrder | None = None, status: int = 200):
    s = db_session()
    current = po.po_status if po else None
    vendors = list_vendors(s)
    return (
        render_template(
            "rc/purchase_orders/form.html",
            po=po,
            payload=payload,
            statuses=allowed_next_statuses(current),
            workflow=status_workflow_info(current),
            po_types=list_po_types(s),
            vendors=vendors.data if vendors.ok else [],
            vendors_error=None if vendors.ok else vendors.message,
        ),
        status,
    )


def _get_po_or_404(po_id: int) -> PurchaseOrder:
    po = db_session().get(PurchaseOrder, po_id)
    if not po:
        abort(404)
    return po


# ---------- List ----------
@bp.get("/purchase-orders")
def po_list():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    status_filter = (request.args.get("status") or "").strip()
    type_filter = (request.args.get("type") or "").strip()
    purchase_orders = search_purchase_orders(s, q=q, status=status_filter, po_type=type_filter)
    return render_template(
        "rc/purchase_orders/list.html",
        purchase_orders=purchase_orders,
        q=q,
        status_filter=status_filter,
        type_filter=type_filter,
        statuses=PO_STATUSES,
        po_types=list_po_types(s),
    )


# ---------- New ----------
@bp.get("/purchase-orders/new")
def po_new_get():
    return _render_form({"po_status": "Draft"})


@bp.post("/purchase-orders/new")
def po_new_post():
    payload = _payload_from_form()
    errors = validate_po_payload(payload, is_new=True)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_form(payload, status=400)

    result = create_purchase_order(db_session(), payload, _current_user())
    if not result.ok:
        flash(result.message, "danger")
        return _render_form(payload, status=400)
    flash("Purchase order created.", "success")
    return redirect(url_for("purchase_orders.po_detail", po_id=result.data.id))


# ---------- Detail ----------
@bp.get("/purchase-orders/<int:po_id>")
def po_detail(po_id: int):
    po = _get_po_or_404(po_id)
    return render_template(
        "rc/purchase_orders/detail.html",
        po=po,
        workflow=status_workflow_info(po.po_status),
        links=sorted(po.rental_links, key=lambda link: link.rental_id),
    )


# ---------- Edit ----------
@bp.get("/purchase-orders/<int:po_id>/edit")
def po_edit_get(po_id: int):
    po = _get_po_or_404(po_id)
    return _render_form(po_to_payload(po), po=po)


@bp.post("/purchase-orders/<int:po_id>/edit")
def po_edit_post(po_id: int):
    po = _get_po_or_404(po_id)
    payload = _payload_from_form()
    errors = validate_po_payload(payload, is_new=False)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_form(payload, po=po, status=400)

    result = update_purchase_order(db_session(), po_id, payload, _current_user())
    if not result.ok:
        flash(result.message, "danger")
        return _render_form(payload, po=po, status=400)
    flash("Purchase order updated.", "success")
    return redirect(url_for("purchase_orders.po_detail", po_id=po_id))


# ---------- Delete ----------
@bp.post("/purchase-orders/<int:po_id>/delete")
def po_delete(po_id: int):
    result = delete_purchase_order(db_session(), po_id, _current_user())
    if not result.ok:
        flash(result.message, "danger")
        return redirect(url_for("purchase_orders.po_detail", po_id=po_id))
    flash("Purchase order deleted.", "success")
    return redirect(url_for("purchase_orders.po_list"))


# ---------- Rental links ----------
@bp.post("/purchase-orders/<int:po_id>/links")
def po_link_rental(po_id: int):
    rental_id = request.form.get("rental_id", type=int)
    if not rental_id:
        flash("Enter a rental ID to link.", "danger")
        return redirect(url_for("purchase_orders.po_detail", po_id=po_id))
    result = link_po_to_rental(db_session(), po_id, rental_id, _current_user())
    flash("Rental linked." if result.ok else result.message, "success" if result.ok else "danger")
    return redirect(url_for("purchase_orders.po_detail", po_id=po_id))


@bp.post("/purchase-orders/<int:po_id>/links/<int:rental_id>/delete")
def po_unlink_rental(po_id: int, rental_id: int):
    result = unlink_po_from_rental(db_session(), po_id, rental_id, _current_user())
    flash("Rental unlinked." if result.ok else result.message, "success" if result.ok else "danger")
    return redirect(url_for("purchase_orders.po_detail", po_id=po_id))
