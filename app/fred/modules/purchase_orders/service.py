from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.fred.audit import record_event
from app.fred.constants import (
    DEFAULT_PO_TYPES,
    PO_ACTIVE,
    PO_CLOSED,
    PO_DRAFT,
    PO_INITIAL_STATUSES,
    PO_OPEN,
    PO_STATUS_TRANSITIONS,
    PO_STATUSES,
    RENTAL_BLOCKS_PO_CLOSE,
)
from app.fred.models import User
from app.fred.modules.purchase_orders.models import PurchaseOrder, RentalPurchaseOrder
from app.fred.modules.rentals.models import Rental
from app.fred.results import Failure, Result, Success

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

TEXT_FIELDS = (
    "po_rlse_nbr",
    "po_bu_nbr",
    "e_rqstn_nbr",
    "po_rcvd_by",
    "po_type",
    "vendr_nm",
    "vendor_mail",
    "vendor_phn_nbr",
    "spcl_evnt",
)
FLAG_FIELDS = ("txdot_gps", "chart_fields_flg", "user_rqst_via_purch_flg")
DATE_FIELDS = ("po_start_dt", "po_expir_dt")


# ---------- Workflow ----------
def validate_status_transition(current: str | None, new: str) -> str | None:
    """Returns an error message, or None when the move is allowed."""
    if not current or current == new:
        return None
    allowed = PO_STATUS_TRANSITIONS.get(current)
    if allowed is None:
        return f"Invalid current status: {current}"
    if not allowed:
        return f"Cannot change status from {current}. This is a terminal state."
    if new not in allowed:
        return f"Cannot transition from {current} to {new}. Allowed transitions: {', '.join(allowed)}"
    return None


def allowed_next_statuses(current: str | None) -> list[str]:
    """Statuses offered in the form: the current one first, then legal moves."""
    if not current:
        return list(PO_INITIAL_STATUSES)
    return [current, *PO_STATUS_TRANSITIONS.get(current, ())]


@dataclass(frozen=True)
class WorkflowInfo:
    allowed_transitions: tuple[str, ...]
    is_terminal: bool
    next_steps: tuple[str, ...] = field(default_factory=tuple)


_NEXT_STEPS = {
    PO_DRAFT: ("Set to Open when ready for approval", "Set to Cancelled if PO needs to be terminated"),
    PO_OPEN: ("Set to Active once approved and vendor is ready", "Set to Cancelled if PO needs to be terminated"),
    PO_ACTIVE: ("Set to Closed when all work is complete", "Set to Cancelled if PO needs to be terminated"),
}


def status_workflow_info(current: str | None) -> WorkflowInfo:
    if not current:
        return WorkflowInfo(
            allowed_transitions=PO_INITIAL_STATUSES,
            is_terminal=False,
            next_steps=("Create as Draft to continue editing", "Create as Open to submit for approval"),
        )
    allowed = PO_STATUS_TRANSITIONS.get(current, ())
    return WorkflowInfo(allowed_transitions=allowed, is_terminal=not allowed, next_steps=_NEXT_STEPS.get(current, ()))


def check_business_rules(s: "Session", po: PurchaseOrder, new_status: str, payload: dict | None = None) -> str | None:
    """Rules that depend on data, checked before a status change is saved."""
    if new_status == PO_CLOSED:
        blocking = s.scalar(
            select(func.count(RentalPurchaseOrder.id))
            .join(Rental, Rental.id == RentalPurchaseOrder.rental_id)
            .where(RentalPurchaseOrder.po_id == po.id, Rental.rent_status.in_(RENTAL_BLOCKS_PO_CLOSE))
        ) or 0
        if blocking:
            return (
                f"Cannot close PO. It has {blocking} active rental(s). "
                "Complete or cancel all rentals first."
            )
    if new_status == PO_ACTIVE:
        vendor = _clean((payload or {}).get("vendr_nm")) if payload is not None else po.vendr_nm
        release = _clean((payload or {}).get("po_rlse_nbr")) if payload is not None else po.po_rlse_nbr
        if not vendor:
            return "Cannot activate PO without a vendor name."
        if not release:
            return "Cannot activate PO without a PO release number."
    return None


# ---------- Payload ----------
def _clean(raw: Any) -> str | None:
    return (str(raw) if raw is not None else "").strip() or None


def _parse_date(raw: Any) -> date | None:
    raw = _clean(raw)
    return date.fromisoformat(raw) if raw else None


def _parse_rate(raw: Any) -> Decimal | None:
    raw = _clean(raw)
    return Decimal(raw) if raw else None


def _flag(raw: Any) -> bool:
    return str(raw or "").strip().lower() in ("1", "true", "on", "yes")


def validate_po_payload(payload: dict, *, is_new: bool) -> list[str]:
    errors = []
    status = _clean(payload.get("po_status"))
    if status and status not in PO_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(PO_STATUSES)}")
    if is_new and status and status not in PO_INITIAL_STATUSES:
        errors.append(f"New purchase orders must start as {' or '.join(PO_INITIAL_STATUSES)}.")
    for key in DATE_FIELDS:
        try:
            _parse_date(payload.get(key))
        except ValueError:
            errors.append(f"{key.replace('_', ' ')} must be a valid date (YYYY-MM-DD).")
    try:
        rate = _parse_rate(payload.get("mnth_eq_rate"))
        if rate is not None and rate < 0:
            errors.append("Monthly equipment rate cannot be negative.")
    except InvalidOperation:
        errors.append("Monthly equipment rate must be a number.")
    start = _safe_date(payload.get("po_start_dt"))
    expires = _safe_date(payload.get("po_expir_dt"))
    if start and expires and expires < start:
        errors.append("Expiration date cannot be before the start date.")
    return errors


def _safe_date(raw: Any) -> date | None:
    try:
        return _parse_date(raw)
    except ValueError:
        return None


def _apply_payload(po: PurchaseOrder, payload: dict) -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}

    def _set(key: str, value: Any) -> None:
        old = getattr(po, key)
        if old != value:
            changes[key] = {"old": old, "new": value}
            setattr(po, key, value)

    for key in TEXT_FIELDS:
        _set(key, _clean(payload.get(key)))
    for key in DATE_FIELDS:
        _set(key, _parse_date(payload.get(key)))
    for key in FLAG_FIELDS:
        _set(key, _flag(payload.get(key)))
    _set("mnth_eq_rate", _parse_rate(payload.get("mnth_eq_rate")))
    return changes


# ---------- Actions ----------
def create_purchase_order(s: "Session", payload: dict, user: User) -> Result[PurchaseOrder]:
    status = _clean(payload.get("po_status")) or PO_DRAFT
    if status not in PO_INITIAL_STATUSES:
        return Failure(f"New purchase orders must start as {' or '.join(PO_INITIAL_STATUSES)}.")
    now = datetime.utcnow()
    po = PurchaseOrder(po_status=status, created_at=now, updated_at=now, updated_by_user_id=user.id)
    _apply_payload(po, payload)
    try:
        s.add(po)
        s.flush()
        record_event(
            s,
            actor=user,
            action="purchase_order.create",
            entity_type="PurchaseOrder",
            entity_id=str(po.id),
            metadata={"po_rlse_nbr": po.po_rlse_nbr, "vendr_nm": po.vendr_nm, "status": po.po_status},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error creating purchase order")
        return Failure("Failed to create purchase order")
    return Success(po)


def update_purchase_order(s: "Session", po_id: int, payload: dict, user: User) -> Result[PurchaseOrder]:
    po = s.get(PurchaseOrder, po_id)
    if po is None:
        return Failure("Purchase order not found")

    new_status = _clean(payload.get("po_status")) or po.po_status
    if new_status != po.po_status:
        error = validate_status_transition(po.po_status, new_status)  # type: ignore[arg-type]
        if error is None:
            error = check_business_rules(s, po, new_status, payload)  # type: ignore[arg-type]
        if error:
            return Failure(error)

    old_status = po.po_status
    changes = _apply_payload(po, payload)
    if new_status != old_status:
        changes["po_status"] = {"old": old_status, "new": new_status}
        po.po_status = new_status
    po.updated_at = datetime.utcnow()
    po.updated_by_user_id = user.id
    try:
        record_event(
            s,
            actor=user,
            action="purchase_order.edit",
            entity_type="PurchaseOrder",
            entity_id=str(po.id),
            metadata={"changes": changes},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error updating purchase order (po_id=%s)", po_id)
        return Failure("Failed to update purchase order")
    return Success(po)


def delete_purchase_order(s: "Session", po_id: int, user: User) -> Result[None]:
    po = s.get(PurchaseOrder, po_id)
    if po is None:
        return Failure("Purchase order not found")
    linked = s.scalar(select(func.count(RentalPurchaseOrder.id)).where(RentalPurchaseOrder.po_id == po_id)) or 0
    if linked:
        return Failure(f"Cannot delete PO. It has {linked} linked rental(s).")
    try:
        s.delete(po)
        record_event(
            s,
            actor=user,
            action="purchase_order.delete",
            entity_type="PurchaseOrder",
            entity_id=str(po_id),
            metadata={"po_rlse_nbr": po.po_rlse_nbr},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error deleting purchase order (po_id=%s)", po_id)
        return Failure("Failed to delete purchase order")
    return Success(None)


def link_po_to_rental(s: "Session", po_id: int, rental_id: int, user: User) -> Result[RentalPurchaseOrder]:
    if s.get(PurchaseOrder, po_id) is None:
        return Failure("Purchase order not found")
    if s.get(Rental, rental_id) is None:
        return Failure("Rental not found")
    existing = (
        s.query(RentalPurchaseOrder)
        .filter(RentalPurchaseOrder.po_id == po_id, RentalPurchaseOrder.rental_id == rental_id)
        .one_or_none()
    )
    if existing:
        return Failure("PO is already linked to this rental")
    link = RentalPurchaseOrder(po_id=po_id, rental_id=rental_id)
    try:
        s.add(link)
        record_event(
            s,
            actor=user,
            action="purchase_order.link",
            entity_type="PurchaseOrder",
            entity_id=str(po_id),
            metadata={"rental_id": rental_id},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error linking PO to rental (po_id=%s rental_id=%s)", po_id, rental_id)
        return Failure("Failed to link PO to rental")
    return Success(link)


def unlink_po_from_rental(s: "Session", po_id: int, rental_id: int, user: User) -> Result[None]:
    links = (
        s.query(RentalPurchaseOrder)
        .filter(RentalPurchaseOrder.po_id == po_id, RentalPurchaseOrder.rental_id == rental_id)
        .all()
    )
    try:
        for link in links:
            s.delete(link)
        record_event(
            s,
            actor=user,
            action="purchase_order.unlink",
            entity_type="PurchaseOrder",
            entity_id=str(po_id),
            metadata={"rental_id": rental_id},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error unlinking PO from rental (po_id=%s rental_id=%s)", po_id, rental_id)
        return Failure("Failed to unlink PO from rental")
    return Success(None)


# ---------- Lookups ----------
@dataclass(frozen=True)
class Vendor:
    name: str
    email: str | None
    phone: str | None


def list_vendors(s: "Session") -> Result[list[Vendor]]:
    """Distinct vendors seen on existing POs (first contact details win)."""
    try:
        rows = s.execute(
            select(PurchaseOrder.vendr_nm, PurchaseOrder.vendor_mail, PurchaseOrder.vendor_phn_nbr)
            .where(PurchaseOrder.vendr_nm.isnot(None))
            .order_by(PurchaseOrder.vendr_nm.asc(), PurchaseOrder.id.asc())
        ).all()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error getting vendors")
        return Failure("Failed to fetch vendors")
    vendors: dict[str, Vendor] = {}
    for r in rows:
        vendors.setdefault(r.vendr_nm, Vendor(name=r.vendr_nm, email=r.vendor_mail, phone=r.vendor_phn_nbr))
    return Success(list(vendors.values()))


def list_po_types(s: "Session") -> list[str]:
    """Known PO types. Falls back to the default list when the read fails."""
    try:
        types = [t for (t,) in s.execute(
            select(PurchaseOrder.po_type).where(PurchaseOrder.po_type.isnot(None)).distinct().order_by(PurchaseOrder.po_type)
        ).all() if t]
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error getting PO types")
        return list(DEFAULT_PO_TYPES)
    return sorted(set(types) | set(DEFAULT_PO_TYPES))


def search_purchase_orders(s: "Session", *, q: str = "", status: str = "", po_type: str = "") -> list[PurchaseOrder]:
    query = s.query(PurchaseOrder)
    if q:
        like = f"%{q}%"
        query = query.filter(
            (PurchaseOrder.vendr_nm.ilike(like))
            | (PurchaseOrder.po_rlse_nbr.ilike(like))
            | (PurchaseOrder.e_rqstn_nbr.ilike(like))
        )
    if status:
        query = query.filter(PurchaseOrder.po_status == status)
    if po_type:
        query = query.filter(PurchaseOrder.po_type == po_type)
    return query.order_by(PurchaseOrder.updated_at.desc(), PurchaseOrder.id.desc()).all()


def list_linkable_purchase_orders(s: "Session") -> list[PurchaseOrder]:
    """POs a rental may still be attached to."""
    return (
        s.query(PurchaseOrder)
        .filter(PurchaseOrder.po_status.in_((PO_DRAFT, PO_OPEN, PO_ACTIVE)))
        .order_by(PurchaseOrder.po_rlse_nbr.asc(), PurchaseOrder.id.asc())
        .all()
    )


def po_stats(s: "Session", today: date | None = None) -> dict[str, int]:
    today = today or date.today()
    base = select(func.count(PurchaseOrder.id))
    return {
        "total": s.scalar(base) or 0,
        "active": s.scalar(base.where(PurchaseOrder.po_status == PO_ACTIVE)) or 0,
        "expiring": s.scalar(
            base.where(
                PurchaseOrder.po_status.in_((PO_ACTIVE, PO_OPEN)),
                PurchaseOrder.po_expir_dt >= today,
                PurchaseOrder.po_expir_dt <= today + timedelta(days=30),
            )
        ) or 0,
    }


def po_to_payload(po: PurchaseOrder) -> dict:
    payload: dict[str, Any] = {key: getattr(po, key) or "" for key in TEXT_FIELDS}
    for key in DATE_FIELDS:
        value = getattr(po, key)
        payload[key] = value.isoformat() if value else ""
    for key in FLAG_FIELDS:
        payload[key] = getattr(po, key)
    payload["mnth_eq_rate"] = "" if po.mnth_eq_rate is None else str(po.mnth_eq_rate)
    payload["po_status"] = po.po_status or ""
    return payload
