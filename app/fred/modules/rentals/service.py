from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.fred.audit import record_event
from app.fred.constants import (
    CHARTFIELDS,
    DURATION_UNITS,
    RENTAL_ACTIVE,
    RENTAL_DENIED,
    RENTAL_IN_USE_STATUSES,
    RENTAL_OPEN_STATUSES,
    RENTAL_STATUSES,
    RENTAL_SUBMITTED,
)
from app.fred.models import User
from app.fred.modules.reference.models import NigpCode
from app.fred.modules.reference.service import section_belongs_to_district
from app.fred.modules.rentals.models import Rental, RentalStatusHistory
from app.fred.notifications import RentalNotice, send_rental_approval_notification
from app.fred.results import Failure, Result, Success
from app.fred.roles import Role

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Roles that may process or deny any rental.
PROCESSING_ROLES = frozenset({Role.RC, Role.MANAGER, Role.ADMIN})
# Roles that may delete or edit rentals they did not request.
OVERRIDE_ROLES = frozenset({Role.MANAGER, Role.ADMIN})

EDITABLE_FIELDS = (
    "eqpmt_make",
    "eqpmt_model",
    "eqpmt_cmnt",
    "eqpmt_atchmt",
    "dlvry_locn",
    "poc_nm",
    "poc_phn_nbr",
    "spcl_inst",
) + tuple(key for key, _label in CHARTFIELDS)


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def _parse_int(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    raw = str(raw).strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _clean(raw: Any) -> str | None:
    return (str(raw) if raw is not None else "").strip() or None


def validate_rental_payload(payload: dict) -> list[str]:
    """Validate rental creation/resubmission payload. Returns list of errors."""
    errors = []
    dist_nbr = _parse_int(payload.get("dist_nbr"))
    if not dist_nbr or dist_nbr < 1:
        errors.append("District is required.")
    sect_id = _parse_int(payload.get("sect_id"))
    if not sect_id or sect_id < 1:
        errors.append("Section is required.")
    if not _clean(payload.get("nigp_cd")):
        errors.append("Equipment type is required.")

    raw_qty = payload.get("eqpmt_qty")
    qty = _parse_int(raw_qty) if _clean(raw_qty) else 1
    if qty is None or qty < 1:
        errors.append("Quantity must be at least 1.")

    raw_dt = _clean(payload.get("dlvry_rqst_dt"))
    if not raw_dt:
        errors.append("Delivery date is required.")
    else:
        try:
            parse_date(raw_dt)
        except ValueError:
            errors.append("Delivery date must be a valid date (YYYY-MM-DD).")

    dur = _parse_int(payload.get("dur_lngth"))
    if not dur or dur < 1:
        errors.append("Duration is required.")
    uom = _clean(payload.get("dur_uom"))
    if not uom:
        errors.append("Duration unit is required.")
    elif uom not in DURATION_UNITS:
        errors.append(f"Invalid duration unit. Must be one of: {', '.join(DURATION_UNITS)}")

    if not _clean(payload.get("dlvry_locn")):
        errors.append("Delivery location is required.")
    if not _clean(payload.get("poc_nm")):
        errors.append("Contact name is required.")
    if not _clean(payload.get("poc_phn_nbr")):
        errors.append("Contact phone is required.")
    return errors


def _apply_payload(rental: Rental, payload: dict) -> None:
    rental.dist_nbr = _parse_int(payload.get("dist_nbr"))  # type: ignore[assignment]
    rental.sect_id = _parse_int(payload.get("sect_id"))  # type: ignore[assignment]
    rental.nigp_cd = _clean(payload.get("nigp_cd"))
    rental.eqpmt_qty = _parse_int(payload.get("eqpmt_qty")) or 1
    rental.dlvry_rqst_dt = parse_date(payload.get("dlvry_rqst_dt"))
    rental.dur_lngth = _parse_int(payload.get("dur_lngth"))
    rental.dur_uom = _clean(payload.get("dur_uom"))
    for key in EDITABLE_FIELDS:
        setattr(rental, key, _clean(payload.get(key)))


def _check_references(s: "Session", payload: dict) -> Failure | None:
    dist_nbr = _parse_int(payload.get("dist_nbr"))
    sect_id = _parse_int(payload.get("sect_id"))
    if dist_nbr is None or sect_id is None or not section_belongs_to_district(s, sect_id, dist_nbr):
        return Failure("Selected section does not belong to the selected district.")
    nigp_cd = _clean(payload.get("nigp_cd"))
    if not nigp_cd or s.get(NigpCode, nigp_cd) is None:
        return Failure("Selected equipment type does not exist.")
    return None


def _record_history(s: "Session", rental: Rental, status: str, actor: User, note: str | None = None) -> None:
    s.add(
        RentalStatusHistory(
            rental_id=rental.id,
            status=status,
            actor_user_id=actor.id,
            actor_name=actor.display_name,
            note=note,
        )
    )


def _actor_role(actor: User) -> Role:
    return Role.parse(actor.role)


def _notify_rc_users(s: "Session", rental: Rental, *, resubmitted: bool) -> None:
    """Tell RC users a rental needs processing. Failures are logged only."""
    from flask import current_app

    try:
        s.refresh(rental)
        emails = [
            e
            for (e,) in s.execute(
                select(User.email).where(User.role == Role.RC.value, User.email.isnot(None), User.is_active.is_(True))
            ).all()
            if e
        ]
        cfg = current_app.config
        notice = RentalNotice(
            rental_id=rental.id,
            requested_by=rental.rqst_by or "Unknown",
            district=rental.district.dist_nm if rental.district else "N/A",
            section=(rental.section.sect_nm if rental.section else None) or "N/A",
            equipment_type=(rental.nigp.dscr if rental.nigp else None) or "N/A",
            delivery_date=rental.dlvry_rqst_dt.isoformat() if rental.dlvry_rqst_dt else None,
            delivery_location=rental.dlvry_locn,
            approval_link=f"{cfg.get('APP_BASE_URL', '')}/rc/rentals/{rental.id}",
        )
        send_rental_approval_notification(cfg, emails, notice, resubmitted=resubmitted)
    except SQLAlchemyError:
        logger.exception("Error sending rental notification (rental_id=%s)", rental.id)


def submit_rental(s: "Session", payload: dict, user: User) -> Result[Rental]:
    """Create a rental request in Submitted status."""
    ref_error = _check_references(s, payload)
    if ref_error:
        return ref_error

    now = datetime.utcnow()
    rental = Rental(
        rent_status=RENTAL_SUBMITTED,
        submit_dt=now,
        rqst_by=user.username,
        trouble_rent_flg=False,
        created_at=now,
        updated_at=now,
        updated_by_user_id=user.id,
    )
    _apply_payload(rental, payload)
    try:
        s.add(rental)
        s.flush()
        _record_history(s, rental, RENTAL_SUBMITTED, user, note="Initial submission")
        record_event(
            s,
            actor=user,
            action="rental.submit",
            entity_type="Rental",
            entity_id=str(rental.id),
            metadata={"nigp_cd": rental.nigp_cd, "dist_nbr": rental.dist_nbr, "sect_id": rental.sect_id},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error creating rental (user=%s)", user.username)
        return Failure("Failed to submit rental request")

    _notify_rc_users(s, rental, resubmitted=False)
    return Success(rental)


def update_rental_status(s: "Session", rental_id: int, status: str, actor: User) -> Result[Rental]:
    """RC processing step, e.g. Submitted -> Active."""
    if _actor_role(actor) not in PROCESSING_ROLES:
        return Failure("Insufficient permissions")
    if status not in RENTAL_STATUSES:
        return Failure(f"Invalid status: {status}")

    rental = s.get(Rental, rental_id)
    if rental is None:
        return Failure("Rental not found")

    old_status = rental.rent_status
    rental.rent_status = status
    rental.updated_at = datetime.utcnow()
    rental.updated_by_user_id = actor.id
    if status == RENTAL_ACTIVE:
        rental.rcvd_by = actor.username
    try:
        _record_history(s, rental, status, actor)
        record_event(
            s,
            actor=actor,
            action="rental.status",
            entity_type="Rental",
            entity_id=str(rental.id),
            metadata={"old": old_status, "new": status},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error updating rental status (rental_id=%s)", rental_id)
        return Failure("Failed to update rental status")
    return Success(rental)


def deny_rental(s: "Session", rental_id: int, actor: User, reason: str | None = None) -> Result[Rental]:
    if _actor_role(actor) not in PROCESSING_ROLES:
        return Failure("Insufficient permissions")

    rental = s.get(Rental, rental_id)
    if rental is None:
        return Failure("Rental not found")

    reason = (reason or "").strip() or None
    rental.rent_status = RENTAL_DENIED
    rental.spcl_inst = f"[DENIED]: {reason}" if reason else "[DENIED] - Rental request was denied"
    rental.updated_at = datetime.utcnow()
    rental.updated_by_user_id = actor.id
    try:
        _record_history(s, rental, RENTAL_DENIED, actor, note=reason)
        record_event(
            s,
            actor=actor,
            action="rental.deny",
            entity_type="Rental",
            entity_id=str(rental.id),
            reason=reason,
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error denying rental (rental_id=%s)", rental_id)
        return Failure("Failed to deny rental request")
    return Success(rental)


def can_modify(rental: Rental, actor: User) -> bool:
    return rental.rqst_by == actor.username or _actor_role(actor) in OVERRIDE_ROLES


def delete_rental(s: "Session", rental_id: int, actor: User) -> Result[None]:
    """Requester (or Manager/ADMIN) removes a rental that has not been processed yet."""
    rental = s.get(Rental, rental_id)
    if rental is None:
        return Failure("Rental not found")
    if not can_modify(rental, actor):
        return Failure("You don't have permission to delete this rental")
    if rental.rent_status not in RENTAL_OPEN_STATUSES:
        return Failure(f"Cannot delete rental with status: {rental.rent_status}")

    try:
        for link in list(rental.po_links):
            s.delete(link)
        s.delete(rental)
        record_event(
            s,
            actor=actor,
            action="rental.delete",
            entity_type="Rental",
            entity_id=str(rental_id),
            metadata={"status": rental.rent_status, "rqst_by": rental.rqst_by},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error deleting rental (rental_id=%s)", rental_id)
        return Failure("Failed to delete rental request")
    return Success(None)


def update_and_resubmit_rental(s: "Session", rental_id: int, payload: dict, actor: User) -> Result[Rental]:
    """Edit a denied rental and send it back for processing."""
    rental = s.get(Rental, rental_id)
    if rental is None:
        return Failure("Rental not found")
    if not can_modify(rental, actor):
        return Failure("You don't have permission to edit this rental")
    if rental.rent_status != RENTAL_DENIED:
        return Failure("Only denied rentals can be modified and resubmitted")

    ref_error = _check_references(s, payload)
    if ref_error:
        return ref_error

    now = datetime.utcnow()
    _apply_payload(rental, payload)
    rental.rent_status = RENTAL_SUBMITTED
    rental.submit_dt = now
    rental.updated_at = now
    rental.updated_by_user_id = actor.id
    try:
        _record_history(s, rental, "Resubmitted", actor, note="Rental updated and resubmitted")
        record_event(s, actor=actor, action="rental.resubmit", entity_type="Rental", entity_id=str(rental.id))
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error resubmitting rental (rental_id=%s)", rental_id)
        return Failure("Failed to update rental request")

    _notify_rc_users(s, rental, resubmitted=True)
    return Success(rental)


def rental_to_payload(rental: Rental) -> dict:
    """Form values for an existing rental (edit screen)."""
    payload: dict[str, Any] = {
        "dist_nbr": rental.dist_nbr,
        "sect_id": rental.sect_id,
        "nigp_cd": rental.nigp_cd,
        "eqpmt_qty": rental.eqpmt_qty,
        "dlvry_rqst_dt": rental.dlvry_rqst_dt.isoformat() if rental.dlvry_rqst_dt else "",
        "dur_lngth": rental.dur_lngth,
        "dur_uom": rental.dur_uom,
    }
    for key in EDITABLE_FIELDS:
        payload[key] = getattr(rental, key)
    if rental.rent_status == RENTAL_DENIED and (rental.spcl_inst or "").startswith("[DENIED]"):
        # The denial note is not part of what gets resubmitted.
        payload["spcl_inst"] = ""
    return payload


def rental_stats_for(s: "Session", username: str) -> dict[str, int]:
    base = select(func.count(Rental.id)).where(Rental.rqst_by == username)
    return {
        "total": s.scalar(base) or 0,
        "active": s.scalar(base.where(Rental.rent_status.in_(RENTAL_IN_USE_STATUSES))) or 0,
        "pending": s.scalar(base.where(Rental.rent_status.in_(RENTAL_OPEN_STATUSES))) or 0,
    }


def rental_stats_all(s: "Session", today: date | None = None) -> dict[str, int]:
    today = today or date.today()
    base = select(func.count(Rental.id))
    in_use = base.where(Rental.rent_status.in_(RENTAL_IN_USE_STATUSES))
    return {
        "total": s.scalar(base) or 0,
        "pending": s.scalar(base.where(Rental.rent_status.in_(RENTAL_OPEN_STATUSES))) or 0,
        "active": s.scalar(in_use) or 0,
        "overdue": s.scalar(in_use.where(Rental.rental_due_dt < today)) or 0,
    }


def list_rentals_for(s: "Session", username: str, limit: int | None = None) -> list[Rental]:
    q = s.query(Rental).filter(Rental.rqst_by == username).order_by(Rental.submit_dt.desc(), Rental.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def list_recent_rentals(s: "Session", limit: int = 50) -> list[Rental]:
    return s.query(Rental).order_by(Rental.submit_dt.desc(), Rental.id.desc()).limit(limit).all()
