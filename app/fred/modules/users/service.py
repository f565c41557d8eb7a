from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from app.fred.audit import record_event
from app.fred.models import User
from app.fred.modules.reference.models import District, Section
from app.fred.results import Failure, Result, Success
from app.fred.roles import ASSIGNABLE_ROLES, Role

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({Role.MANAGER, Role.ADMIN})
MIN_PASSWORD_LENGTH = 8
_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


def _is_admin(actor: User) -> bool:
    return Role.parse(actor.role) in ADMIN_ROLES


def list_users(s: "Session") -> list[User]:
    return s.query(User).order_by(User.username.asc()).all()


def user_counts(s: "Session") -> dict[str, int]:
    """Active users per role, for the manager dashboard."""
    counts = {str(r): 0 for r in ASSIGNABLE_ROLES}
    for (role,) in s.query(User.role).filter(User.is_active.is_(True)).all():
        key = str(Role.parse(role))
        counts[key] = counts.get(key, 0) + 1
    return counts


def validate_user_payload(payload: dict) -> list[str]:
    errors = []
    if Role.parse(payload.get("role")) not in ASSIGNABLE_ROLES:
        errors.append(f"Role must be one of: {', '.join(str(r) for r in ASSIGNABLE_ROLES)}")
    email = (payload.get("email") or "").strip()
    if email and not _EMAIL_RE.fullmatch(email):
        errors.append("Email address is not valid.")
    return errors


def update_user(s: "Session", user_id: int, payload: dict, actor: User) -> Result[User]:
    if not _is_admin(actor):
        return Failure("Insufficient permissions")
    user = s.get(User, user_id)
    if user is None:
        return Failure("User not found")

    errors = validate_user_payload(payload)
    if errors:
        return Failure(" ".join(errors))

    is_active = str(payload.get("is_active") or "") in ("1", "on", "true")
    role = str(Role.parse(payload.get("role")))
    if user.id == actor.id and (not is_active or role != user.role):
        return Failure("You cannot change your own role or deactivate your own account.")

    dist_nbr = _optional_int(payload.get("dist_nbr"))
    sect_id = _optional_int(payload.get("sect_id"))
    if dist_nbr is not None and s.get(District, dist_nbr) is None:
        return Failure("Selected district does not exist.")
    if sect_id is not None:
        section = s.get(Section, sect_id)
        if section is None or (dist_nbr is not None and section.dist_nbr != dist_nbr):
            return Failure("Selected section does not belong to the district.")

    before = {"role": user.role, "is_active": user.is_active, "email": user.email}
    user.first_name = (payload.get("first_name") or "").strip() or None
    user.last_name = (payload.get("last_name") or "").strip() or None
    user.email = (payload.get("email") or "").strip() or None
    user.phone = (payload.get("phone") or "").strip() or None
    user.role = role
    user.is_active = is_active
    user.dist_nbr = dist_nbr
    user.sect_id = sect_id
    user.updated_at = datetime.utcnow()
    user.updated_by_user_id = actor.id
    after = {"role": user.role, "is_active": user.is_active, "email": user.email}

    try:
        record_event(
            s,
            actor=actor,
            action="user.update",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"before": before, "after": after},
        )
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error updating user (user_id=%s)", user_id)
        return Failure("Failed to update user")
    return Success(user)


def reset_user_password(s: "Session", user_id: int, password: str, password_confirm: str, actor: User) -> Result[User]:
    if not _is_admin(actor):
        return Failure("Insufficient permissions")
    user = s.get(User, user_id)
    if user is None:
        return Failure("User not found")
    if not password:
        return Failure("Password is required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        return Failure(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if password != password_confirm:
        return Failure("Passwords do not match.")

    user.password_hash = generate_password_hash(password)
    user.updated_at = datetime.utcnow()
    user.updated_by_user_id = actor.id
    try:
        record_event(s, actor=actor, action="user.reset_password", entity_type="User", entity_id=str(user.id))
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("Error resetting password (user_id=%s)", user_id)
        return Failure("Failed to reset password")
    return Success(user)


def _optional_int(raw) -> int | None:
    try:
        return int(raw) if raw not in (None, "") else None
    except (TypeError, ValueError):
        return None
