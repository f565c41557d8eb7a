from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.fred.db import db_session
from app.fred.models import User
from app.fred.modules.reference.service import list_districts, list_sections_by_district
from app.fred.modules.users.service import list_users, reset_user_password, update_user
from app.fred.rbac import protect_section
from app.fred.results import Success, fetch_all
from app.fred.roles import ASSIGNABLE_ROLES, SECTION_MANAGER

bp = protect_section(Blueprint("users", __name__), SECTION_MANAGER)

USER_FIELDS = ("first_name", "last_name", "email", "phone", "role", "is_active", "dist_nbr", "sect_id")


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/users")
def users_list():
    return render_template("manager/users/list.html", users=list_users(db_session()))


@bp.get("/users/<int:user_id>")
def users_detail(user_id: int):
    s = db_session()
    account = s.get(User, user_id)
    if not account:
        abort(404)
    dist_nbr = account.dist_nbr
    # Both lists must load before the edit form is shown.
    loaded = fetch_all(
        list_districts,
        (lambda rs: list_sections_by_district(rs, dist_nbr)) if dist_nbr else (lambda rs: Success([])),
    )
    if not loaded.ok:
        return render_template("manager/users/detail.html", account=account, load_error=loaded.message)
    districts, sections = loaded.data
    return render_template(
        "manager/users/detail.html",
        account=account,
        roles=ASSIGNABLE_ROLES,
        districts=districts,
        sections=sections,
    )


@bp.post("/users/<int:user_id>/update")
def users_update(user_id: int):
    payload = {key: request.form.get(key) for key in USER_FIELDS}
    result = update_user(db_session(), user_id, payload, _current_user())
    if not result.ok:
        flash(result.message, "danger")
    else:
        flash(f"Account updated for {result.data.username}.", "success")
    return redirect(url_for("users.users_detail", user_id=user_id))


@bp.post("/users/<int:user_id>/reset-password")
def users_reset_password(user_id: int):
    result = reset_user_password(
        db_session(),
        user_id,
        request.form.get("password") or "",
        request.form.get("password_confirm") or "",
        _current_user(),
    )
    if not result.ok:
        flash(result.message, "danger")
    else:
        flash(f"Password reset for {result.data.username}.", "success")
    return redirect(url_for("users.users_detail", user_id=user_id))
