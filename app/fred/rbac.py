from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import wraps
from typing import Any, Union

from flask import Blueprint, current_app, g, redirect, request

from app.fred.roles import HOME_PATH, LOGIN_PATH, Role, RouteSection, dashboard_for, section_for_path


@dataclass(frozen=True)
class UserSession:
    user_id: int
    role: Role
    username: str = ""
    display_name: str = ""


@dataclass(frozen=True)
class Allow:
    session: UserSession


@dataclass(frozen=True)
class RedirectTo:
    path: str


GuardDecision = Union[Allow, RedirectTo]


def guard(session: UserSession | None, allowed_roles: Iterable[Any]) -> GuardDecision:
    """
    Entry check for a protected section. Pure: same inputs, same decision.
    """
    if session is None:
        return RedirectTo(LOGIN_PATH)
    allowed = {Role.parse(r) for r in allowed_roles}
    if session.role not in allowed:
        return RedirectTo(HOME_PATH)
    return Allow(session)


def guard_path(session: UserSession | None, path: str) -> GuardDecision:
    """Apply the section table to an arbitrary path (unprotected paths only need a session)."""
    section = section_for_path(path)
    if section is not None:
        return guard(session, section.allowed_roles)
    if session is None:
        return RedirectTo(LOGIN_PATH)
    return Allow(session)


def resolve_landing(session: UserSession | None) -> str:
    if session is None:
        return LOGIN_PATH
    return dashboard_for(session.role)


def current_session() -> UserSession | None:
    user = getattr(g, "current_user", None)
    if not user or not user.is_active:
        return None
    return UserSession(
        user_id=user.id,
        role=Role.parse(user.role),
        username=user.username,
        display_name=user.display_name,
    )


def user_has_role(session: UserSession | None, roles: Iterable[Any]) -> bool:
    return session is not None and session.role in {Role.parse(r) for r in roles}


def protect_section(bp: Blueprint, section: RouteSection) -> Blueprint:
    """
    Run the section guard before every view on `bp`. The redirect is decided by
    `guard`; this layer only turns the decision into a response.
    """

    @bp.before_request
    def _section_guard():
        decision = guard(current_session(), section.allowed_roles)
        if isinstance(decision, RedirectTo):
            current_app.logger.info(
                "Section guard: %s denied for %s -> %s (request_id=%s)",
                section.key,
                request.path,
                decision.path,
                getattr(g, "request_id", None),
            )
            return redirect(decision.path)
        g.section = section
        g.user_session = decision.session
        return None

    return bp


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if current_session() is None:
            return redirect(LOGIN_PATH)
        return fn(*args, **kwargs)

    return wrapped
