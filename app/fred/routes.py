from flask import Blueprint, current_app, redirect, render_template

from app.fred.rbac import Allow, current_session, guard_path, resolve_landing

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    """Send the visitor to wherever their role lands."""
    user_session = current_session()
    landing = resolve_landing(user_session)
    if user_session is not None and not isinstance(guard_path(user_session, landing), Allow):
        # Unknown roles land on a section they cannot open; stop here instead of looping.
        current_app.logger.warning(
            "No section available for user %s (role=%s)", user_session.username, user_session.role
        )
        return render_template("errors/no_access.html", user_session=user_session)
    return redirect(landing)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """Liveness probe. No DB access."""
    return "ok", 200
