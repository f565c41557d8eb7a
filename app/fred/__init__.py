import logging
import os
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from dotenv import load_dotenv

from app.fred.config import load_config
from app.fred.db import init_db, teardown_db_session
from app.fred.routes import bp as routes_bp
from app.fred.auth import bp as auth_bp, load_current_user
from app.fred.dashboards import es_bp, fin_bp, manager_bp, rc_bp
from app.fred.modules.reference.admin import bp as reference_bp
from app.fred.modules.rentals.admin import es_bp as es_rentals_bp, rc_bp as rc_rentals_bp
from app.fred.modules.purchase_orders.admin import bp as purchase_orders_bp
from app.fred.modules.users.admin import bp as users_bp

_PUBLIC_PREFIXES = ("/static/", "/health", "/healthz")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = (app.config.get("ENV") or "").strip().lower() in ("prod", "production")

    # CSRF protection (minimal)
    from app.fred.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_navigation() -> dict:
        from app.fred.rbac import current_session
        from app.fred.roles import nav_for

        user_session = getattr(g, "user_session", None) or current_session()
        return {
            "user_session": user_session,
            "nav_items": nav_for(user_session.role) if user_session else (),
            "current_path": request.path,
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.template_filter("money")
    def _money_filter(value) -> str:
        if value is None:
            return "-"
        return f"${float(value):,.2f}"

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_PUBLIC_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/logout carry their own checks
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # App-level hooks run before blueprint hooks, so section guards see g.current_user.
    def _load_user_wrapper():
        if request.path.startswith(_PUBLIC_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(reference_bp, url_prefix="/api")
    app.register_blueprint(es_bp, url_prefix="/es")
    app.register_blueprint(es_rentals_bp, url_prefix="/es")
    app.register_blueprint(rc_bp, url_prefix="/rc")
    app.register_blueprint(rc_rentals_bp, url_prefix="/rc")
    app.register_blueprint(purchase_orders_bp, url_prefix="/rc")
    app.register_blueprint(fin_bp, url_prefix="/fin")
    app.register_blueprint(manager_bp, url_prefix="/manager")
    app.register_blueprint(users_bp, url_prefix="/manager")

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return render_template("errors/400.html", message=getattr(e, "description", None)), 400

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
