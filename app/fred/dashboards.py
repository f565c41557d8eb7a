"""
Section landing pages and the pages that are still placeholders.

Every blueprint here is bound to one route section, so the section guard has
already run before any of these views.
"""
from __future__ import annotations

from datetime import date

from flask import Blueprint, g, render_template

from app.fred.db import db_session
from app.fred.modules.purchase_orders.service import po_stats
from app.fred.modules.rentals.service import list_recent_rentals, list_rentals_for, rental_stats_all, rental_stats_for
from app.fred.modules.users.service import user_counts
from app.fred.rbac import protect_section
from app.fred.roles import SECTION_ES, SECTION_FIN, SECTION_MANAGER, SECTION_RC

es_bp = protect_section(Blueprint("es", __name__), SECTION_ES)
rc_bp = protect_section(Blueprint("rc", __name__), SECTION_RC)
fin_bp = protect_section(Blueprint("fin", __name__), SECTION_FIN)
manager_bp = protect_section(Blueprint("manager", __name__), SECTION_MANAGER)


def _placeholder(title: str, blurb: str):
    return render_template("sections/placeholder.html", title=title, blurb=blurb)


# ---------- ES ----------
@es_bp.get("/dashboard")
def es_dashboard():
    s = db_session()
    username = g.user_session.username
    return render_template(
        "es/dashboard.html",
        stats=rental_stats_for(s, username),
        recent=list_rentals_for(s, username, limit=5),
    )


@es_bp.get("/reports")
def es_reports():
    return _placeholder("Reports", "Rental history and cost reports for your requests.")


# ---------- RC ----------
@rc_bp.get("/dashboard")
def rc_dashboard():
    s = db_session()
    return render_template(
        "rc/dashboard.html",
        stats=rental_stats_all(s),
        po=po_stats(s),
        recent=list_recent_rentals(s, limit=10),
        today=date.today(),
    )


@rc_bp.get("/invoices")
def rc_invoices():
    return _placeholder("Invoices", "Vendor invoices matched against purchase orders.")


@rc_bp.get("/reports")
def rc_reports():
    return _placeholder("Reports", "Rental activity and purchase order reports.")


# ---------- FIN ----------
@fin_bp.get("/dashboard")
def fin_dashboard():
    s = db_session()
    return render_template("fin/dashboard.html", po=po_stats(s), stats=rental_stats_all(s))


@fin_bp.get("/invoices")
def fin_invoices():
    return _placeholder("Invoices", "Invoices awaiting payment processing.")


@fin_bp.get("/receipts")
def fin_receipts():
    return _placeholder("Receipts", "Receipts recorded against purchase orders.")


@fin_bp.get("/reports")
def fin_reports():
    return _placeholder("Reports", "Spend by district, fund and vendor.")


# ---------- Manager ----------
@manager_bp.get("/dashboard")
def manager_dashboard():
    s = db_session()
    return render_template(
        "manager/dashboard.html",
        users=user_counts(s),
        stats=rental_stats_all(s),
        po=po_stats(s),
    )


@manager_bp.get("/reports")
def manager_reports():
    return _placeholder("System Reports", "Usage and workflow reports across all districts.")


@manager_bp.get("/config")
def manager_config():
    return _placeholder("Configuration", "System settings and reference data maintenance.")
