from __future__ import annotations

from flask import Blueprint

from app.fred.db import db_session
from app.fred.modules.reference.service import list_sections_by_district
from app.fred.rbac import require_login

bp = Blueprint("reference", __name__)


@bp.get("/districts/<int:dist_nbr>/sections")
@require_login
def district_sections(dist_nbr: int):
    """Sections for the rental form's district picker. Returns JSON."""
    result = list_sections_by_district(db_session(), dist_nbr)
    if not result.ok:
        return {"success": False, "error": result.message}, 500
    return {
        "success": True,
        "data": [{"sect_id": o.sect_id, "sect_nbr": o.sect_nbr, "sect_nm": o.sect_nm, "label": o.label} for o in result.data],
    }
