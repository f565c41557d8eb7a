"""
Seed reference data and one account per role (idempotent).

Existing rows are left alone, so re-running never overwrites a password that
was changed after the first seed.

Usage:
  python scripts/init_db.py
"""
from __future__ import annotations

import os
import sys
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from werkzeug.security import generate_password_hash  # noqa: E402

from app.fred.models import User  # noqa: E402
from app.fred.modules.reference.models import District, NigpCode, Section  # noqa: E402
from app.fred.roles import Role  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402

DISTRICTS = (
    (1, "Paris", "PAR"),
    (2, "Fort Worth", "FTW"),
    (12, "Houston", "HOU"),
    (14, "Austin", "AUS"),
    (15, "San Antonio", "SAT"),
)

# (dist_nbr, sect_nbr, sect_nm)
SECTIONS = (
    (1, "01", "Paris Maintenance"),
    (1, "02", "Sulphur Springs Maintenance"),
    (2, "01", "Fort Worth Maintenance"),
    (12, "01", "Houston North Maintenance"),
    (12, "02", "Houston South Maintenance"),
    (14, "01", "Austin Maintenance"),
    (14, "02", "Georgetown Maintenance"),
    (15, "01", "San Antonio Maintenance"),
)

NIGP_CODES = (
    ("07045", "Backhoe Loader", Decimal("3200.00")),
    ("07060", "Skid Steer Loader", Decimal("2400.00")),
    ("07070", "Excavator, Crawler", Decimal("5800.00")),
    ("07082", "Motor Grader", Decimal("7400.00")),
    ("07555", "Roller, Vibratory", Decimal("2900.00")),
    ("06540", "Message Board, Portable", Decimal("950.00")),
    ("06512", "Arrow Board, Trailer Mounted", Decimal("600.00")),
    ("07240", "Water Truck", Decimal("4100.00")),
)

# One account per role; username -> (role, first, last)
SEED_USERS = (
    ("esuser1", Role.ES, "Erin", "Specialist"),
    ("rcuser1", Role.RC, "Riley", "Coordinator"),
    ("finuser1", Role.FIN, "Frankie", "Finance"),
    ("manager1", Role.MANAGER, "Morgan", "Manager"),
    ("admin", Role.ADMIN, "System", "Admin"),
    ("distuser1", Role.DIST_USER, "Dana", "District"),
    ("dataentry1", Role.DATA_ENTRY, "Devon", "Entry"),
)


def seed_only(*, database_url: str | None = None) -> None:
    password = os.environ.get("SEED_USER_PASSWORD") or "change-me"
    admin_password = os.environ.get("ADMIN_PASSWORD") or password
    email_domain = (os.environ.get("SEED_EMAIL_DOMAIN") or "example.com").strip()

    db_url = resolve_database_url(database_url)

    with script_session(db_url) as s:
        for dist_nbr, name, abbr in DISTRICTS:
            if s.get(District, dist_nbr) is None:
                s.add(District(dist_nbr=dist_nbr, dist_nm=name, dist_abrvn=abbr))
        s.flush()

        for dist_nbr, sect_nbr, sect_nm in SECTIONS:
            exists = (
                s.query(Section)
                .filter(Section.dist_nbr == dist_nbr, Section.sect_nbr == sect_nbr)
                .one_or_none()
            )
            if exists is None:
                s.add(Section(dist_nbr=dist_nbr, sect_nbr=sect_nbr, sect_nm=sect_nm))

        for code, dscr, rate in NIGP_CODES:
            if s.get(NigpCode, code) is None:
                s.add(NigpCode(nigp_cd=code, dscr=dscr, avg_monthly_rate=rate))
        s.flush()

        for username, role, first, last in SEED_USERS:
            if s.query(User).filter(User.username == username).one_or_none() is not None:
                continue
            pw = admin_password if role is Role.ADMIN else password
            s.add(
                User(
                    username=username,
                    password_hash=generate_password_hash(pw),
                    role=role.value,
                    first_name=first,
                    last_name=last,
                    email=f"{username}@{email_domain}",
                    dist_nbr=14,
                    is_active=True,
                )
            )

    print("Initialized database (seed_only).")
    print(f"Seeded accounts: {', '.join(u for u, *_ in SEED_USERS)}")
    print("Passwords: (from SEED_USER_PASSWORD / ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
