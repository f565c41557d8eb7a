"""Role registry and guard: pure functions, no app needed."""
import pytest

from app.fred.rbac import Allow, RedirectTo, UserSession, guard, guard_path, resolve_landing
from app.fred.roles import (
    ROLE_DASHBOARDS,
    SECTION_ES,
    SECTION_FIN,
    SECTION_MANAGER,
    SECTION_RC,
    SECTIONS,
    Role,
    dashboard_for,
    nav_for,
    section_for_path,
)

EXPECTED_DASHBOARDS = {
    "ES": "/es/dashboard",
    "RC": "/rc/dashboard",
    "FIN": "/fin/dashboard",
    "Manager": "/manager/dashboard",
    "ADMIN": "/manager/dashboard",
    "Dist User": "/es/dashboard",
    "Data Entry": "/rc/dashboard",
}


@pytest.mark.parametrize("role,path", sorted(EXPECTED_DASHBOARDS.items()))
def test_dashboard_for_known_roles(role, path):
    assert dashboard_for(role) == path
    assert dashboard_for(Role(role)) == path


@pytest.mark.parametrize("value", ["", "admin", "manager", "es ", " RC ", "FIN\n", "\tManager", " ADMIN", "ADMIN ", "Dist user", "SuperUser", None, 42])
def test_dashboard_for_unknown_values_defaults_to_es(value):
    assert dashboard_for(value) == "/es/dashboard"


def test_role_parse_is_total():
    assert Role.parse("Dist User") is Role.DIST_USER
    assert Role.parse(" RC ") is Role.UNKNOWN
    assert Role.parse("rc") is Role.UNKNOWN
    assert Role.parse("nope") is Role.UNKNOWN
    assert Role.parse(None) is Role.UNKNOWN
    assert Role.parse(Role.FIN) is Role.FIN


def test_role_table_is_read_only():
    with pytest.raises(TypeError):
        ROLE_DASHBOARDS[Role.ES] = "/elsewhere"  # type: ignore[index]


def test_guard_without_session_redirects_to_login():
    for section in SECTIONS:
        assert guard(None, section.allowed_roles) == RedirectTo("/login")
    assert guard(None, []) == RedirectTo("/login")


@pytest.mark.parametrize("role", list(Role))
def test_guard_decision_matches_allowed_set(role):
    session = UserSession(user_id=1, role=role, username="u")
    for section in SECTIONS:
        decision = guard(session, section.allowed_roles)
        if role in section.allowed_roles:
            assert decision == Allow(session)
            assert decision.session is session
        else:
            assert decision == RedirectTo("/")


def test_guard_accepts_role_strings():
    session = UserSession(user_id=1, role=Role.MANAGER)
    assert isinstance(guard(session, ["Manager", "ADMIN"]), Allow)
    assert guard(session, ["ES"]) == RedirectTo("/")


def test_guard_is_repeatable():
    session = UserSession(user_id=3, role=Role.FIN)
    assert guard(session, SECTION_ES.allowed_roles) == guard(session, SECTION_ES.allowed_roles)


def test_section_table():
    assert SECTION_ES.allowed_roles == {Role.ES, Role.DIST_USER}
    assert SECTION_RC.allowed_roles == {Role.RC, Role.DATA_ENTRY}
    assert SECTION_FIN.allowed_roles == {Role.FIN}
    assert SECTION_MANAGER.allowed_roles == {Role.MANAGER, Role.ADMIN}


def test_section_for_path():
    assert section_for_path("/es/rentals/new") is SECTION_ES
    assert section_for_path("/rc") is SECTION_RC
    assert section_for_path("/manager/config") is SECTION_MANAGER
    assert section_for_path("/establish") is None
    assert section_for_path("/login") is None


def test_guard_path():
    fin = UserSession(user_id=1, role=Role.FIN)
    assert guard_path(fin, "/es/rentals/new") == RedirectTo("/")
    assert guard_path(fin, "/fin/receipts") == Allow(fin)
    assert guard_path(None, "/api/districts/1/sections") == RedirectTo("/login")
    assert guard_path(fin, "/api/districts/1/sections") == Allow(fin)


def test_resolve_landing():
    assert resolve_landing(None) == "/login"
    session = UserSession(user_id=9, role=Role.DATA_ENTRY)
    first = resolve_landing(session)
    assert first == "/rc/dashboard"
    assert resolve_landing(session) == first


def test_navigation_per_role():
    assert [i.href for i in nav_for("ES")] == ["/es/dashboard", "/es/rentals/new", "/es/rentals", "/es/reports"]
    assert nav_for(Role.DIST_USER) == nav_for(Role.ES)
    assert nav_for("Data Entry") == nav_for("RC")
    assert nav_for("ADMIN") == nav_for("Manager")
    assert nav_for("FIN")[0].href == "/fin/dashboard"
    assert nav_for("who knows") == nav_for("ES")


def test_nav_item_active_state():
    item = nav_for("RC")[2]
    assert item.href == "/rc/purchase-orders"
    assert item.is_active("/rc/purchase-orders/4/edit")
    assert not item.is_active("/rc/rentals")
