"""
Role registry: the closed set of user roles, where each role lands after login,
which route sections it may open, and what its side menu shows.

Everything here is built once at import time and never mutated afterwards, so
it is safe to read from any number of concurrent requests.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

LOGIN_PATH = "/login"
HOME_PATH = "/"
DEFAULT_DASHBOARD = "/es/dashboard"


class Role(str, enum.Enum):
    """Roles stored on a user. Values match what is persisted in `users.role`."""

    ES = "ES"
    RC = "RC"
    FIN = "FIN"
    MANAGER = "Manager"
    ADMIN = "ADMIN"
    DIST_USER = "Dist User"
    DATA_ENTRY = "Data Entry"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Map any value onto a role. Only exact stored values match; anything else is UNKNOWN."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(str(value))
        except ValueError:
            return cls.UNKNOWN


# Roles a manager may assign to an account (UNKNOWN is never assignable).
ASSIGNABLE_ROLES: tuple[Role, ...] = tuple(r for r in Role if r is not Role.UNKNOWN)

ROLE_DASHBOARDS: MappingProxyType[Role, str] = MappingProxyType(
    {
        Role.ES: "/es/dashboard",
        Role.RC: "/rc/dashboard",
        Role.FIN: "/fin/dashboard",
        Role.MANAGER: "/manager/dashboard",
        Role.ADMIN: "/manager/dashboard",
        Role.DIST_USER: "/es/dashboard",  # district users share the ES interface
        Role.DATA_ENTRY: "/rc/dashboard",  # data entry shares the RC interface
    }
)


def dashboard_for(role: Any) -> str:
    """Default landing path for a role. Never raises."""
    return ROLE_DASHBOARDS.get(Role.parse(role), DEFAULT_DASHBOARD)


@dataclass(frozen=True)
class RouteSection:
    key: str
    prefix: str
    label: str
    allowed_roles: frozenset[Role]

    def covers(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")


SECTION_ES = RouteSection("es", "/es", "Equipment Specialist", frozenset({Role.ES, Role.DIST_USER}))
SECTION_RC = RouteSection("rc", "/rc", "Rental Coordinator", frozenset({Role.RC, Role.DATA_ENTRY}))
SECTION_FIN = RouteSection("fin", "/fin", "Finance", frozenset({Role.FIN}))
SECTION_MANAGER = RouteSection("manager", "/manager", "Manager", frozenset({Role.MANAGER, Role.ADMIN}))

SECTIONS: tuple[RouteSection, ...] = (SECTION_ES, SECTION_RC, SECTION_FIN, SECTION_MANAGER)


def section_for_path(path: str) -> RouteSection | None:
    for section in SECTIONS:
        if section.covers(path):
            return section
    return None


@dataclass(frozen=True)
class NavItem:
    title: str
    href: str
    icon: str = "doc"

    def is_active(self, path: str) -> bool:
        return path == self.href or path.startswith(self.href + "/")


_ES_NAV = (
    NavItem("Dashboard", "/es/dashboard", "home"),
    NavItem("Submit Rental", "/es/rentals/new", "plus"),
    NavItem("My Rentals", "/es/rentals"),
    NavItem("Reports", "/es/reports", "chart"),
)
_RC_NAV = (
    NavItem("Dashboard", "/rc/dashboard", "home"),
    NavItem("All Rentals", "/rc/rentals"),
    NavItem("Purchase Orders", "/rc/purchase-orders"),
    NavItem("Invoices", "/rc/invoices"),
    NavItem("Reports", "/rc/reports", "chart"),
)
_FIN_NAV = (
    NavItem("Dashboard", "/fin/dashboard", "home"),
    NavItem("Invoices", "/fin/invoices"),
    NavItem("Receipts", "/fin/receipts"),
    NavItem("Reports", "/fin/reports", "chart"),
)
_MANAGER_NAV = (
    NavItem("Dashboard", "/manager/dashboard", "home"),
    NavItem("User Management", "/manager/users"),
    NavItem("System Reports", "/manager/reports", "chart"),
    NavItem("Configuration", "/manager/config"),
)

ROLE_NAVIGATION: MappingProxyType[Role, tuple[NavItem, ...]] = MappingProxyType(
    {
        Role.ES: _ES_NAV,
        Role.DIST_USER: _ES_NAV,
        Role.RC: _RC_NAV,
        Role.DATA_ENTRY: _RC_NAV,
        Role.FIN: _FIN_NAV,
        Role.MANAGER: _MANAGER_NAV,
        Role.ADMIN: _MANAGER_NAV,
    }
)


def nav_for(role: Any) -> tuple[NavItem, ...]:
    return ROLE_NAVIGATION.get(Role.parse(role), _ES_NAV)
