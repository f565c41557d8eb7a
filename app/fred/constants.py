"""
Central constants for the FRED application.
"""
from __future__ import annotations

# Rental lifecycle
RENTAL_SUBMITTED = "Submitted"
RENTAL_PENDING = "Pending"
RENTAL_ACTIVE = "Active"
RENTAL_DELIVERED = "Delivered"
RENTAL_COMPLETED = "Completed"
RENTAL_DENIED = "Denied"
RENTAL_CANCELLED = "Cancelled"

RENTAL_STATUSES = (
    RENTAL_SUBMITTED,
    RENTAL_PENDING,
    RENTAL_ACTIVE,
    RENTAL_DELIVERED,
    RENTAL_COMPLETED,
    RENTAL_DENIED,
    RENTAL_CANCELLED,
)

# Awaiting RC processing; also the only statuses an ES may still delete.
RENTAL_OPEN_STATUSES = frozenset({RENTAL_SUBMITTED, RENTAL_PENDING})
# Equipment is out with the requester.
RENTAL_IN_USE_STATUSES = frozenset({RENTAL_ACTIVE, RENTAL_DELIVERED})
# A PO cannot be closed while linked rentals are in any of these.
RENTAL_BLOCKS_PO_CLOSE = frozenset({RENTAL_ACTIVE, RENTAL_DELIVERED, RENTAL_PENDING})

DURATION_UNITS = ("Days", "Weeks", "Months")

# Chartfield form keys, in display order, with labels.
CHARTFIELDS = (
    ("cf_dept_nbr", "Department"),
    ("cf_acct_nbr", "Account"),
    ("cf_approp_yr", "Appropriation Year"),
    ("cf_approp_class", "Appropriation Class"),
    ("cf_fund", "Fund"),
    ("cf_bus_unit", "Business Unit"),
    ("cf_proj", "Project"),
    ("cf_actv", "Activity"),
    ("cf_src_type", "Source Type"),
    ("cf_task", "Task"),
)

# Purchase order workflow
PO_DRAFT = "Draft"
PO_OPEN = "Open"
PO_ACTIVE = "Active"
PO_CLOSED = "Closed"
PO_CANCELLED = "Cancelled"

PO_STATUSES = (PO_DRAFT, PO_OPEN, PO_ACTIVE, PO_CLOSED, PO_CANCELLED)

# Current status -> statuses it may move to. Closed and Cancelled are terminal.
PO_STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    PO_DRAFT: (PO_OPEN, PO_CANCELLED),
    PO_OPEN: (PO_ACTIVE, PO_CANCELLED),
    PO_ACTIVE: (PO_CLOSED, PO_CANCELLED),
    PO_CLOSED: (),
    PO_CANCELLED: (),
}

# A new PO may start in either of these.
PO_INITIAL_STATUSES = (PO_DRAFT, PO_OPEN)

DEFAULT_PO_TYPES = ("Standard", "Fleet", "Call-Off", "Emergency")
