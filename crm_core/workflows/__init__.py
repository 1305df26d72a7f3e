# crm_core/workflows/__init__.py
from __future__ import annotations

import re
from typing import Any, Dict, FrozenSet, List, Tuple


# ===============================================================
# Canonical customer pipeline
# ===============================================================

NOT_HANDLED = "not_handled"
NO_ANSWER = "no_answer"
CALL_AGAIN = "call_again"
NOT_INTERESTED = "not_interested"
MEETING_BOOKED = "meeting_booked"
QUOTATION_STAGE = "quotation_stage"
EXTENDED_WATER_TEST = "extended_water_test"
SOLD = "sold"
READY_FOR_INSTALLATION = "ready_for_installation"
INSTALLATION_COMPLETE = "installation_complete"
ARCHIVED = "archived"

# Pipeline order; also the order used for statistics.
CUSTOMER_STATUSES: Tuple[str, ...] = (
    NOT_HANDLED,
    NO_ANSWER,
    CALL_AGAIN,
    MEETING_BOOKED,
    QUOTATION_STAGE,
    EXTENDED_WATER_TEST,
    SOLD,
    READY_FOR_INSTALLATION,
    INSTALLATION_COMPLETE,
    NOT_INTERESTED,
    ARCHIVED,
)

STATUS_LABELS: Dict[str, str] = {
    NOT_HANDLED: "Ej hanterad",
    NO_ANSWER: "Inget svar",
    CALL_AGAIN: "Ring igen",
    MEETING_BOOKED: "Möte bokat",
    QUOTATION_STAGE: "Offert",
    EXTENDED_WATER_TEST: "Utökad vattenanalys",
    SOLD: "Såld",
    READY_FOR_INSTALLATION: "Redo för installation",
    INSTALLATION_COMPLETE: "Installation klar",
    NOT_INTERESTED: "Ej intresserad",
    ARCHIVED: "Arkiverad",
}

STATUS_CHOICES = [(s, STATUS_LABELS[s]) for s in CUSTOMER_STATUSES]


# ===============================================================
# Roles
# ===============================================================

SALESPERSON = "salesperson"
INTERNAL = "internal"
INSTALLER = "installer"
ADMIN = "admin"

ROLES: Tuple[str, ...] = (SALESPERSON, INTERNAL, INSTALLER, ADMIN)

ROLE_LABELS: Dict[str, str] = {
    SALESPERSON: "Säljare",
    INTERNAL: "Intern personal",
    INSTALLER: "Montör",
    ADMIN: "Administratör",
}

ROLE_CHOICES = [(r, ROLE_LABELS[r]) for r in ROLES]

# Roles whose moves are limited to customers they own (or unassigned ones).
OWNERSHIP_RESTRICTED_ROLES: FrozenSet[str] = frozenset({SALESPERSON})

ROLE_ALIASES: Dict[str, str] = {
    "SALESPERSON": SALESPERSON,
    "SALES": SALESPERSON,
    "SELLER": SALESPERSON,
    "SALJARE": SALESPERSON,
    "SÄLJARE": SALESPERSON,
    "INTERNAL": INTERNAL,
    "INHOUSE": INTERNAL,
    "IN_HOUSE": INTERNAL,
    "INTERN": INTERNAL,
    "INSTALLER": INSTALLER,
    "MONTOR": INSTALLER,
    "MONTÖR": INSTALLER,
    "ADMIN": ADMIN,
    "ADMINISTRATOR": ADMIN,
    "SUPERUSER": ADMIN,
}


def normalize_role(value: Any) -> str:
    """
    Canonicalize role strings so small formatting differences
    ("In-House", "INHOUSE", "in house") do not break permission logic.

    Unknown values are returned lower-cased; they map to no transitions.
    """
    r = str(value or "").strip().upper()
    if not r:
        return ""
    r = re.sub(r"[\s\-]+", "_", r)
    r = re.sub(r"_+", "_", r)
    return ROLE_ALIASES.get(r, r.lower())


def normalize_status(value: Any) -> str:
    return str(value or "").strip().lower()


def is_valid_status(value: Any) -> bool:
    return normalize_status(value) in CUSTOMER_STATUSES


def is_known_role(value: Any) -> bool:
    return normalize_role(value) in ROLES


# ===============================================================
# Status matrix (single source of truth)
# ===============================================================

_LEAD_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    NOT_HANDLED: frozenset({NO_ANSWER, CALL_AGAIN, NOT_INTERESTED, MEETING_BOOKED}),
    NO_ANSWER: frozenset({CALL_AGAIN, NOT_INTERESTED, MEETING_BOOKED}),
    CALL_AGAIN: frozenset({NO_ANSWER, NOT_INTERESTED, MEETING_BOOKED}),
    MEETING_BOOKED: frozenset({QUOTATION_STAGE, NOT_INTERESTED}),
    QUOTATION_STAGE: frozenset({EXTENDED_WATER_TEST, SOLD, NOT_INTERESTED}),
    EXTENDED_WATER_TEST: frozenset({SOLD, NOT_INTERESTED}),
}

_EMPTY: FrozenSet[str] = frozenset()

ROLE_TRANSITIONS: Dict[str, Dict[str, FrozenSet[str]]] = {
    SALESPERSON: {
        **_LEAD_TRANSITIONS,
        SOLD: _EMPTY,
        READY_FOR_INSTALLATION: _EMPTY,
        INSTALLATION_COMPLETE: _EMPTY,
        NOT_INTERESTED: frozenset({CALL_AGAIN}),  # reactivate a lost lead
        ARCHIVED: _EMPTY,
    },
    INTERNAL: {
        **_LEAD_TRANSITIONS,
        SOLD: frozenset({READY_FOR_INSTALLATION}),
        READY_FOR_INSTALLATION: frozenset({INSTALLATION_COMPLETE}),
        INSTALLATION_COMPLETE: frozenset({ARCHIVED}),
        NOT_INTERESTED: frozenset({ARCHIVED}),
        ARCHIVED: _EMPTY,
    },
    INSTALLER: {
        **{s: _EMPTY for s in CUSTOMER_STATUSES},
        READY_FOR_INSTALLATION: frozenset({INSTALLATION_COMPLETE}),
    },
    # Unrestricted: any status to any other status.
    ADMIN: {
        s: frozenset(CUSTOMER_STATUSES) - {s} for s in CUSTOMER_STATUSES
    },
}

# Moving a customer into one of these hands it over to another team.
HANDOFF_RECIPIENT_ROLES: Dict[str, str] = {
    SOLD: INTERNAL,
    READY_FOR_INSTALLATION: INSTALLER,
}


def allowed_next_statuses(role: Any, current: Any) -> FrozenSet[str]:
    """
    Total lookup over (role x status): unknown roles or statuses yield
    an empty set, never an error.
    """
    by_status = ROLE_TRANSITIONS.get(normalize_role(role))
    if by_status is None:
        return _EMPTY
    return by_status.get(normalize_status(current), _EMPTY)


def is_terminal_for(role: Any, current: Any) -> bool:
    return not allowed_next_statuses(role, current)


def roles_allowed(current: Any, target: Any) -> List[str]:
    """
    Roles that may perform current -> target, in canonical role order.
    """
    tgt = normalize_status(target)
    return [r for r in ROLES if tgt in allowed_next_statuses(r, current)]


def workflow_definition() -> Dict[str, Any]:
    """
    Stable JSON-serializable definition for clients.
    """
    return {
        "statuses": [
            {"id": s, "label": STATUS_LABELS[s]} for s in CUSTOMER_STATUSES
        ],
        "roles": [{"id": r, "label": ROLE_LABELS[r]} for r in ROLES],
        "transitions": {
            role: {
                status: [t for t in CUSTOMER_STATUSES if t in nxt]
                for status, nxt in by_status.items()
            }
            for role, by_status in ROLE_TRANSITIONS.items()
        },
        "terminal_statuses": {
            role: [s for s in CUSTOMER_STATUSES if is_terminal_for(role, s)]
            for role in ROLES
        },
        "handoff_statuses": dict(HANDOFF_RECIPIENT_ROLES),
    }


__all__ = [
    "CUSTOMER_STATUSES",
    "STATUS_CHOICES",
    "STATUS_LABELS",
    "ROLES",
    "ROLE_CHOICES",
    "ROLE_LABELS",
    "ROLE_TRANSITIONS",
    "HANDOFF_RECIPIENT_ROLES",
    "OWNERSHIP_RESTRICTED_ROLES",
    "allowed_next_statuses",
    "is_terminal_for",
    "is_valid_status",
    "is_known_role",
    "normalize_role",
    "normalize_status",
    "roles_allowed",
    "workflow_definition",
]
