# crm_core/workflows/validator.py
"""
Pure transition decision: (actor, customer state, requested status) -> Decision.

No database access and no side effects, so it can be checked exhaustively
and reused by the board client before it makes any network call.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from crm_core.workflows import (
    OWNERSHIP_RESTRICTED_ROLES,
    allowed_next_statuses,
    is_known_role,
    is_valid_status,
    normalize_role,
    normalize_status,
)


CODE_ROLE_UNKNOWN = "role_unknown"
CODE_STATUS_INVALID = "status_invalid"
CODE_NOT_ALLOWED = "transition_not_allowed"
CODE_NOT_OWNER = "not_owner"


@dataclass(frozen=True)
class CustomerState:
    status: str
    assigned_to_id: Optional[Any] = None

    @classmethod
    def of(cls, customer: Any) -> "CustomerState":
        """
        Accepts a Customer model instance, an API payload mapping
        ("assigned_to" holds the user id) or a CustomerState.
        """
        if isinstance(customer, CustomerState):
            return customer
        if isinstance(customer, Mapping):
            assigned = customer.get("assigned_to_id", customer.get("assigned_to"))
            return cls(status=normalize_status(customer.get("status")), assigned_to_id=assigned)
        return cls(
            status=normalize_status(getattr(customer, "status", "")),
            assigned_to_id=getattr(customer, "assigned_to_id", None),
        )


@dataclass(frozen=True)
class Decision:
    allowed: bool
    code: str = ""
    reason: str = ""
    noop: bool = False

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)


def _deny(code: str, reason: str) -> Decision:
    return Decision(allowed=False, code=code, reason=reason)


def _same_user(a: Any, b: Any) -> bool:
    return str(a) == str(b)


def validate_transition(actor, customer: Any, requested_status: Any) -> Decision:
    role = normalize_role(getattr(actor, "role", ""))
    state = CustomerState.of(customer)
    current = state.status
    target = normalize_status(requested_status)

    if not is_known_role(role):
        return _deny(CODE_ROLE_UNKNOWN, "Your account has no CRM role.")

    if not is_valid_status(target):
        return _deny(CODE_STATUS_INVALID, f"Unknown customer status: {requested_status}")

    candidates = allowed_next_statuses(role, current)

    # Same status: allowed only for a role that could act on the card at all.
    if current == target:
        if not candidates:
            return _deny(
                CODE_NOT_ALLOWED,
                f"Role {role} cannot move customers in {current or 'unknown'}",
            )
        if not _owns(role, state, actor):
            return _deny(CODE_NOT_OWNER, "You can only move customers assigned to you")
        return Decision(allowed=True, noop=True)

    if target not in candidates:
        return _deny(
            CODE_NOT_ALLOWED,
            f"Role {role} cannot move customer from {current or 'unknown'} to {target}",
        )

    if not _owns(role, state, actor):
        return _deny(CODE_NOT_OWNER, "You can only move customers assigned to you")

    return ALLOW


def _owns(role: str, state: CustomerState, actor) -> bool:
    if role not in OWNERSHIP_RESTRICTED_ROLES or state.assigned_to_id is None:
        return True
    return _same_user(state.assigned_to_id, getattr(actor, "id", None))


def claims_ownership(actor, customer: Any) -> bool:
    """
    First touch claims ownership: a salesperson moving an unassigned
    customer becomes its owner.
    """
    role = normalize_role(getattr(actor, "role", ""))
    return role in OWNERSHIP_RESTRICTED_ROLES and CustomerState.of(customer).assigned_to_id is None
