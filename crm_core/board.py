# crm_core/board.py
"""
Kanban board: static column table, per-role customer visibility and
the board projection (customers partitioned into visible columns).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple

from django.db.models import Q, QuerySet

from crm_core.workflows import (
    ADMIN,
    ARCHIVED,
    CALL_AGAIN,
    EXTENDED_WATER_TEST,
    INSTALLATION_COMPLETE,
    INSTALLER,
    INTERNAL,
    MEETING_BOOKED,
    NO_ANSWER,
    NOT_HANDLED,
    NOT_INTERESTED,
    QUOTATION_STAGE,
    READY_FOR_INSTALLATION,
    SALESPERSON,
    SOLD,
    normalize_role,
    normalize_status,
)


@dataclass(frozen=True)
class KanbanColumn:
    id: str
    title: str
    description: str
    color: str
    order: int
    visible_to_roles: FrozenSet[str]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "color": self.color,
            "order": self.order,
            "visible_to_roles": sorted(self.visible_to_roles),
        }


_SALES_SIDE = frozenset({SALESPERSON, INTERNAL, ADMIN})

KANBAN_COLUMNS: Tuple[KanbanColumn, ...] = (
    KanbanColumn(NOT_HANDLED, "Ej hanterad", "Nya leads som behöver kontakt", "red", 1, _SALES_SIDE),
    KanbanColumn(NO_ANSWER, "Inget svar", "Kunder som inte svarat", "orange", 2, _SALES_SIDE),
    KanbanColumn(CALL_AGAIN, "Ring igen", "Schemalagd uppföljning", "yellow", 3, _SALES_SIDE),
    KanbanColumn(MEETING_BOOKED, "Möte bokat", "Möte schemalagt med kund", "blue", 4, _SALES_SIDE),
    KanbanColumn(QUOTATION_STAGE, "Offert", "Offert skickad eller under framtagning", "indigo", 5, _SALES_SIDE),
    KanbanColumn(EXTENDED_WATER_TEST, "Utökad vattenanalys", "Kund genomför vattentest", "cyan", 6, _SALES_SIDE),
    KanbanColumn(SOLD, "Såld", "Kund har köpt, väntar på bearbetning", "green", 7, _SALES_SIDE),
    KanbanColumn(
        READY_FOR_INSTALLATION, "Redo för installation", "Klar för montering", "emerald", 8,
        frozenset({INTERNAL, INSTALLER, ADMIN}),
    ),
    KanbanColumn(
        INSTALLATION_COMPLETE, "Installation klar", "Installation genomförd", "teal", 9,
        frozenset({INSTALLER, INTERNAL, ADMIN}),
    ),
    KanbanColumn(NOT_INTERESTED, "Ej intresserad", "Kunder som tackat nej", "gray", 10, _SALES_SIDE),
    KanbanColumn(ARCHIVED, "Arkiverad", "Avslutade ärenden", "slate", 11, frozenset({INTERNAL, ADMIN})),
)

# Statuses an installer works with; everything else is hidden from them.
INSTALLER_STATUSES: FrozenSet[str] = frozenset({READY_FOR_INSTALLATION, INSTALLATION_COMPLETE})


@dataclass
class BoardColumn:
    column: KanbanColumn
    customers: List[Any] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.column.id

    @property
    def count(self) -> int:
        return len(self.customers)


def visible_columns(role: Any) -> List[KanbanColumn]:
    r = normalize_role(role)
    cols = [c for c in KANBAN_COLUMNS if r == ADMIN or r in c.visible_to_roles]
    return sorted(cols, key=lambda c: c.order)


def column_for(status: Any) -> KanbanColumn | None:
    s = normalize_status(status)
    for c in KANBAN_COLUMNS:
        if c.id == s:
            return c
    return None


def _status_of(customer: Any) -> str:
    if isinstance(customer, Mapping):
        return normalize_status(customer.get("status"))
    return normalize_status(getattr(customer, "status", ""))


def project_board(customers: Iterable[Any], role: Any) -> List[BoardColumn]:
    """
    Full recompute on every call. A customer whose status has a visible
    column lands in exactly that column; others are left off the board.
    Input order is preserved inside each column.
    """
    columns = [BoardColumn(column=c) for c in visible_columns(role)]
    by_id = {bc.id: bc for bc in columns}

    for customer in customers:
        bc = by_id.get(_status_of(customer))
        if bc is not None:
            bc.customers.append(customer)

    return columns


def visible_customers(queryset: QuerySet, actor) -> QuerySet:
    """
    Row scoping per role:
    - salesperson: own customers and unassigned ones
    - installer: customers in installation statuses
    - internal / admin: everything
    - no role: nothing
    """
    role = normalize_role(getattr(actor, "role", ""))

    if role in {ADMIN, INTERNAL}:
        return queryset
    if role == SALESPERSON:
        return queryset.filter(Q(assigned_to_id=actor.id) | Q(assigned_to__isnull=True))
    if role == INSTALLER:
        return queryset.filter(status__in=INSTALLER_STATUSES)
    return queryset.none()
