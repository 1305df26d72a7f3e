# crm_core/workflows/executor.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from django.db import DatabaseError, transaction

from crm_core.exceptions import CustomerNotFound, PersistenceFailed, TransitionDenied
from crm_core.models import Customer, CustomerActivity, Notification
from crm_core.workflows import (
    HANDOFF_RECIPIENT_ROLES,
    STATUS_LABELS,
    normalize_status,
)
from crm_core.workflows.store import CustomerStore
from crm_core.workflows.validator import claims_ownership, validate_transition

logger = logging.getLogger(__name__)


METHOD_DRAG_DROP = "kanban_drag_drop"
METHOD_MANUAL = "manual"
METHODS = (METHOD_DRAG_DROP, METHOD_MANUAL)


@dataclass
class TransitionResult:
    customer: Customer
    changed: bool
    previous_status: str
    new_status: str
    claimed: bool = False
    activity_logged: bool = False
    notified_count: int = 0


def _log_status_activity(store, *, actor, customer, previous: str, target: str, method: str) -> bool:
    """
    Activity logging must never break the transition.
    """
    try:
        with transaction.atomic():
            store.insert_activity(
                customer=customer,
                type=CustomerActivity.Type.STATUS_CHANGE,
                title="Status updated via Kanban" if method == METHOD_DRAG_DROP else "Status updated",
                description=f"Status changed from {previous} to {target}",
                performed_by=actor.name or str(actor.id),
                performed_by_user_id=actor.id,
                metadata={
                    "previous_status": previous,
                    "new_status": target,
                    "method": method,
                    "changed_by_role": actor.role,
                },
            )
    except Exception:
        logger.exception(
            "Activity logging failed for customer %s (%s -> %s), ignored.",
            customer.pk, previous, target,
        )
        return False
    return True


def _notify_handoff(store, *, customer, previous: str, target: str) -> int:
    """
    One notification per active user of the receiving team.
    Best-effort: failures are logged and reported as zero recipients.
    """
    recipient_role = HANDOFF_RECIPIENT_ROLES.get(target)
    if not recipient_role:
        return 0

    try:
        with transaction.atomic():
            recipients = store.list_active_users_by_role(recipient_role)
            entries = [
                {
                    "recipient": user,
                    "customer": customer,
                    "type": Notification.TYPE_STATUS_CHANGE,
                    "title": f"Customer {customer.name} status updated",
                    "message": f"{customer.name} moved to {STATUS_LABELS.get(target, target)}",
                    "data": {
                        "customer_id": str(customer.pk),
                        "customer_name": customer.name,
                        "old_status": previous,
                        "new_status": target,
                    },
                }
                for user in recipients
            ]
            created = store.insert_notifications(entries)
    except Exception:
        logger.exception(
            "Hand-off notifications failed for customer %s (-> %s), ignored.",
            customer.pk, target,
        )
        return 0

    return len(created)


def execute_transition(
    *,
    actor,
    customer_id: Any,
    new_status: str,
    method: str = METHOD_MANUAL,
    store: Optional[CustomerStore] = None,
) -> TransitionResult:
    """
    Authoritative status move.

    1) Lock + re-validate against the persisted state (never trust the caller)
    2) Persist status / updated_at / first-touch owner: the only fatal step
    3) Activity entry: best-effort
    4) Cross-team notifications for hand-off statuses: best-effort
    """
    store = store or CustomerStore()
    target = normalize_status(new_status)
    method = method if method in METHODS else METHOD_MANUAL

    with transaction.atomic():
        try:
            customer = store.get_customer_for_update(customer_id)
        except Customer.DoesNotExist:
            raise CustomerNotFound()

        previous = normalize_status(customer.status)

        decision = validate_transition(actor, customer, target)
        if not decision.allowed:
            logger.info(
                "Transition denied for customer %s (%s -> %s) by %s/%s: %s",
                customer.pk, previous, target, actor.id, actor.role, decision.code,
            )
            raise TransitionDenied(decision)

        if decision.noop:
            return TransitionResult(
                customer=customer,
                changed=False,
                previous_status=previous,
                new_status=previous,
            )

        claimed = claims_ownership(actor, customer)

        try:
            customer = store.update_customer_status(
                customer,
                target,
                assigned_to_id=actor.id if claimed else None,
            )
        except DatabaseError as exc:
            logger.exception("Status write failed for customer %s (%s -> %s)", customer.pk, previous, target)
            raise PersistenceFailed() from exc

    logger.info(
        "Customer %s moved %s -> %s by %s/%s (%s)",
        customer.pk, previous, target, actor.id, actor.role, method,
    )

    activity_logged = _log_status_activity(
        store,
        actor=actor,
        customer=customer,
        previous=previous,
        target=target,
        method=method,
    )
    notified = _notify_handoff(store, customer=customer, previous=previous, target=target)

    return TransitionResult(
        customer=customer,
        changed=True,
        previous_status=previous,
        new_status=target,
        claimed=claimed,
        activity_logged=activity_logged,
        notified_count=notified,
    )
