# crm_core/workflows/store.py
"""
Persistence collaborator for the transition executor.

Each method is individually atomic; nothing here spans calls. The executor
decides what is fatal and what is best-effort.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from django.contrib.auth import get_user_model
from django.db.models import QuerySet
from django.utils import timezone

from crm_core.models import Customer, CustomerActivity, Notification
from crm_core.workflows import ADMIN, normalize_role


class CustomerStore:
    def read_customers(self, **filters: Any) -> QuerySet:
        return Customer.objects.select_related("assigned_to").filter(**filters)

    def get_customer_for_update(self, customer_id: Any) -> Customer:
        """
        Row-locked read; must be called inside transaction.atomic().
        Raises Customer.DoesNotExist.
        """
        return Customer.objects.select_for_update().get(pk=customer_id)

    def update_customer_status(
        self,
        customer: Customer,
        status: str,
        assigned_to_id: Optional[Any] = None,
    ) -> Customer:
        """
        Write status (and optionally the owner) with a strictly newer
        updated_at, then return the authoritative row.
        """
        now = timezone.now()
        if customer.updated_at and now <= customer.updated_at:
            now = customer.updated_at + timedelta(microseconds=1)

        fields: Dict[str, Any] = {"status": status, "updated_at": now}
        if assigned_to_id is not None:
            fields["assigned_to_id"] = assigned_to_id

        # Queryset update does not pass through Customer.save().
        Customer.objects.filter(pk=customer.pk).update(**fields)
        return Customer.objects.select_related("assigned_to").get(pk=customer.pk)

    def insert_activity(self, **fields: Any) -> CustomerActivity:
        return CustomerActivity.objects.create(**fields)

    def insert_notifications(self, entries: Iterable[Dict[str, Any]]) -> List[Notification]:
        objs = [Notification(**entry) for entry in entries]
        if not objs:
            return []
        # Saved one by one so post_save receivers (e-mail delivery) fire.
        for obj in objs:
            obj.save()
        return objs

    def list_active_users_by_role(self, role: str) -> List[Any]:
        role = normalize_role(role)
        User = get_user_model()
        qs = User.objects.filter(is_active=True)
        if role == ADMIN:
            qs = qs.filter(is_superuser=True) | qs.filter(crm_profile__role=ADMIN)
        else:
            qs = qs.filter(crm_profile__role=role)
        return list(qs.distinct().order_by("id"))
