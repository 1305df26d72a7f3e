# crm_core/views.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q, QuerySet
from django.http import FileResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .board import visible_customers
from .filters import CustomerActivityFilter, CustomerFilter
from .identity import Actor, actor_for_user
from .models import Customer, CustomerActivity, CustomerFile, CustomerNote, Notification
from .permissions import ASSIGN_ROLES, CustomerAccess, HasCrmRole
from .serializers import (
    CustomerActivitySerializer,
    CustomerFileSerializer,
    CustomerNoteSerializer,
    CustomerSerializer,
    NotificationSerializer,
)
from .workflows import ADMIN, INTERNAL, SALESPERSON

logger = logging.getLogger(__name__)


# Activity types a user may log by hand; the rest are written by the system.
MANUAL_ACTIVITY_TYPES = {
    CustomerActivity.Type.CALL_MADE,
    CustomerActivity.Type.EMAIL_SENT,
    CustomerActivity.Type.MEETING_SCHEDULED,
    CustomerActivity.Type.CUSTOM,
}


# ===============================================================
# Utilities
# ===============================================================
def _deny_if_payload_has(request, fields: list[str], message: str):
    incoming = getattr(request, "data", {}) or {}
    blocked = [f for f in fields if f in incoming]
    if blocked:
        raise ValidationError({f: message for f in blocked})


def _record_activity(
    customer: Customer,
    actor: Actor,
    type: str,
    title: str,
    description: str = "",
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[CustomerActivity]:
    """
    Side-channel timeline entry. Never fails the request that triggered it.
    """
    try:
        with transaction.atomic():
            return CustomerActivity.objects.create(
                customer=customer,
                type=type,
                title=title,
                description=description,
                performed_by=actor.name or str(actor.id),
                performed_by_user_id=actor.id,
                metadata=metadata or {},
            )
    except Exception:
        logger.exception("Activity %s for customer %s failed (ignored)", type, customer.pk)
        return None


def _assigned_id(value) -> Optional[Any]:
    if value is None:
        return None
    return getattr(value, "pk", value)


# ===============================================================
# Health
# ===============================================================
class HealthCheckView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(tags=["System"])
    def get(self, request):
        return Response({"status": "ok", "service": "Vattenmiljö CRM"})


# ===============================================================
# Customers
# ===============================================================
class CustomerViewSet(viewsets.ModelViewSet):
    """
    Customer records. Rows are scoped per role:
    salespeople see their own and unassigned customers, installers see
    customers in installation statuses, internal staff and admins see all.

    `status` is never writable here; use PATCH /customers/<id>/move/.
    """

    serializer_class = CustomerSerializer
    permission_classes = [CustomerAccess]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = CustomerFilter
    ordering_fields = ["created_at", "updated_at", "name", "priority", "status"]
    ordering = ["-created_at"]

    def get_queryset(self) -> QuerySet:
        actor = actor_for_user(self.request.user)
        qs = Customer.objects.select_related("assigned_to", "created_by")
        return visible_customers(qs, actor)

    @property
    def actor(self) -> Actor:
        return actor_for_user(self.request.user)

    def _check_assignment(self, actor: Actor, assigned) -> None:
        assigned_id = _assigned_id(assigned)
        if assigned_id is None or actor.role in ASSIGN_ROLES:
            return
        if str(assigned_id) != str(actor.id):
            raise PermissionDenied("Only internal staff and admins can assign customers to others.")

    def perform_create(self, serializer):
        _deny_if_payload_has(
            self.request,
            ["status"],
            "New customers always start as not handled. Use the move endpoint to change status.",
        )
        actor = self.actor
        assigned = serializer.validated_data.get("assigned_to")
        self._check_assignment(actor, assigned)

        extra = {"created_by": self.request.user}
        if "assigned_to" not in serializer.validated_data and actor.role == SALESPERSON:
            extra["assigned_to"] = self.request.user

        customer = serializer.save(**extra)
        logger.info("Customer %s created by %s/%s", customer.pk, actor.id, actor.role)

        _record_activity(
            customer,
            actor,
            CustomerActivity.Type.CUSTOM,
            "Customer created",
            f"{customer.name} was added to the pipeline",
            {"action": "customer_created"},
        )

    def perform_update(self, serializer):
        _deny_if_payload_has(
            self.request,
            ["status"],
            "Status cannot be changed here. Use the move endpoint.",
        )
        actor = self.actor
        instance = serializer.instance

        if "assigned_to" in serializer.validated_data:
            new_assigned = _assigned_id(serializer.validated_data["assigned_to"])
            if str(new_assigned) != str(instance.assigned_to_id):
                if actor.role not in ASSIGN_ROLES:
                    raise PermissionDenied("Only internal staff and admins can reassign customers.")

        changed = sorted(
            name
            for name, value in serializer.validated_data.items()
            if getattr(instance, name) != value
        )
        customer = serializer.save()

        if changed:
            _record_activity(
                customer,
                actor,
                CustomerActivity.Type.CUSTOM,
                "Customer details updated",
                f"Updated: {', '.join(changed)}",
                {"action": "customer_updated", "fields": changed},
            )

    def perform_destroy(self, instance):
        logger.info("Customer %s deleted by %s", instance.pk, self.request.user.pk)
        instance.delete()

    # -----------------------------------------------------------
    # Activities
    # -----------------------------------------------------------
    @action(detail=True, methods=["get", "post"])
    def activities(self, request, pk=None):
        customer = self.get_object()

        if request.method == "POST":
            serializer = CustomerActivitySerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            if serializer.validated_data["type"] not in MANUAL_ACTIVITY_TYPES:
                raise ValidationError({"type": "This activity type is recorded automatically."})
            actor = self.actor
            activity = serializer.save(
                customer=customer,
                performed_by=actor.name or str(actor.id),
                performed_by_user=request.user,
            )
            return Response(CustomerActivitySerializer(activity).data, status=status.HTTP_201_CREATED)

        qs = CustomerActivity.objects.filter(customer=customer).select_related("performed_by_user")
        qs = CustomerActivityFilter(request.query_params, queryset=qs).qs
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(CustomerActivitySerializer(page, many=True).data)
        return Response(CustomerActivitySerializer(qs, many=True).data)

    # -----------------------------------------------------------
    # Notes
    # -----------------------------------------------------------
    @action(detail=True, methods=["get", "post"])
    def notes(self, request, pk=None):
        customer = self.get_object()
        actor = self.actor

        if request.method == "POST":
            serializer = CustomerNoteSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            note = serializer.save(
                customer=customer,
                author=actor.name or str(actor.id),
                author_user=request.user,
            )
            _record_activity(
                customer,
                actor,
                CustomerActivity.Type.NOTE_ADDED,
                "Note added",
                note.content[:200],
                {"note_id": note.pk, "is_private": note.is_private},
            )
            return Response(CustomerNoteSerializer(note).data, status=status.HTTP_201_CREATED)

        qs = CustomerNote.objects.filter(customer=customer)
        if actor.role not in {INTERNAL, ADMIN}:
            # Private notes are visible to their author only.
            qs = qs.filter(Q(is_private=False) | Q(author_user_id=actor.id))
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(CustomerNoteSerializer(page, many=True).data)
        return Response(CustomerNoteSerializer(qs, many=True).data)

    # -----------------------------------------------------------
    # Files
    # -----------------------------------------------------------
    @action(detail=True, methods=["get", "post"])
    def files(self, request, pk=None):
        customer = self.get_object()

        if request.method == "POST":
            limit = getattr(settings, "CRM_MAX_FILES_PER_CUSTOMER", 20)
            if CustomerFile.objects.filter(customer=customer).count() >= limit:
                raise ValidationError({"file": f"A customer can have at most {limit} files."})

            serializer = CustomerFileSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            upload = serializer.validated_data["file"]
            record = serializer.save(
                customer=customer,
                original_name=upload.name,
                content_type=getattr(upload, "content_type", "") or "",
                size=upload.size,
                uploaded_by=request.user,
            )
            _record_activity(
                customer,
                self.actor,
                CustomerActivity.Type.FILE_UPLOAD,
                "File uploaded",
                record.original_name,
                {"file_id": record.pk, "size": record.size, "category": record.category},
            )
            return Response(CustomerFileSerializer(record).data, status=status.HTTP_201_CREATED)

        qs = CustomerFile.objects.filter(customer=customer)
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(CustomerFileSerializer(page, many=True).data)
        return Response(CustomerFileSerializer(qs, many=True).data)

    @action(detail=True, methods=["delete"], url_path=r"files/(?P<file_id>\d+)")
    def delete_file(self, request, pk=None, file_id=None):
        customer = self.get_object()
        record = get_object_or_404(CustomerFile, pk=file_id, customer=customer)
        actor = self.actor

        if actor.role not in {INTERNAL, ADMIN} and record.uploaded_by_id != actor.id:
            raise PermissionDenied("Only the uploader, internal staff or admins can delete this file.")

        name = record.original_name
        record.file.delete(save=False)
        record.delete()

        _record_activity(
            customer,
            actor,
            CustomerActivity.Type.FILE_DELETE,
            "File deleted",
            name,
            {"file_id": int(file_id)},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"], url_path=r"files/(?P<file_id>\d+)/download")
    def download_file(self, request, pk=None, file_id=None):
        customer = self.get_object()
        record = get_object_or_404(CustomerFile, pk=file_id, customer=customer)

        _record_activity(
            customer,
            self.actor,
            CustomerActivity.Type.FILE_DOWNLOAD,
            "File downloaded",
            record.original_name,
            {"file_id": record.pk},
        )
        return FileResponse(
            record.file.open("rb"),
            as_attachment=True,
            filename=record.original_name,
            content_type=record.content_type or None,
        )


# ===============================================================
# Notifications (recipient-scoped, read-only apart from read flags)
# ===============================================================
class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = NotificationSerializer
    permission_classes = [HasCrmRole]
    filter_backends = []

    def get_queryset(self) -> QuerySet:
        qs = Notification.objects.filter(recipient=self.request.user).select_related("customer")
        unread = (self.request.query_params.get("unread") or "").strip().lower()
        if unread in {"1", "true", "yes"}:
            qs = qs.filter(is_read=False)
        return qs

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        unread_count = Notification.objects.filter(recipient=request.user, is_read=False).count()
        if isinstance(response.data, dict):
            response.data["unread_count"] = unread_count
        else:
            response.data = {"results": response.data, "unread_count": unread_count}
        return response

    @action(detail=True, methods=["post", "patch"])
    def read(self, request, pk=None):
        notification = self.get_object()
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at"])
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=["post", "patch"], url_path="read-all")
    def read_all(self, request):
        updated = Notification.objects.filter(recipient=request.user, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
        return Response({"updated": updated})
