# crm_core/views_workflow_api.py

from __future__ import annotations

from django.shortcuts import get_object_or_404

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from crm_core.board import visible_customers
from crm_core.identity import require_actor
from crm_core.models import Customer
from crm_core.serializers import CustomerMoveSerializer, CustomerSerializer
from crm_core.workflows import (
    CUSTOMER_STATUSES,
    STATUS_LABELS,
    allowed_next_statuses,
    workflow_definition,
)
from crm_core.workflows.executor import execute_transition
from crm_core.workflows.validator import validate_transition


# =============================================================
# API: Allowed moves for one customer
# =============================================================

class CustomerAllowedView(APIView):
    """
    GET /crm/customers/<uuid>/allowed/

    Returns the current status and the statuses the caller may move
    this customer to right now (role matrix and ownership applied).
    Customers outside the caller's board scope are 404.
    """
    # AllowAny + require_actor: unauthenticated callers get a DRF 401.
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflow"])
    def get(self, request, pk):
        actor = require_actor(request)
        customer = get_object_or_404(visible_customers(Customer.objects.all(), actor), pk=pk)

        candidates = allowed_next_statuses(actor.role, customer.status)
        allowed = [
            s for s in CUSTOMER_STATUSES
            if s in candidates and validate_transition(actor, customer, s).allowed
        ]

        return Response(
            {
                "customer_id": str(customer.pk),
                "current": customer.status,
                "allowed": allowed,
                "labels": {s: STATUS_LABELS[s] for s in allowed},
                "role": actor.role,
            }
        )


# =============================================================
# API: Move a customer (AUTHORITATIVE)
# =============================================================

class CustomerMoveView(APIView):
    """
    PATCH /crm/customers/<uuid>/move/

    Body:
        { "status": "meeting_booked", "method": "kanban_drag_drop" }

    The only API entry point that changes a customer's status.
    """
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflow"], request=CustomerMoveSerializer)
    def patch(self, request, pk):
        actor = require_actor(request)

        serializer = CustomerMoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = execute_transition(
            actor=actor,
            customer_id=pk,
            new_status=serializer.validated_data["status"],
            method=serializer.validated_data["method"],
        )

        if result.changed:
            message = f"Customer status updated to {result.new_status}"
        else:
            message = f"Customer is already {result.new_status}"

        return Response(
            {
                "customer": CustomerSerializer(result.customer).data,
                "message": message,
                "changed": result.changed,
            }
        )


# =============================================================
# API: Static workflow definition
# =============================================================

class WorkflowDefinitionView(APIView):
    """
    GET /crm/workflow/

    Statuses, roles and the full transition matrix. Read-only.
    """
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflow"])
    def get(self, request):
        require_actor(request)
        return Response(workflow_definition())
