# crm_core/views_board.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from crm_core.board import project_board, visible_customers
from crm_core.filters import CustomerFilter
from crm_core.identity import require_actor
from crm_core.serializers import CustomerSerializer
from crm_core.workflows.store import CustomerStore


class BoardView(APIView):
    """
    GET /crm/board/

    Kanban projection for the caller: the columns their role can see, each
    with the visible customers currently in that status. Accepts the same
    query filters as the customer list (search, priority, assigned_to, ...).
    """
    permission_classes = [AllowAny]

    @extend_schema(tags=["Board"])
    def get(self, request):
        actor = require_actor(request)

        qs = visible_customers(CustomerStore().read_customers(), actor)
        qs = CustomerFilter(request.query_params, queryset=qs).qs.order_by("-updated_at")

        columns = project_board(qs, actor.role)

        return Response(
            {
                "role": actor.role,
                "total": sum(c.count for c in columns),
                "columns": [
                    {
                        **c.column.as_dict(),
                        "count": c.count,
                        "customers": CustomerSerializer(c.customers, many=True).data,
                    }
                    for c in columns
                ],
            }
        )
