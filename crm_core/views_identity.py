# crm_core/views_identity.py
from __future__ import annotations

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .board import visible_columns
from .identity import actor_for_user
from .permissions import (
    ANALYTICS_ROLES,
    ASSIGN_ROLES,
    CREATE_ROLES,
    DELETE_ROLES,
    INSTALLATION_STATS_ROLES,
)
from .workflows import ROLE_LABELS


class WhoAmIView(APIView):
    """
    Returns the currently authenticated user and their CRM role.

    Meant for the board client to:
      - confirm token auth is working
      - show the role
      - pick the visible columns and capabilities client-side
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        actor = actor_for_user(user)

        return Response(
            {
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "name": actor.name,
                "role": actor.role,
                "role_label": ROLE_LABELS.get(actor.role, ""),
                "is_superuser": bool(getattr(user, "is_superuser", False)),
                "columns": [c.id for c in visible_columns(actor.role)],
                "capabilities": {
                    "create_customers": actor.role in CREATE_ROLES,
                    "delete_customers": actor.role in DELETE_ROLES,
                    "assign_customers": actor.role in ASSIGN_ROLES,
                    "view_overview": actor.role in ANALYTICS_ROLES,
                    "view_installation_stats": actor.role in INSTALLATION_STATS_ROLES,
                },
            }
        )
