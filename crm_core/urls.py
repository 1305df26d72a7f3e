# crm_core/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter

# -------------------------------------------------
# Core API ViewSets
# -------------------------------------------------
from .views import (
    CustomerViewSet,
    HealthCheckView,
    NotificationViewSet,
)

# -------------------------------------------------
# Workflow (moves, allowed targets, definition)
# -------------------------------------------------
from .views_workflow_api import (
    CustomerAllowedView,
    CustomerMoveView,
    WorkflowDefinitionView,
)

# -------------------------------------------------
# Board, stats, identity
# -------------------------------------------------
from .views_board import BoardView
from .views_stats import (
    InstallationStatsView,
    PersonalStatsView,
    StatsOverviewView,
    TeamStatsView,
)
from .views_identity import WhoAmIView


app_name = "crm_core"

# -------------------------------------------------
# Router (CRUD APIs)
# -------------------------------------------------
router = DefaultRouter()
router.register(r"customers", CustomerViewSet, basename="customer")
router.register(r"notifications", NotificationViewSet, basename="notification")


urlpatterns = [
    # ============================================================
    # Workflow: the only way to change a customer's status
    # ============================================================
    path("customers/<uuid:pk>/move/", CustomerMoveView.as_view(), name="customer-move"),
    path("customers/<uuid:pk>/allowed/", CustomerAllowedView.as_view(), name="customer-allowed"),
    path("workflow/", WorkflowDefinitionView.as_view(), name="workflow-definition"),

    # ============================================================
    # Core CRUD API
    # ============================================================
    path("", include(router.urls)),

    # ============================================================
    # Board
    # ============================================================
    path("board/", BoardView.as_view(), name="board"),

    # ============================================================
    # Stats
    # ============================================================
    path("stats/overview/", StatsOverviewView.as_view(), name="stats-overview"),
    path("stats/personal/", PersonalStatsView.as_view(), name="stats-personal"),
    path("stats/team/", TeamStatsView.as_view(), name="stats-team"),
    path("stats/installations/", InstallationStatsView.as_view(), name="stats-installations"),

    # ============================================================
    # System / identity
    # ============================================================
    path("health/", HealthCheckView.as_view(), name="health_check"),
    path("whoami/", WhoAmIView.as_view(), name="whoami"),
]
