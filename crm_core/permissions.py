# crm_core/permissions.py
from __future__ import annotations

from rest_framework.permissions import BasePermission, SAFE_METHODS

from .identity import role_for_user
from .workflows import ADMIN, INSTALLER, INTERNAL, ROLES, SALESPERSON


# ------------------------------------------------------------------
# Role definitions
# ------------------------------------------------------------------
CREATE_ROLES = {SALESPERSON, INTERNAL, ADMIN}
UPDATE_ROLES = {SALESPERSON, INTERNAL, INSTALLER, ADMIN}
DELETE_ROLES = {INTERNAL, ADMIN}
ASSIGN_ROLES = {INTERNAL, ADMIN}
ANALYTICS_ROLES = {INTERNAL, ADMIN}
INSTALLATION_STATS_ROLES = {INSTALLER, ADMIN}


def user_has_any_role(user, allowed_roles: set[str]) -> bool:
    if not user or not user.is_authenticated:
        return False
    return role_for_user(user) in allowed_roles


# ------------------------------------------------------------------
# Permission classes
# ------------------------------------------------------------------
class HasCrmRole(BasePermission):
    """
    Authenticated and holding one of the CRM roles.
    """

    message = "Your account has no CRM role."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return role_for_user(user) in ROLES


class CustomerAccess(HasCrmRole):
    """
    Read: any CRM role (rows are scoped by the view's queryset)
    Create: salesperson, internal, admin
    Update: any CRM role
    Delete: internal, admin
    """

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False

        if request.method in SAFE_METHODS:
            return True

        role = role_for_user(request.user)
        action = getattr(view, "action", None)

        if action == "create":
            self.message = "Your role cannot create customers."
            return role in CREATE_ROLES
        if request.method == "DELETE" and action == "destroy":
            self.message = "Only internal staff and admins can delete customers."
            return role in DELETE_ROLES
        return role in UPDATE_ROLES


class IsAnalyticsViewer(HasCrmRole):
    message = "Only internal staff and admins can view the system overview."

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        return role_for_user(request.user) in ANALYTICS_ROLES


class IsInstallationViewer(HasCrmRole):
    message = "Only installers and admins can view installation statistics."

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        return role_for_user(request.user) in INSTALLATION_STATS_ROLES
