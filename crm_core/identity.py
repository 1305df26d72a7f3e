# crm_core/identity.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from django.core.exceptions import ObjectDoesNotExist
from rest_framework.exceptions import NotAuthenticated

from crm_core.workflows import ADMIN, normalize_role


@dataclass(frozen=True)
class Actor:
    """
    The acting user, resolved once per request and passed explicitly
    into workflow code. Workflow code never looks up identity on its own.
    """

    id: Any
    role: str
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


def role_for_user(user) -> str:
    """
    Canonical CRM role of a Django user.

    Superusers act as admin. Users without a profile have no role ("")
    and are therefore denied every transition.
    """
    if getattr(user, "is_superuser", False):
        return ADMIN
    try:
        profile = user.crm_profile
    except (AttributeError, ObjectDoesNotExist):
        return ""
    return normalize_role(profile.role)


def display_name(user) -> str:
    full = ""
    if hasattr(user, "get_full_name"):
        full = user.get_full_name()
    return full or getattr(user, "email", "") or user.get_username()


def actor_for_user(user) -> Actor:
    return Actor(id=user.pk, role=role_for_user(user), name=display_name(user))


def require_actor(request) -> Actor:
    """
    Enforce authentication in a way that returns DRF's normal 401
    instead of Django login redirects under session-based setups.
    """
    user: Optional[Any] = getattr(request, "user", None)
    if not user or not getattr(user, "is_authenticated", False):
        raise NotAuthenticated("Authentication credentials were not provided.")
    return actor_for_user(user)
