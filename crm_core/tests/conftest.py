# crm_core/tests/conftest.py

from __future__ import annotations

import uuid
from typing import Any, Callable, Optional

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from crm_core.identity import Actor, actor_for_user
from crm_core.models import Customer, UserProfile
from crm_core.workflows import ADMIN, INSTALLER, INTERNAL, NOT_HANDLED, SALESPERSON


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _make_user(username: str, role: Optional[str], **extra: Any):
    User = get_user_model()
    user = User.objects.create_user(
        username=username,
        password="pass123",
        email=f"{username}@vattenmiljo.test",
        first_name=extra.pop("first_name", username.capitalize()),
        **extra,
    )
    if role:
        UserProfile.objects.create(user=user, role=role)
    return user


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def salesperson(db):
    return _make_user("sara", SALESPERSON)


@pytest.fixture
def other_salesperson(db):
    return _make_user("sven", SALESPERSON)


@pytest.fixture
def internal_user(db):
    return _make_user("ivar", INTERNAL)


@pytest.fixture
def installer(db):
    return _make_user("mona", INSTALLER)


@pytest.fixture
def admin_user(db):
    return _make_user("adam", ADMIN)


@pytest.fixture
def roleless_user(db):
    return _make_user("nobody", None)


@pytest.fixture
def actor_of() -> Callable[..., Actor]:
    return actor_for_user


@pytest.fixture
def customer_factory(db) -> Callable[..., Customer]:
    """
    Creates customers directly in any status. New rows may carry any
    status; later status changes go through the executor.
    """

    def _factory(
        *,
        status: str = NOT_HANDLED,
        assigned_to=None,
        name: Optional[str] = None,
        **extra: Any,
    ) -> Customer:
        return Customer.objects.create(
            name=name or _rand("Kund"),
            phone=extra.pop("phone", "070-123 45 67"),
            status=status,
            assigned_to=assigned_to,
            **extra,
        )

    return _factory
