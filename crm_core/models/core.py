# crm_core/models/core.py

import uuid

from django.conf import settings
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import models

from crm_core.workflows import (
    NOT_HANDLED,
    ROLE_CHOICES,
    STATUS_CHOICES,
    normalize_role,
)
from crm_core.workflows.guards import WorkflowWriteGuardMixin


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# User profile (role)
# ============================================================
class UserProfile(TimeStampedModel):
    """
    CRM role of a login. A user's role is fixed for the duration of a session.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="crm_profile",
    )
    role = models.CharField(max_length=32, choices=ROLE_CHOICES)
    phone = models.CharField(max_length=50, blank=True)

    class Meta:
        ordering = ["user__username"]

    def clean(self):
        self.role = normalize_role(self.role)

    @property
    def display_name(self) -> str:
        return self.user.get_full_name() or self.user.get_username()

    def __str__(self):
        return f"{self.user.username} - {self.role}"


# ============================================================
# Customer
# ============================================================
class Customer(WorkflowWriteGuardMixin, TimeStampedModel):
    WORKFLOW_FIELD = "status"

    class Priority(models.TextChoices):
        LOW = "low", "Låg"
        MEDIUM = "medium", "Mellan"
        HIGH = "high", "Hög"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=50)
    email = models.EmailField(blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)

    status = models.CharField(
        max_length=32,
        choices=STATUS_CHOICES,
        default=NOT_HANDLED,
        editable=False,
        db_index=True,
    )
    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM,
    )

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_customers",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_customers",
    )

    sale_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    sale_date = models.DateField(null=True, blank=True)

    needs_analysis = models.JSONField(
        default=dict,
        blank=True,
        help_text="Water needs analysis (water source, hardness, iron, household size, ...).",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["assigned_to", "status"], name="customer_owner_status_idx"),
        ]

    def clean(self):
        if not (self.phone or "").strip():
            raise ValidationError({"phone": "Phone number is required."})
        if self.sale_amount is not None and self.sale_amount < 0:
            raise ValidationError({"sale_amount": "Sale amount cannot be negative."})

    def __str__(self):
        return self.name


# ============================================================
# Notes
# ============================================================
class CustomerNote(models.Model):
    customer = models.ForeignKey(
        Customer,
        on_delete=models.CASCADE,
        related_name="notes",
    )
    content = models.TextField()
    author = models.CharField(max_length=255)
    author_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer_notes",
    )
    is_private = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.customer_id}: {self.content[:40]}"


# ============================================================
# Files
# ============================================================
def customer_file_path(instance, filename: str) -> str:
    return f"customers/{instance.customer_id}/{uuid.uuid4().hex}-{filename}"


class CustomerFile(models.Model):
    class Category(models.TextChoices):
        CONTRACT = "contract", "Kontrakt"
        PHOTO = "photo", "Foto"
        DOCUMENT = "document", "Dokument"
        OTHER = "other", "Övrigt"

    customer = models.ForeignKey(
        Customer,
        on_delete=models.CASCADE,
        related_name="files",
    )
    file = models.FileField(upload_to=customer_file_path)
    original_name = models.CharField(max_length=255)
    content_type = models.CharField(max_length=100, blank=True)
    size = models.PositiveIntegerField(default=0)
    category = models.CharField(
        max_length=20,
        choices=Category.choices,
        default=Category.OTHER,
    )
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer_files",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.original_name
