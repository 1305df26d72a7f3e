from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import User
from rest_framework import serializers

from .identity import role_for_user
from .models import (
    Customer,
    CustomerActivity,
    CustomerFile,
    CustomerNote,
    Notification,
)
from .workflows import CUSTOMER_STATUSES, STATUS_LABELS
from .workflows.executor import METHOD_MANUAL, METHODS


ALLOWED_FILE_TYPES = {
    # images
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    # documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    # spreadsheets
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    # text
    "text/plain",
    "text/csv",
}


# ===============================================================
# Helpers
# ===============================================================

class UserSlimSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    role = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ("id", "username", "email", "name", "role")
        read_only_fields = fields

    def get_name(self, obj) -> str:
        return obj.get_full_name() or obj.get_username()

    def get_role(self, obj) -> str:
        return role_for_user(obj)


# ===============================================================
# Customer
# ===============================================================

class CustomerSerializer(serializers.ModelSerializer):
    """
    Status is read-only here; it only changes through the move endpoint.
    """

    status_label = serializers.SerializerMethodField()
    assigned_user = UserSlimSerializer(source="assigned_to", read_only=True)
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True),
        required=False,
        allow_null=True,
    )

    class Meta:
        model = Customer
        fields = (
            "id",
            "name",
            "phone",
            "email",
            "address",
            "city",
            "postal_code",
            "status",
            "status_label",
            "priority",
            "assigned_to",
            "assigned_user",
            "created_by",
            "sale_amount",
            "sale_date",
            "needs_analysis",
            "created_at",
            "updated_at",
        )
        read_only_fields = (
            "id",
            "status",
            "status_label",
            "assigned_user",
            "created_by",
            "created_at",
            "updated_at",
        )

    def get_status_label(self, obj) -> str:
        return STATUS_LABELS.get(obj.status, obj.status)

    def validate_phone(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Phone number is required.")
        return value

    def validate_needs_analysis(self, value):
        if value in (None, ""):
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError("Needs analysis must be an object.")
        return value

    def validate_sale_amount(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Sale amount cannot be negative.")
        return value


class CustomerMoveSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CUSTOMER_STATUSES)
    method = serializers.ChoiceField(choices=METHODS, default=METHOD_MANUAL)

    def to_internal_value(self, data):
        # QueryDict.copy() is mutable and keeps single values for form bodies.
        if isinstance(data, dict) and isinstance(data.get("status"), str):
            data = data.copy()
            data["status"] = data["status"].strip().lower()
        return super().to_internal_value(data)


# ===============================================================
# Activities / notes / files
# ===============================================================

class CustomerActivitySerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomerActivity
        fields = (
            "id",
            "customer",
            "type",
            "title",
            "description",
            "performed_by",
            "performed_by_user",
            "performed_at",
            "metadata",
        )
        read_only_fields = (
            "id",
            "customer",
            "performed_by",
            "performed_by_user",
            "performed_at",
        )

    def validate_metadata(self, value):
        if value in (None, ""):
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError("Metadata must be an object.")
        return value


class CustomerNoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomerNote
        fields = (
            "id",
            "customer",
            "content",
            "author",
            "author_user",
            "is_private",
            "created_at",
        )
        read_only_fields = ("id", "customer", "author", "author_user", "created_at")

    def validate_content(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Note content is required.")
        return value


class CustomerFileSerializer(serializers.ModelSerializer):
    file = serializers.FileField(write_only=True)

    class Meta:
        model = CustomerFile
        fields = (
            "id",
            "customer",
            "file",
            "original_name",
            "content_type",
            "size",
            "category",
            "uploaded_by",
            "created_at",
        )
        read_only_fields = (
            "id",
            "customer",
            "original_name",
            "content_type",
            "size",
            "uploaded_by",
            "created_at",
        )

    def validate_file(self, upload):
        max_size = getattr(settings, "CRM_MAX_FILE_SIZE", 10 * 1024 * 1024)
        if upload.size > max_size:
            raise serializers.ValidationError(
                f"File is too large. Max size is {max_size // (1024 * 1024)}MB."
            )
        content_type = getattr(upload, "content_type", "") or ""
        if content_type not in ALLOWED_FILE_TYPES:
            raise serializers.ValidationError("File type is not supported.")
        return upload


# ===============================================================
# Notifications
# ===============================================================

class NotificationSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)

    class Meta:
        model = Notification
        fields = (
            "id",
            "customer",
            "customer_name",
            "type",
            "title",
            "message",
            "data",
            "is_read",
            "read_at",
            "created_at",
        )
        read_only_fields = fields
