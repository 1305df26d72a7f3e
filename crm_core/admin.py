# crm_core/admin.py

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    Customer,
    CustomerActivity,
    CustomerFile,
    CustomerNote,
    Notification,
    UserProfile,
)
from .workflows import STATUS_LABELS


_STATUS_COLORS = {
    "not_handled": "#c62828",
    "sold": "#2e7d32",
    "ready_for_installation": "#00897b",
    "installation_complete": "#00695c",
    "not_interested": "#757575",
    "archived": "#546e7a",
}


# =============================================================
# User profiles (roles)
# =============================================================

@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "phone", "updated_at")
    list_filter = ("role",)
    search_fields = ("user__username", "user__email", "user__first_name", "user__last_name")
    autocomplete_fields = ("user",)


# =============================================================
# Customers (status is read-only: moves go through the API)
# =============================================================

class CustomerNoteInline(admin.TabularInline):
    model = CustomerNote
    extra = 0
    fields = ("content", "author", "is_private", "created_at")
    readonly_fields = ("author", "created_at")


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "phone",
        "city",
        "status_badge",
        "priority",
        "assigned_to",
        "updated_at",
    )
    list_filter = ("status", "priority", "assigned_to")
    search_fields = ("name", "email", "phone", "city")
    ordering = ("-updated_at",)
    readonly_fields = ("id", "status", "created_by", "created_at", "updated_at")
    inlines = [CustomerNoteInline]

    def status_badge(self, obj):
        return format_html(
            '<span style="color:{};font-weight:bold;">{}</span>',
            _STATUS_COLORS.get(obj.status, "#1565c0"),
            STATUS_LABELS.get(obj.status, obj.status),
        )

    status_badge.short_description = "Status"


# =============================================================
# Activity timeline (READ-ONLY AUDIT LOG)
# =============================================================

@admin.register(CustomerActivity)
class CustomerActivityAdmin(admin.ModelAdmin):
    list_display = (
        "customer",
        "type",
        "title",
        "performed_by",
        "performed_at",
    )
    list_filter = ("type",)
    search_fields = (
        "customer__name",
        "title",
        "performed_by",
    )
    ordering = ("-performed_at",)

    readonly_fields = [f.name for f in CustomerActivity._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================
# Files
# =============================================================

@admin.register(CustomerFile)
class CustomerFileAdmin(admin.ModelAdmin):
    list_display = ("original_name", "customer", "category", "size", "uploaded_by", "created_at")
    list_filter = ("category",)
    search_fields = ("original_name", "customer__name")
    readonly_fields = ("original_name", "content_type", "size", "uploaded_by", "created_at")


# =============================================================
# Notifications (READ-ONLY)
# =============================================================

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("recipient", "title", "customer", "is_read", "created_at")
    list_filter = ("type", "is_read")
    search_fields = ("recipient__username", "title", "customer__name")
    ordering = ("-created_at",)

    readonly_fields = [f.name for f in Notification._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
