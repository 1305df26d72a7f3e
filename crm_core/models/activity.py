from django.conf import settings
from django.db import models

from crm_core.workflows.guards import AppendOnlyMixin


class CustomerActivity(AppendOnlyMixin, models.Model):
    """
    Immutable activity timeline entry for a customer.
    """

    class Type(models.TextChoices):
        STATUS_CHANGE = "status_change", "Statusändring"
        NOTE_ADDED = "note_added", "Anteckning tillagd"
        FILE_UPLOAD = "file_upload", "Fil uppladdad"
        FILE_DOWNLOAD = "file_download", "Fil nedladdad"
        FILE_DELETE = "file_delete", "Fil borttagen"
        MEETING_SCHEDULED = "meeting_scheduled", "Möte schemalagt"
        CALL_MADE = "call_made", "Telefonsamtal"
        EMAIL_SENT = "email_sent", "E-post skickad"
        CUSTOM = "custom", "Anpassad aktivitet"

    customer = models.ForeignKey(
        "crm_core.Customer",
        on_delete=models.CASCADE,
        related_name="activities",
    )
    type = models.CharField(max_length=32, choices=Type.choices)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    performed_by = models.CharField(max_length=255)
    performed_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer_activities",
    )
    performed_at = models.DateTimeField(auto_now_add=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-performed_at", "-id"]
        verbose_name_plural = "customer activities"
        indexes = [
            models.Index(fields=["customer", "performed_at"], name="activity_customer_time_idx"),
        ]

    def __str__(self):
        return f"{self.customer_id} {self.type}: {self.title}"
