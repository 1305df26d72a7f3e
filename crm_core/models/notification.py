from django.conf import settings
from django.db import models


class Notification(models.Model):
    TYPE_STATUS_CHANGE = "customer_status_change"

    TYPE_CHOICES = (
        (TYPE_STATUS_CHANGE, "Customer status change"),
    )

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="crm_notifications",
    )
    customer = models.ForeignKey(
        "crm_core.Customer",
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    type = models.CharField(max_length=64, choices=TYPE_CHOICES, default=TYPE_STATUS_CHANGE)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    data = models.JSONField(default=dict, blank=True)

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "is_read"], name="notif_recipient_read_idx"),
        ]

    def __str__(self):
        return f"{self.recipient_id}: {self.title}"
