# crm_core/signals.py
from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from crm_core.models import Notification

logger = logging.getLogger(__name__)


# ===============================================================
# NOTIFICATIONS -> optional e-mail delivery
# ===============================================================
@receiver(post_save, sender=Notification)
def deliver_notification_email(sender, instance: Notification, created: bool, **kwargs):
    """
    Queues e-mail delivery for a freshly created notification.

    Feature-flagged with CRM_EMAIL_NOTIFICATIONS. Dispatch waits for the
    surrounding transaction to commit so a rolled-back notification never
    produces mail.
    """
    if not created:
        return

    if not getattr(settings, "CRM_EMAIL_NOTIFICATIONS", False):
        return

    from crm_core.tasks import send_notification_emails

    notification_id = instance.pk

    def _dispatch():
        try:
            send_notification_emails.delay([notification_id])
        except Exception:
            logger.exception("Could not queue e-mail for notification %s (ignored)", notification_id)

    transaction.on_commit(_dispatch)
