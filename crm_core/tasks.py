# crm_core/tasks.py
from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from crm_core.models import Notification

logger = logging.getLogger(__name__)


def _body(notification: Notification) -> str:
    data = notification.data or {}
    return "\n".join(
        [
            notification.message,
            "",
            f"Customer: {data.get('customer_name', '')}",
            f"From: {data.get('old_status', '')}",
            f"To: {data.get('new_status', '')}",
            f"At: {notification.created_at}",
        ]
    )


@shared_task
def send_notification_emails(notification_ids: list[int]) -> int:
    """
    Sends one e-mail per notification whose recipient has an address.
    Returns the number of messages handed to the mail backend.
    """
    sent = 0
    qs = Notification.objects.select_related("recipient").filter(pk__in=notification_ids)

    for notification in qs:
        email = getattr(notification.recipient, "email", "") or ""
        if not email:
            continue
        sent += send_mail(
            subject=f"[Vattenmiljö CRM] {notification.title}",
            message=_body(notification),
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
            recipient_list=[email],
            fail_silently=True,
        )

    logger.info("Notification e-mails sent: %s of %s", sent, len(notification_ids))
    return sent
