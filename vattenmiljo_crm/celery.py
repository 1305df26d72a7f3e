# vattenmiljo_crm/celery.py
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "vattenmiljo_crm.settings")

app = Celery("vattenmiljo_crm")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
