# crm_core/apps.py

from django.apps import AppConfig


class CrmCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "crm_core"
    verbose_name = "Vattenmiljö CRM"

    def ready(self):
        from . import signals  # noqa
