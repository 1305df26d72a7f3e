# crm_core/models/__init__.py

from .core import (
    Customer,
    CustomerFile,
    CustomerNote,
    TimeStampedModel,
    UserProfile,
    customer_file_path,
)
from .activity import CustomerActivity
from .notification import Notification

__all__ = [
    "Customer",
    "CustomerActivity",
    "CustomerFile",
    "CustomerNote",
    "Notification",
    "TimeStampedModel",
    "UserProfile",
    "customer_file_path",
]
