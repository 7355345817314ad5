"""
Database models - import all models here so Alembic can discover them.
"""
from monitorflow.models.user import User
from monitorflow.models.event_category import EventCategory
from monitorflow.models.event import Event
from monitorflow.models.webhook import Webhook
from monitorflow.models.webhook_delivery import WebhookDelivery
from monitorflow.models.quota import Quota
from monitorflow.models.rate_limit import RateLimit

__all__ = [
    "User",
    "EventCategory",
    "Event",
    "Webhook",
    "WebhookDelivery",
    "Quota",
    "RateLimit",
]
