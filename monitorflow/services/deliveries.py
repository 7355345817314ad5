"""
Webhook delivery ledger - append-only records of every delivery attempt.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.models.event import Event
from monitorflow.models.webhook_delivery import WebhookDelivery
from monitorflow.schemas.webhook_payloads import DeliveryResult
from monitorflow.utils.errors import ValidationError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def record_delivery(
    session: AsyncSession,
    webhook_id: uuid.UUID,
    event_id: uuid.UUID,
    request_body: str,
    result: DeliveryResult,
) -> WebhookDelivery:
    """Stage one ledger row. The caller owns the commit."""
    delivery = WebhookDelivery(
        webhook_id=webhook_id,
        event_id=event_id,
        request_body=request_body,
        response_body=result.response_body,
        status_code=result.status_code,
        success=result.success,
        error=result.error,
    )
    session.add(delivery)
    return delivery


def serialize_delivery(delivery: WebhookDelivery, event: Optional[Event] = None) -> dict:
    data = {
        "id": str(delivery.id),
        "webhook_id": str(delivery.webhook_id),
        "event_id": str(delivery.event_id),
        "request_body": delivery.request_body,
        "response_body": delivery.response_body,
        "status_code": delivery.status_code,
        "success": delivery.success,
        "error": delivery.error,
        "created_at": delivery.created_at,
    }
    if event is not None:
        data["event"] = {"id": str(event.id), "name": event.name, "created_at": event.created_at}
    return data


async def list_deliveries(
    db: AsyncSession,
    webhook_id: uuid.UUID,
    limit: int = 10,
    cursor: Optional[str] = None,
) -> dict:
    """
    Newest-first page of deliveries for a webhook.
    `cursor` is the id of the first delivery of the next page.
    """
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    query = (
        select(WebhookDelivery, Event)
        .join(Event, Event.id == WebhookDelivery.event_id)
        .where(WebhookDelivery.webhook_id == webhook_id)
        .order_by(WebhookDelivery.created_at.desc(), WebhookDelivery.id.desc())
        .limit(limit + 1)
    )

    if cursor:
        try:
            anchor_id = uuid.UUID(cursor)
        except ValueError:
            raise ValidationError("Invalid cursor")
        anchor = await db.get(WebhookDelivery, anchor_id)
        if anchor is None or anchor.webhook_id != webhook_id:
            raise ValidationError("Invalid cursor")
        query = query.where(
            or_(
                WebhookDelivery.created_at < anchor.created_at,
                and_(
                    WebhookDelivery.created_at == anchor.created_at,
                    WebhookDelivery.id <= anchor.id,
                ),
            )
        )

    rows = (await db.execute(query)).all()

    next_cursor = None
    if len(rows) > limit:
        next_cursor = str(rows[limit][0].id)
        rows = rows[:limit]

    return {
        "items": [serialize_delivery(delivery, event) for delivery, event in rows],
        "next_cursor": next_cursor,
    }
