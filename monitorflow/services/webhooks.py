"""
Webhook management - create, update, delete, regenerate secret, list.

Creation enforces the per-plan webhook count. Secrets are generated
server-side; regenerating one invalidates any copy a receiver holds.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.models.user import User
from monitorflow.models.webhook import Webhook
from monitorflow.models.webhook_delivery import WebhookDelivery
from monitorflow.schemas.management import WebhookCreateRequest, WebhookUpdateRequest
from monitorflow.services.deliveries import serialize_delivery
from monitorflow.services.plan_limits import get_webhook_limit
from monitorflow.utils.errors import ConflictError, NotFoundError, PlanLimitError
from monitorflow.utils.signatures import generate_secret

logger = logging.getLogger(__name__)

RECENT_DELIVERIES = 10


def serialize_webhook(webhook: Webhook) -> dict:
    return {
        "id": str(webhook.id),
        "name": webhook.name,
        "url": webhook.url,
        "description": webhook.description,
        "event_categories": list(webhook.event_categories or []),
        "headers": dict(webhook.headers or {}),
        "status": webhook.status,
        "secret": webhook.secret,
        "created_at": webhook.created_at,
        "updated_at": webhook.updated_at,
    }


def _parse_id(webhook_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(webhook_id))
    except ValueError:
        return None


async def get_owned_webhook(db: AsyncSession, user: User, webhook_id: str) -> Webhook:
    """Load a webhook owned by the user, or raise NotFoundError."""
    webhook_uuid = _parse_id(webhook_id)
    webhook = None
    if webhook_uuid is not None:
        result = await db.execute(
            select(Webhook).where(Webhook.id == webhook_uuid, Webhook.user_id == user.id)
        )
        webhook = result.scalar_one_or_none()
    if not webhook:
        raise NotFoundError("Webhook not found")
    return webhook


async def _ensure_unique_name(
    db: AsyncSession, user: User, name: str, exclude_id: Optional[uuid.UUID] = None,
) -> None:
    query = select(Webhook.id).where(Webhook.user_id == user.id, Webhook.name == name)
    if exclude_id is not None:
        query = query.where(Webhook.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none():
        raise ConflictError(f'A webhook with the name "{name}" already exists')


async def create_webhook(db: AsyncSession, user: User, data: WebhookCreateRequest) -> Webhook:
    await _ensure_unique_name(db, user, data.name)

    limit = get_webhook_limit(user.plan)
    if limit is not None:
        count = (
            await db.execute(
                select(func.count()).select_from(Webhook).where(Webhook.user_id == user.id)
            )
        ).scalar_one()
        if count >= limit:
            plural = "" if limit == 1 else "s"
            raise PlanLimitError(
                f"You have reached your limit of {limit} webhook{plural}. "
                "Please upgrade to the Pro plan for unlimited webhooks."
            )

    webhook = Webhook(
        user_id=user.id,
        name=data.name,
        url=data.url,
        description=data.description,
        event_categories=data.event_categories,
        headers=data.headers,
        secret=generate_secret(),
    )
    db.add(webhook)
    await db.flush()
    logger.info("Webhook created", extra={"user_id": str(user.id), "webhook_id": str(webhook.id)})
    return webhook


async def update_webhook(
    db: AsyncSession, user: User, webhook_id: str, data: WebhookUpdateRequest,
) -> Webhook:
    webhook = await get_owned_webhook(db, user, webhook_id)
    if data.name != webhook.name:
        await _ensure_unique_name(db, user, data.name, exclude_id=webhook.id)

    webhook.name = data.name
    webhook.url = data.url
    webhook.description = data.description
    webhook.event_categories = data.event_categories
    webhook.headers = data.headers
    webhook.status = data.status
    await db.flush()
    return webhook


async def delete_webhook(db: AsyncSession, user: User, webhook_id: str) -> None:
    webhook = await get_owned_webhook(db, user, webhook_id)
    await db.delete(webhook)
    await db.flush()
    logger.info("Webhook deleted", extra={"user_id": str(user.id), "webhook_id": str(webhook_id)})


async def regenerate_secret(db: AsyncSession, user: User, webhook_id: str) -> Webhook:
    webhook = await get_owned_webhook(db, user, webhook_id)
    webhook.secret = generate_secret()
    await db.flush()
    logger.info("Webhook secret regenerated", extra={"webhook_id": str(webhook.id)})
    return webhook


async def list_webhooks(db: AsyncSession, user: User) -> list[Webhook]:
    result = await db.execute(
        select(Webhook).where(Webhook.user_id == user.id).order_by(Webhook.created_at.desc())
    )
    return list(result.scalars().all())


async def get_webhook_detail(db: AsyncSession, user: User, webhook_id: str) -> dict:
    """Webhook plus its most recent deliveries."""
    webhook = await get_owned_webhook(db, user, webhook_id)
    result = await db.execute(
        select(WebhookDelivery)
        .where(WebhookDelivery.webhook_id == webhook.id)
        .order_by(WebhookDelivery.created_at.desc())
        .limit(RECENT_DELIVERIES)
    )
    detail = serialize_webhook(webhook)
    detail["deliveries"] = [serialize_delivery(d) for d in result.scalars().all()]
    return detail
