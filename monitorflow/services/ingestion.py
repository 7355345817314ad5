"""
Event ingestion pipeline - the dispatcher behind POST /api/v1/events.

Stages (in order):
1. Rate limit (per caller IP, fixed window)
2. Authenticate (API key) + notification address check
3. Monthly quota pre-check
4. Parse + validate the body
5. Resolve category and matching webhooks
6. Persist the event (PENDING) - durability checkpoint
7. Parallel fan-out: Discord DM, quota increment, one branch per webhook
8. Finalize: DELIVERED, or FAILED with the error text (event is never removed)

Webhook branches record exactly one WebhookDelivery each and never raise;
their outcomes do not affect the event's delivery status.
"""
import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from monitorflow.config import get_settings
from monitorflow.models.event import Event, DELIVERY_PENDING, DELIVERY_DELIVERED, DELIVERY_FAILED
from monitorflow.models.event_category import EventCategory
from monitorflow.models.user import User
from monitorflow.models.webhook import Webhook
from monitorflow.schemas.event_request import EventRequest
from monitorflow.schemas.webhook_payloads import (
    DeliveryResult,
    WebhookAccount,
    WebhookEventData,
    WebhookPayload,
)
from monitorflow.services.accounts import authenticate, require_notification_address
from monitorflow.services.categories import resolve_category, matching_webhooks
from monitorflow.services.deliveries import record_delivery
from monitorflow.services.discord import DiscordClient
from monitorflow.services.quota import check_quota, increment_quota, release_quota
from monitorflow.services.webhook_client import send_webhook
from monitorflow.utils import rate_limiter
from monitorflow.utils.errors import (
    DeliveryFinalizationError,
    MalformedRequestError,
    PersistenceError,
    QuotaExceededError,
    RateLimitedError,
    ValidationError,
    format_validation_errors,
)
from monitorflow.utils.logging import bind_log_context
from monitorflow.utils.signatures import serialize_payload

logger = logging.getLogger(__name__)

DEFAULT_EMOJI = "\U0001f514"


def _iso(dt: datetime) -> str:
    """ISO-8601 UTC with a Z suffix. Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _field_text(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _reject_constant(token: str):
    raise ValueError(f"{token} is not valid JSON")


def parse_event_request(body: bytes) -> EventRequest:
    try:
        data = json.loads(body, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError):
        raise MalformedRequestError("Invalid JSON request body")

    try:
        return EventRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e.errors()))


def build_embed(category: EventCategory, request: EventRequest, now: Optional[datetime] = None) -> dict:
    """Discord embed for an event."""
    now = now or datetime.now(timezone.utc)
    name = category.name
    return {
        "title": f"{category.emoji or DEFAULT_EMOJI} {name[:1].upper()}{name[1:]}",
        "description": request.description or f"A new {name} event has occurred!",
        "color": category.color,
        "timestamp": _iso(now),
        "fields": [
            {"name": key, "value": _field_text(value), "inline": True}
            for key, value in (request.fields or {}).items()
        ],
    }


def build_webhook_payload(event: Event, category_name: str, user: User) -> WebhookPayload:
    """Payload for one delivery; `id` is fresh per delivery."""
    return WebhookPayload(
        id=str(uuid.uuid4()),
        event=WebhookEventData(
            id=str(event.id),
            name=event.name,
            category=category_name,
            fields=event.fields or {},
            createdAt=_iso(event.created_at),
        ),
        timestamp=_iso(datetime.now(timezone.utc)),
        account=WebhookAccount(id=str(user.id)),
    )


async def deliver_to_webhook(
    session_factory: async_sessionmaker,
    webhook: Webhook,
    event: Event,
    category_name: str,
    user: User,
) -> DeliveryResult:
    """
    One fan-out branch: send, then record exactly one delivery row.
    Never raises - failures are captured in the returned result and the ledger.
    """
    log_extra = {"event_id": str(event.id), "webhook_id": str(webhook.id)}
    request_body: Optional[str] = None

    try:
        payload = build_webhook_payload(event, category_name, user).model_dump()
        request_body = serialize_payload(payload)
        result = await send_webhook(webhook.url, payload, webhook.secret, webhook.headers or {})
    except Exception as e:
        logger.error("Error sending webhook %s: %s", webhook.id, str(e), exc_info=True, extra=log_extra)
        result = DeliveryResult(success=False, error=str(e) or e.__class__.__name__)
        if request_body is None:
            request_body = serialize_payload({
                "event": {
                    "id": str(event.id),
                    "name": event.name,
                    "category": category_name,
                    "fields": event.fields or {},
                },
            })

    try:
        async with session_factory() as session:
            record_delivery(session, webhook.id, event.id, request_body, result)
            await session.commit()
    except Exception as e:
        logger.error(
            "Failed to record webhook delivery: %s", str(e), exc_info=True, extra=log_extra,
        )

    if result.success:
        logger.info(
            "Webhook delivered",
            extra={**log_extra, "status_code": result.status_code},
        )
    else:
        logger.warning(
            "Webhook delivery failed: %s", result.error or f"HTTP {result.status_code}",
            extra={**log_extra, "status_code": result.status_code},
        )
    return result


async def _consume_quota(session_factory: async_sessionmaker, user: User) -> None:
    async with session_factory() as session:
        if not await increment_quota(session, user):
            raise QuotaExceededError()


async def _release_quota(session_factory: async_sessionmaker, user: User) -> None:
    try:
        async with session_factory() as session:
            await release_quota(session, user)
    except SQLAlchemyError as e:
        logger.error("Failed to release quota: %s", str(e), extra={"user_id": str(user.id)})


async def ingest_event(
    db: AsyncSession,
    session_factory: async_sessionmaker,
    *,
    client_ip: str,
    authorization: Optional[str],
    body: bytes,
    notifier=None,
) -> dict:
    """
    Run one inbound event through the full pipeline.
    Returns {"message", "eventId"} on success; raises a MonitorFlowError otherwise.
    """
    settings = get_settings()

    # 1. Rate limit
    allowed = await rate_limiter.check_and_increment(
        db,
        rate_limiter.rate_limit_key(client_ip),
        limit=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    if not allowed:
        raise RateLimitedError()

    # 2. Authenticate
    user = await authenticate(db, authorization)
    recipient_id = require_notification_address(user)

    # 3. Quota pre-check
    if not await check_quota(db, user):
        raise QuotaExceededError()

    # 4. Validate
    request = parse_event_request(body)

    # 5. Resolve category + subscribers
    category = await resolve_category(db, user.id, request.category)
    webhooks = await matching_webhooks(db, user.id, category.name)

    # 6. Persist - the event exists from here on regardless of delivery outcome
    embed = build_embed(category, request)
    event = Event(
        user_id=user.id,
        event_category_id=category.id,
        name=category.name,
        formatted_message=f"{embed['title']}\n\n{embed['description']}",
        fields=request.fields or {},
        delivery_status=DELIVERY_PENDING,
    )
    try:
        db.add(event)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to persist event: %s", str(e), exc_info=True)
        raise PersistenceError("Failed to persist event") from e

    event_id = str(event.id)
    bind_log_context(event_id=event_id, user_id=str(user.id), category=category.name)
    logger.info("Event persisted, fanning out to %d webhook(s)", len(webhooks))

    # 7. Fan-out
    notifier = notifier or DiscordClient()
    notify_result, quota_result, *webhook_results = await asyncio.gather(
        notifier.notify(recipient_id, embed),
        _consume_quota(session_factory, user),
        *[
            deliver_to_webhook(session_factory, webhook, event, category.name, user)
            for webhook in webhooks
        ],
        return_exceptions=True,
    )

    # 8. Finalize
    failure = next(
        (r for r in (notify_result, quota_result) if isinstance(r, BaseException)), None,
    )
    if failure is None:
        event.delivery_status = DELIVERY_DELIVERED
        await db.commit()
        logger.info(
            "Event delivered (%d/%d webhooks succeeded)",
            sum(1 for r in webhook_results if isinstance(r, DeliveryResult) and r.success),
            len(webhook_results),
        )
        return {"message": "Event processed successfully", "eventId": event_id}

    error_text = str(failure) or failure.__class__.__name__
    logger.error("Event delivery failed: %s", error_text, exc_info=failure)

    if not isinstance(quota_result, BaseException):
        await _release_quota(session_factory, user)

    event.delivery_status = DELIVERY_FAILED
    event.error = error_text
    await db.commit()

    raise DeliveryFinalizationError(event_id=event_id, error=error_text)
