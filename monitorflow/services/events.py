"""
Event queries and acknowledgment for the dashboard-facing API.
"""
import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.models.event import Event
from monitorflow.models.user import User
from monitorflow.services.categories import resolve_category
from monitorflow.utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TIME_RANGES = ("today", "week", "month")
ACK_FILTERS = ("all", "acknowledged", "unacknowledged")
MAX_EVENTS_PAGE = 50


def range_start(time_range: str, now: Optional[datetime] = None) -> datetime:
    """Start of today, of the week (weeks start Sunday) or of the month, in UTC."""
    now = now or datetime.now(timezone.utc)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if time_range == "today":
        return start_of_day
    if time_range == "week":
        days_since_sunday = (start_of_day.weekday() + 1) % 7
        return start_of_day - timedelta(days=days_since_sunday)
    if time_range == "month":
        return start_of_day.replace(day=1)
    raise ValidationError(f"time_range must be one of: {', '.join(TIME_RANGES)}")


def serialize_event(event: Event) -> dict:
    return {
        "id": str(event.id),
        "name": event.name,
        "formatted_message": event.formatted_message,
        "fields": event.fields or {},
        "delivery_status": event.delivery_status,
        "error": event.error,
        "is_acknowledged": event.is_acknowledged,
        "acknowledged_at": event.acknowledged_at,
        "created_at": event.created_at,
    }


async def list_events(
    db: AsyncSession,
    user: User,
    category_name: str,
    time_range: str = "month",
    acknowledgment: str = "all",
    page: int = 1,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> dict:
    if acknowledgment not in ACK_FILTERS:
        raise ValidationError(f"acknowledgment must be one of: {', '.join(ACK_FILTERS)}")
    if limit < 1 or limit > MAX_EVENTS_PAGE:
        raise ValidationError(f"limit must be between 1 and {MAX_EVENTS_PAGE}")
    page = max(page, 1)

    category = await resolve_category(db, user.id, category_name)
    conditions = [
        Event.user_id == user.id,
        Event.event_category_id == category.id,
        Event.created_at >= range_start(time_range, now),
    ]
    if acknowledgment == "acknowledged":
        conditions.append(Event.is_acknowledged.is_(True))
    elif acknowledgment == "unacknowledged":
        conditions.append(Event.is_acknowledged.is_(False))

    total = (
        await db.execute(select(func.count()).select_from(Event).where(*conditions))
    ).scalar_one()
    result = await db.execute(
        select(Event)
        .where(*conditions)
        .order_by(Event.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "events": [serialize_event(e) for e in result.scalars().all()],
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
    }


async def acknowledge_event(db: AsyncSession, user: User, event_id: str) -> Event:
    """Mark an event acknowledged. Re-acknowledging keeps the first timestamp."""
    try:
        event_uuid = uuid.UUID(event_id)
    except ValueError:
        raise NotFoundError("Event not found")

    result = await db.execute(
        select(Event).where(Event.id == event_uuid, Event.user_id == user.id)
    )
    event = result.scalar_one_or_none()
    if not event:
        raise NotFoundError("Event not found")

    if not event.is_acknowledged:
        event.is_acknowledged = True
        event.acknowledged_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("Event acknowledged", extra={"event_id": str(event.id)})
    return event
