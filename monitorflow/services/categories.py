"""
Category resolution and management.

Category names are lowercased at creation and at lookup, so resolution is
case-insensitive but always consistent with what was stored. Webhooks
subscribe by name string: deleting a category silently stops matches, and
recreating one with the same name re-attaches existing subscriptions.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.models.event import Event
from monitorflow.models.event_category import EventCategory
from monitorflow.models.user import User
from monitorflow.models.webhook import Webhook, WEBHOOK_ACTIVE
from monitorflow.services.plan_limits import get_category_limit
from monitorflow.utils.errors import ConflictError, NotFoundError, PlanLimitError

logger = logging.getLogger(__name__)

QUICKSTART_CATEGORIES = [
    {"name": "bug", "emoji": "\U0001f41b", "color": 0xFF6B6B},
    {"name": "sale", "emoji": "\U0001f4b0", "color": 0xFFEB3B},
    {"name": "question", "emoji": "\U0001f914", "color": 0x6C5CE7},
]


def normalize_category_name(name: str) -> str:
    return name.strip().lower()


def parse_color(color: str) -> int:
    """'#RRGGBB' -> integer (Discord embed color format)."""
    return int(color.lstrip("#"), 16)


async def resolve_category(db: AsyncSession, user_id: uuid.UUID, name: str) -> EventCategory:
    """Find the user's category by name or raise NotFoundError."""
    normalized = normalize_category_name(name)
    result = await db.execute(
        select(EventCategory).where(
            EventCategory.user_id == user_id,
            EventCategory.name == normalized,
        )
    )
    category = result.scalar_one_or_none()
    if not category:
        raise NotFoundError(f'You dont have a category named "{name}"')
    return category


async def matching_webhooks(db: AsyncSession, user_id: uuid.UUID, name: str) -> list[Webhook]:
    """ACTIVE webhooks of this user subscribed to the category name."""
    normalized = normalize_category_name(name)
    result = await db.execute(
        select(Webhook)
        .where(Webhook.user_id == user_id, Webhook.status == WEBHOOK_ACTIVE)
        .order_by(Webhook.created_at)
    )
    # JSON list containment differs between PostgreSQL and SQLite; match in Python
    return [
        webhook for webhook in result.scalars().all()
        if normalized in (webhook.event_categories or [])
    ]


async def create_category(
    db: AsyncSession,
    user: User,
    name: str,
    color: str,
    emoji: Optional[str] = None,
) -> EventCategory:
    normalized = normalize_category_name(name)

    count = (
        await db.execute(
            select(func.count()).select_from(EventCategory).where(EventCategory.user_id == user.id)
        )
    ).scalar_one()
    limit = get_category_limit(user.plan)
    if count >= limit:
        raise PlanLimitError(
            f"You have reached your limit of {limit} categories. "
            "Please upgrade to the Pro plan for more categories."
        )

    existing = await db.execute(
        select(EventCategory.id).where(
            EventCategory.user_id == user.id, EventCategory.name == normalized,
        )
    )
    if existing.scalar_one_or_none():
        raise ConflictError(f'A category named "{normalized}" already exists')

    category = EventCategory(
        user_id=user.id,
        name=normalized,
        color=parse_color(color),
        emoji=emoji,
    )
    db.add(category)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f'A category named "{normalized}" already exists')

    logger.info("Category created", extra={"user_id": str(user.id), "category": normalized})
    return category


async def insert_quickstart_categories(db: AsyncSession, user: User) -> int:
    """Create the bug/sale/question starter categories the user does not have yet."""
    existing = set(
        (
            await db.execute(select(EventCategory.name).where(EventCategory.user_id == user.id))
        ).scalars().all()
    )
    created = 0
    for preset in QUICKSTART_CATEGORIES:
        if preset["name"] in existing:
            continue
        db.add(EventCategory(user_id=user.id, **preset))
        created += 1
    await db.flush()
    return created


async def delete_category(db: AsyncSession, user: User, name: str) -> None:
    normalized = normalize_category_name(name)
    result = await db.execute(
        delete(EventCategory)
        .where(EventCategory.user_id == user.id, EventCategory.name == normalized)
    )
    if result.rowcount == 0:
        raise NotFoundError(f'Category "{normalized}" not found')
    logger.info("Category deleted", extra={"user_id": str(user.id), "category": normalized})


async def category_has_events(db: AsyncSession, user: User, name: str) -> bool:
    category = await resolve_category(db, user.id, name)
    count = (
        await db.execute(
            select(func.count()).select_from(Event).where(Event.event_category_id == category.id)
        )
    ).scalar_one()
    return count > 0


async def list_categories(db: AsyncSession, user: User, now: Optional[datetime] = None) -> list[dict]:
    """Categories with this month's event count, unique field names and last ping."""
    now = now or datetime.now(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    categories = (
        await db.execute(
            select(EventCategory)
            .where(EventCategory.user_id == user.id)
            .order_by(EventCategory.updated_at.desc())
        )
    ).scalars().all()

    events = (
        await db.execute(
            select(Event.event_category_id, Event.fields, Event.created_at).where(
                Event.user_id == user.id,
                Event.created_at >= month_start,
            )
        )
    ).all()

    stats: dict = {}
    for category_id, fields, created_at in events:
        entry = stats.setdefault(category_id, {"count": 0, "field_names": set(), "last_ping": None})
        entry["count"] += 1
        entry["field_names"].update((fields or {}).keys())
        if entry["last_ping"] is None or created_at > entry["last_ping"]:
            entry["last_ping"] = created_at

    summaries = []
    for category in categories:
        entry = stats.get(category.id, {"count": 0, "field_names": set(), "last_ping": None})
        summaries.append({
            "id": str(category.id),
            "name": category.name,
            "color": category.color,
            "emoji": category.emoji,
            "created_at": category.created_at,
            "events_count": entry["count"],
            "unique_field_count": len(entry["field_names"]),
            "last_ping": entry["last_ping"],
        })
    return summaries
