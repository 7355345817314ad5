"""
Monthly event quota enforcement.

Period key is (user_id, month, year) in UTC. The increment is a single
conditional upsert, so concurrent ingestions for one user cannot push the
count past the plan ceiling.

Policy: quota is only consumed by events that end DELIVERED. The pipeline
increments during fan-out and calls release_quota() if the notification
send fails afterwards.
"""
import logging
from datetime import datetime, date, timezone
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.database import upsert
from monitorflow.models.event_category import EventCategory
from monitorflow.models.quota import Quota
from monitorflow.models.user import User
from monitorflow.services.plan_limits import get_monthly_event_limit, get_category_limit

logger = logging.getLogger(__name__)


def current_period(now: Optional[datetime] = None) -> tuple[int, int]:
    """(month, year) for the quota period containing now."""
    now = now or datetime.now(timezone.utc)
    return now.month, now.year


def period_reset_date(now: Optional[datetime] = None) -> date:
    """First day of the next calendar month."""
    month, year = current_period(now)
    if month == 12:
        return date(year + 1, 1, 1)
    return date(year, month + 1, 1)


async def get_quota_count(db: AsyncSession, user_id, now: Optional[datetime] = None) -> int:
    month, year = current_period(now)
    result = await db.execute(
        select(Quota.count).where(
            Quota.user_id == user_id,
            Quota.month == month,
            Quota.year == year,
        )
    )
    return result.scalar_one_or_none() or 0


async def check_quota(db: AsyncSession, user: User, now: Optional[datetime] = None) -> bool:
    """Read-only pre-check: True while the user is below their monthly ceiling."""
    count = await get_quota_count(db, user.id, now)
    return count < get_monthly_event_limit(user.plan)


async def increment_quota(db: AsyncSession, user: User, now: Optional[datetime] = None) -> bool:
    """
    Atomically consume one event from the current period.
    Returns False (without incrementing) when the ceiling is already reached.
    """
    month, year = current_period(now)
    ceiling = get_monthly_event_limit(user.plan)
    table = Quota.__table__

    stmt = upsert(db, Quota).values(
        user_id=user.id, month=month, year=year, count=1,
        updated_at=datetime.now(timezone.utc),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.user_id, table.c.month, table.c.year],
        set_={
            "count": table.c.count + 1,
            "updated_at": stmt.excluded.updated_at,
        },
        where=table.c.count < ceiling,
    ).returning(table.c.count)

    result = await db.execute(stmt)
    row = result.first()
    await db.commit()

    if row is None:
        logger.warning(
            "Monthly quota ceiling reached during increment",
            extra={"user_id": str(user.id)},
        )
        return False
    return True


async def release_quota(db: AsyncSession, user: User, now: Optional[datetime] = None) -> None:
    """Give back one event consumed by a request that did not end DELIVERED."""
    month, year = current_period(now)
    await db.execute(
        update(Quota)
        .where(
            Quota.user_id == user.id,
            Quota.month == month,
            Quota.year == year,
            Quota.count > 0,
        )
        .values(count=Quota.count - 1)
    )
    await db.commit()


async def get_usage(db: AsyncSession, user: User, now: Optional[datetime] = None) -> dict:
    """Current period usage against plan limits."""
    events_used = await get_quota_count(db, user.id, now)
    categories_used = (
        await db.execute(
            select(func.count()).select_from(EventCategory).where(EventCategory.user_id == user.id)
        )
    ).scalar_one()

    return {
        "plan": user.plan,
        "events_used": events_used,
        "events_limit": get_monthly_event_limit(user.plan),
        "categories_used": categories_used,
        "categories_limit": get_category_limit(user.plan),
        "reset_date": period_reset_date(now),
    }
