"""
Database-backed fixed-window rate limiter for the ingestion endpoint.

The check and the increment are a single INSERT ... ON CONFLICT DO UPDATE
statement, so concurrent requests sharing a key can never over-admit.
"""
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from sqlalchemy import case, or_
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.config import get_settings
from monitorflow.database import upsert
from monitorflow.models.rate_limit import RateLimit

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100  # requests per window per key
WINDOW_SECONDS = 3600

# Longest textual IPv6 address (IPv4-mapped form)
MAX_PLAIN_KEY_LENGTH = 45


def rate_limit_key(client_ip: str) -> str:
    """Identities longer than any IP address are hashed to keep the key bounded."""
    if len(client_ip) > MAX_PLAIN_KEY_LENGTH:
        client_ip = "sha256:" + hashlib.sha256(client_ip.encode("utf-8")).hexdigest()
    return f"rate_limit:{client_ip}"


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a trusted proxy, else the socket peer."""
    if get_settings().trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    return request.client.host if request.client else "unknown"


async def check_and_increment(
    db: AsyncSession,
    key: str,
    limit: int = DEFAULT_LIMIT,
    window_seconds: int = WINDOW_SECONDS,
    now: Optional[datetime] = None,
) -> bool:
    """
    Allow the request and count it, or deny it without counting.

    - No row, or window expired: reset to count=1, reset_at=now+window.
    - Inside the window: increment only while count < limit.
    Commits immediately so the counter survives later request failures.
    """
    now = now or datetime.now(timezone.utc)
    table = RateLimit.__table__
    expired = table.c.reset_at <= now

    stmt = upsert(db, RateLimit).values(
        key=key, count=1, reset_at=now + timedelta(seconds=window_seconds),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.key],
        set_={
            "count": case((expired, 1), else_=table.c.count + 1),
            "reset_at": case((expired, stmt.excluded.reset_at), else_=table.c.reset_at),
        },
        where=or_(expired, table.c.count < limit),
    ).returning(table.c.count)

    result = await db.execute(stmt)
    row = result.first()
    await db.commit()

    if row is None:
        logger.warning("Rate limit exceeded: key=%s limit=%d", key, limit)
        return False
    return True
