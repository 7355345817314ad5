"""
Trim each user's webhooks down to their plan limit, keeping the most recent.

Usage:
    python scripts/fix_webhook_count.py [--dry-run]
"""
import asyncio
import logging
import sys

from sqlalchemy import select

from monitorflow.database import async_session_factory, dispose_engine
from monitorflow.models.user import User
from monitorflow.models.webhook import Webhook
from monitorflow.services.plan_limits import get_webhook_limit

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def fix_webhook_count(dry_run: bool = False) -> int:
    """Returns the number of webhooks deleted (or that would be deleted)."""
    removed = 0
    async with async_session_factory() as db:
        users = (await db.execute(select(User))).scalars().all()
        logger.info("Found %d users", len(users))

        for user in users:
            limit = get_webhook_limit(user.plan)
            if limit is None:
                continue

            webhooks = (
                await db.execute(
                    select(Webhook)
                    .where(Webhook.user_id == user.id)
                    .order_by(Webhook.created_at.desc())
                )
            ).scalars().all()
            if len(webhooks) <= limit:
                continue

            extra = webhooks[limit:]
            logger.info(
                "User %s has %d webhooks (limit %d) - removing %d",
                user.email, len(webhooks), limit, len(extra),
            )
            for webhook in extra:
                logger.info("  %s webhook %s (%s)", "Would delete" if dry_run else "Deleting", webhook.name, webhook.id)
                if not dry_run:
                    await db.delete(webhook)
                removed += 1

        if not dry_run:
            await db.commit()

    logger.info("Webhook cleanup complete: %d removed", removed)
    return removed


async def main() -> None:
    try:
        await fix_webhook_count(dry_run="--dry-run" in sys.argv)
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
