"""
Tests for scripts/fix_webhook_count.py - trimming webhooks down to the plan limit.
"""
import pytest
from unittest.mock import patch
from sqlalchemy import select

from monitorflow.models.webhook import Webhook
from scripts.fix_webhook_count import fix_webhook_count


async def _names(db, user):
    db.expire_all()
    return set((await db.execute(select(Webhook.name).where(Webhook.user_id == user.id))).scalars().all())


class TestFixWebhookCount:
    @pytest.mark.asyncio
    async def test_keeps_most_recent_for_free_plan(self, db, session_factory, make_user, make_webhook):
        user = await make_user(plan="FREE")
        for name in ("first", "second", "third"):
            await make_webhook(user, name=name)

        with patch("scripts.fix_webhook_count.async_session_factory", session_factory):
            removed = await fix_webhook_count()

        assert removed == 2
        assert await _names(db, user) == {"third"}

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, db, session_factory, make_user, make_webhook):
        user = await make_user(plan="FREE")
        await make_webhook(user, name="first")
        await make_webhook(user, name="second")

        with patch("scripts.fix_webhook_count.async_session_factory", session_factory):
            removed = await fix_webhook_count(dry_run=True)

        assert removed == 1
        assert await _names(db, user) == {"first", "second"}

    @pytest.mark.asyncio
    async def test_pro_plan_untouched(self, db, session_factory, make_user, make_webhook):
        user = await make_user(plan="PRO")
        for name in ("a", "b", "c"):
            await make_webhook(user, name=name)

        with patch("scripts.fix_webhook_count.async_session_factory", session_factory):
            removed = await fix_webhook_count()

        assert removed == 0
        assert len(await _names(db, user)) == 3
