"""
API key authentication for ingestion and management calls.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.models.user import User
from monitorflow.utils.errors import AuthError, MissingNotificationAddressError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def parse_bearer_token(authorization: Optional[str]) -> str:
    """Extract the API key from an `Authorization: Bearer <key>` header."""
    if not authorization:
        raise AuthError("Unauthorized")
    if not authorization.startswith(BEARER_PREFIX):
        raise AuthError("Invalid auth header format. Expected: 'Bearer [API_KEY]'")

    api_key = authorization[len(BEARER_PREFIX):].strip()
    if not api_key:
        raise AuthError("Invalid API key")
    return api_key


async def authenticate(db: AsyncSession, authorization: Optional[str]) -> User:
    """Resolve the calling user from the Authorization header."""
    api_key = parse_bearer_token(authorization)
    result = await db.execute(select(User).where(User.api_key == api_key))
    user = result.scalar_one_or_none()
    if not user:
        logger.info("Rejected request with unknown API key")
        raise AuthError("Invalid API key")
    return user


def require_notification_address(user: User) -> str:
    if not user.discord_id:
        raise MissingNotificationAddressError()
    return user.discord_id
