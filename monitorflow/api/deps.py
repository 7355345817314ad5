"""
Shared FastAPI dependencies for authenticated management endpoints.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.database import get_db
from monitorflow.models.user import User
from monitorflow.services.accounts import authenticate


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the user from `Authorization: Bearer <api key>`."""
    return await authenticate(db, request.headers.get("Authorization"))
