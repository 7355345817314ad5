"""
Category management endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.api.deps import get_current_user
from monitorflow.database import get_db
from monitorflow.models.user import User
from monitorflow.schemas.api_responses import CategoryListResponse, CategorySummary, UsageResponse
from monitorflow.schemas.management import CategoryCreateRequest
from monitorflow.services import categories as category_service
from monitorflow.services.quota import get_usage

router = APIRouter(prefix="/api/v1", tags=["categories"])


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return {"categories": await category_service.list_categories(db, user)}


@router.post("/categories", response_model=CategorySummary, status_code=201)
async def create_category(
    data: CategoryCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    category = await category_service.create_category(
        db, user, data.name, data.color, data.emoji,
    )
    return CategorySummary(
        id=str(category.id),
        name=category.name,
        color=category.color,
        emoji=category.emoji,
        created_at=category.created_at,
    )


@router.post("/categories/quickstart")
async def quickstart_categories(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    count = await category_service.insert_quickstart_categories(db, user)
    return {"success": True, "count": count}


@router.get("/categories/{name}/has-events")
async def poll_category(
    name: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return {"hasEvents": await category_service.category_has_events(db, user, name)}


@router.delete("/categories/{name}")
async def delete_category(
    name: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await category_service.delete_category(db, user, name)
    return {"success": True}


@router.get("/usage", response_model=UsageResponse)
async def usage(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await get_usage(db, user)
