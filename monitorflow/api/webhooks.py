"""
Webhook management endpoints - CRUD, secret rotation and the delivery ledger.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from monitorflow.api.deps import get_current_user
from monitorflow.database import get_db
from monitorflow.models.user import User
from monitorflow.schemas.api_responses import DeliveryListResponse, WebhookDetail, WebhookSummary
from monitorflow.schemas.management import WebhookCreateRequest, WebhookUpdateRequest
from monitorflow.services import webhooks as webhook_service
from monitorflow.services.deliveries import list_deliveries

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.get("", response_model=list[WebhookSummary])
async def list_webhooks(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    webhooks = await webhook_service.list_webhooks(db, user)
    return [webhook_service.serialize_webhook(w) for w in webhooks]


@router.post("", response_model=WebhookSummary, status_code=201)
async def create_webhook(
    data: WebhookCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    webhook = await webhook_service.create_webhook(db, user, data)
    return webhook_service.serialize_webhook(webhook)


@router.get("/{webhook_id}", response_model=WebhookDetail)
async def get_webhook(
    webhook_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await webhook_service.get_webhook_detail(db, user, webhook_id)


@router.put("/{webhook_id}", response_model=WebhookSummary)
async def update_webhook(
    webhook_id: str,
    data: WebhookUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    webhook = await webhook_service.update_webhook(db, user, webhook_id, data)
    return webhook_service.serialize_webhook(webhook)


@router.delete("/{webhook_id}")
async def delete_webhook(
    webhook_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await webhook_service.delete_webhook(db, user, webhook_id)
    return {"success": True}


@router.post("/{webhook_id}/regenerate-secret", response_model=WebhookSummary)
async def regenerate_secret(
    webhook_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    webhook = await webhook_service.regenerate_secret(db, user, webhook_id)
    return webhook_service.serialize_webhook(webhook)


@router.get("/{webhook_id}/deliveries", response_model=DeliveryListResponse)
async def get_deliveries(
    webhook_id: str,
    limit: int = Query(10, ge=1, le=100),
    cursor: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    webhook = await webhook_service.get_owned_webhook(db, user, webhook_id)
    return await list_deliveries(db, webhook.id, limit=limit, cursor=cursor)
