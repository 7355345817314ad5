"""
API response schemas for the ingestion and management endpoints.
"""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class EventAcceptedResponse(BaseModel):
    message: str
    eventId: str


class EventSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    formatted_message: str
    fields: dict
    delivery_status: str
    error: Optional[str] = None
    is_acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    created_at: datetime


class EventListResponse(BaseModel):
    events: list[EventSummary]
    total: int
    page: int
    pages: int


class CategorySummary(BaseModel):
    id: str
    name: str
    color: int
    emoji: Optional[str] = None
    created_at: datetime
    events_count: int = 0
    unique_field_count: int = 0
    last_ping: Optional[datetime] = None


class CategoryListResponse(BaseModel):
    categories: list[CategorySummary]


class WebhookSummary(BaseModel):
    id: str
    name: str
    url: str
    description: Optional[str] = None
    event_categories: list[str]
    headers: dict[str, str]
    status: str
    secret: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class DeliveryEventSummary(BaseModel):
    id: str
    name: str
    created_at: datetime


class DeliverySummary(BaseModel):
    id: str
    webhook_id: str
    event_id: str
    request_body: str
    response_body: Optional[str] = None
    status_code: Optional[int] = None
    success: bool
    error: Optional[str] = None
    created_at: datetime
    event: Optional[DeliveryEventSummary] = None


class WebhookDetail(WebhookSummary):
    deliveries: list[DeliverySummary] = []


class DeliveryListResponse(BaseModel):
    items: list[DeliverySummary]
    next_cursor: Optional[str] = None


class UsageResponse(BaseModel):
    plan: str
    events_used: int
    events_limit: int
    categories_used: int
    categories_limit: int
    reset_date: date
