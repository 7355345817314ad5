"""
Outbound webhook schemas - the body we POST to subscriber endpoints
and the structured result of one delivery attempt.
"""
from typing import Optional, Union
from pydantic import BaseModel, Field

FieldValue = Union[bool, int, float, str]


class WebhookEventData(BaseModel):
    id: str
    name: str
    category: Optional[str] = None
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    createdAt: str


class WebhookAccount(BaseModel):
    id: str


class WebhookPayload(BaseModel):
    """Body of every outbound webhook POST. `id` is unique per delivery."""
    id: str
    event: WebhookEventData
    timestamp: str
    account: WebhookAccount


class DeliveryResult(BaseModel):
    """Outcome of one transport attempt. success is True iff the status is 2xx."""
    success: bool
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    error: Optional[str] = None
