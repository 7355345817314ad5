"""
Event endpoints - ingestion plus dashboard queries.

POST /api/v1/events is the public intake: see services/ingestion.py for
the full stage order. Errors are MonitorFlowError subclasses rendered by
the app-level exception handler.
"""
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from monitorflow.api.deps import get_current_user
from monitorflow.database import get_db, get_session_factory
from monitorflow.models.user import User
from monitorflow.schemas.api_responses import EventAcceptedResponse, EventListResponse, EventSummary
from monitorflow.services.events import acknowledge_event, list_events, serialize_event
from monitorflow.services.ingestion import ingest_event
from monitorflow.utils.rate_limiter import get_client_ip

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/events", tags=["events"])


def get_notifier():
    """Notification channel override point; None selects the Discord client."""
    return None


@router.post("", response_model=EventAcceptedResponse)
async def create_event(
    request: Request,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier),
):
    """Ingest one event and fan it out to Discord and matching webhooks."""
    body = await request.body()
    return await ingest_event(
        db,
        session_factory,
        client_ip=get_client_ip(request),
        authorization=request.headers.get("Authorization"),
        body=body,
        notifier=notifier,
    )


@router.get("", response_model=EventListResponse)
async def get_events(
    category: str = Query(..., min_length=1),
    time_range: str = Query("month"),
    acknowledgment: str = Query("all"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await list_events(
        db, user, category,
        time_range=time_range,
        acknowledgment=acknowledgment,
        page=page,
        limit=limit,
    )


@router.post("/{event_id}/acknowledge", response_model=EventSummary)
async def acknowledge(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    event = await acknowledge_event(db, user, event_id)
    return serialize_event(event)
