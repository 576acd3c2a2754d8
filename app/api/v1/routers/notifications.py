from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import ProviderError
from app.db.session import get_db
from app.models.user import User
from app.schemas.notifications import (
    ChannelResultOut,
    DispatchResponse,
    NotificationCreate,
    NotificationListResponse,
    NotificationOut,
    TestSmsRequest,
    UnreadCountResponse,
)
from app.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse, summary="List the current user's notifications")
async def list_notifications(
    limit: int = Query(notification_service.DEFAULT_PAGE_SIZE, ge=1, le=notification_service.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    type: str | None = Query(None),
    status: str | None = Query(None),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationListResponse:
    items = await notification_service.get_notifications(
        db, current_user.id, limit=limit, offset=offset, type=type, status=status
    )
    return NotificationListResponse(
        items=[NotificationOut.model_validate(item) for item in items],
        limit=limit,
        offset=offset,
    )


@router.get("/unread/count", response_model=UnreadCountResponse, summary="Count unread notifications")
async def unread_count(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread=await notification_service.get_unread_count(db, current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationOut, summary="Mark a notification as read")
async def mark_read(
    notification_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationOut:
    notification = await notification_service.mark_as_read(
        db, notification_id=notification_id, user_id=current_user.id
    )
    return NotificationOut.model_validate(notification)


@router.post("", response_model=DispatchResponse, summary="Send a notification to the current user")
async def send(
    payload: NotificationCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DispatchResponse:
    result = await notification_service.send_notification(
        db,
        notification_service.NotificationPayload(user_id=current_user.id, **payload.model_dump()),
    )
    return DispatchResponse.model_validate(result)


@router.post("/test", response_model=DispatchResponse, summary="Send a test notification on all enabled channels")
async def send_test(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DispatchResponse:
    result = await notification_service.send_test_notification(db, current_user.id)
    return DispatchResponse.model_validate(result)


@router.post("/test-sms", response_model=ChannelResultOut, summary="Send a test SMS with the effective credentials")
async def send_test_sms(
    payload: TestSmsRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ChannelResultOut:
    result = await notification_service.send_test_sms(db, current_user.id, phone=payload.phone_number)
    if not result.success:
        raise ProviderError(result.error or "SMS delivery failed", details={"provider": result.provider})
    return ChannelResultOut.model_validate(result)
