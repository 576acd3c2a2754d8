from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models.notification_settings import NotificationSettings
from app.models.user import User
from app.schemas.notifications import NotificationSettingsOut, NotificationSettingsUpdate
from app.services import notification_config

router = APIRouter(prefix="/notification-settings", tags=["notifications"])


def _to_out(row: NotificationSettings) -> NotificationSettingsOut:
    out = NotificationSettingsOut.model_validate(row)
    out.sms_credentials_configured = bool(row.sms_api_key)
    return out


@router.get("", response_model=NotificationSettingsOut, summary="Current user's notification settings")
async def get_settings(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationSettingsOut:
    row = await notification_config.get_notification_settings(db, current_user.id)
    return _to_out(row)


@router.put("", response_model=NotificationSettingsOut, summary="Update notification settings")
async def update_settings(
    payload: NotificationSettingsUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationSettingsOut:
    row = await notification_config.update_notification_settings(
        db, current_user.id, payload.model_dump(exclude_unset=True)
    )
    return _to_out(row)
