from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from jinja2 import TemplateError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PersistenceError, StepUpError, ValidationError
from app.core.settings import settings
from app.models.notification import Notification
from app.models.user import User
from app.services import email_templates
from app.services.delivery import EMAIL, PUSH, SMS, DeliveryResult
from app.services.email import get_email_sender
from app.services.notification_config import EffectiveConfig, resolve_config
from app.services.sms import get_sms_adapter
from app.utils.phone import normalize_phone

logger = logging.getLogger(__name__)

EVENT_TYPES = ("login", "transaction", "low_balance", "high_value_transaction", "system_alert")
PRIORITIES = ("low", "medium", "high", "critical")
STATUSES = ("unread", "read")
TYPE_DISABLED = "type_disabled"

_TYPE_TOGGLES = {
    "login": "login_alerts",
    "transaction": "transaction_alerts",
    "low_balance": "low_balance_alerts",
}

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@dataclass(slots=True)
class NotificationPayload:
    user_id: uuid.UUID
    type: str
    title: str
    message: str
    priority: str = "medium"
    branch_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class DispatchResult:
    success: bool
    results: list[DeliveryResult] = field(default_factory=list)
    notification_id: uuid.UUID | None = None
    reason: str | None = None


def should_send(config: EffectiveConfig, event_type: str) -> bool:
    toggle = _TYPE_TOGGLES.get(event_type)
    return True if toggle is None else bool(getattr(config, toggle))


def _validate_payload(payload: NotificationPayload) -> None:
    if payload.type not in EVENT_TYPES:
        raise ValidationError(f"Unsupported notification type: {payload.type}")
    if payload.priority not in PRIORITIES:
        raise ValidationError(f"Unsupported priority: {payload.priority}")
    if not payload.title.strip() or not payload.message.strip():
        raise ValidationError("Notification title and message are required")


async def send_sms(config: EffectiveConfig, phone: str, message: str) -> DeliveryResult:
    """Send one SMS with the config's provider credentials.

    Raises ConfigurationError when the provider or its credentials are missing and
    ValidationError for an unusable phone number. Gateway failures come back as a
    failed result.
    """
    adapter = get_sms_adapter(config.sms.provider)
    adapter.check_credentials(config.sms)
    return await adapter.send(normalize_phone(phone), message, config.sms)


async def send_email(config: EffectiveConfig, to: str, subject: str, html: str) -> DeliveryResult:
    return await get_email_sender().send(to, subject, html, config.email)


def check_sms_ready(config: EffectiveConfig) -> None:
    get_sms_adapter(config.sms.provider).check_credentials(config.sms)


def check_email_ready(config: EffectiveConfig) -> None:
    get_email_sender().check_credentials(config.email)


async def _attempt(channel: str, coro) -> DeliveryResult:
    try:
        return await coro
    except StepUpError as exc:
        return DeliveryResult.failed(channel, error=exc.message)
    except TemplateError as exc:
        logger.warning("Notification body could not be rendered", exc_info=True, extra={"channel": channel})
        return DeliveryResult.failed(channel, error=f"Template error: {exc.__class__.__name__}")


async def _send_email_event(config: EffectiveConfig, payload: NotificationPayload) -> DeliveryResult:
    html = email_templates.render(
        email_templates.template_for_event(payload.type),
        title=payload.title,
        message=payload.message,
        metadata=payload.metadata or {},
        name=config.full_name,
    )
    return await send_email(config, config.email_address, payload.title, html)


def _deliver_push(payload: NotificationPayload) -> DeliveryResult:
    # No push gateway is wired up yet; the in-app record is the delivery.
    logger.info(
        "Push notification queued",
        extra={"user_id": str(payload.user_id), "notification_type": payload.type},
    )
    return DeliveryResult.sent(PUSH, provider="in_app")


async def _record_notification(db: AsyncSession, payload: NotificationPayload) -> uuid.UUID:
    notification_id = uuid.uuid4()
    record = Notification(
        id=notification_id,
        user_id=payload.user_id,
        branch_id=payload.branch_id,
        type=payload.type,
        title=payload.title,
        message=payload.message,
        meta=payload.metadata,
        priority=payload.priority,
        status="unread",
    )
    try:
        db.add(record)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("Failed to store notification") from exc
    return notification_id


async def send_notification(
    db: AsyncSession,
    payload: NotificationPayload,
    *,
    config: EffectiveConfig | None = None,
) -> DispatchResult:
    _validate_payload(payload)
    config = config or await resolve_config(db, payload.user_id)

    if not should_send(config, payload.type):
        logger.info(
            "Notification type disabled by user",
            extra={"user_id": str(payload.user_id), "notification_type": payload.type},
        )
        return DispatchResult(success=False, reason=TYPE_DISABLED)

    notification_id = None
    try:
        notification_id = await _record_notification(db, payload)
    except PersistenceError:
        logger.warning(
            "Notification record not stored; continuing with delivery",
            exc_info=True,
            extra={"user_id": str(payload.user_id)},
        )

    results: list[DeliveryResult] = []
    if config.email_enabled and config.email_address:
        results.append(await _attempt(EMAIL, _send_email_event(config, payload)))
    if config.sms_enabled and config.phone_number:
        results.append(await _attempt(SMS, send_sms(config, config.phone_number, payload.message)))
    if config.push_enabled:
        results.append(_deliver_push(payload))

    success = not results or any(result.success for result in results)
    for result in results:
        if not result.success:
            logger.warning(
                "Notification channel failed",
                extra={"channel": result.channel, "provider": result.provider, "error": result.error},
            )
    return DispatchResult(success=success, results=results, notification_id=notification_id)


async def get_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    type: str | None = None,
    status: str | None = None,
) -> list[Notification]:
    if not 1 <= limit <= MAX_PAGE_SIZE or offset < 0:
        raise ValidationError("Invalid pagination")
    if type is not None and type not in EVENT_TYPES:
        raise ValidationError(f"Unsupported notification type: {type}")
    if status is not None and status not in STATUSES:
        raise ValidationError(f"Unsupported status: {status}")
    stmt = select(Notification).where(Notification.user_id == user_id)
    if type:
        stmt = stmt.where(Notification.type == type)
    if status:
        stmt = stmt.where(Notification.status == status)
    stmt = stmt.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    stmt = select(func.count()).select_from(Notification).where(
        Notification.user_id == user_id,
        Notification.status == "unread",
    )
    return (await db.execute(stmt)).scalar_one()


async def mark_as_read(db: AsyncSession, *, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
    stmt = select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    notification = (await db.execute(stmt)).scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.status != "read":
        notification.status = "read"
        notification.read_at = datetime.now(timezone.utc)
        db.add(notification)
        await db.commit()
        await db.refresh(notification)
    return notification


async def _get_user_or_404(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


async def send_login_alert(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    ip_address: str | None,
    user_agent: str | None,
    location: str | None = None,
    branch_id: str | None = None,
) -> DispatchResult:
    user = await _get_user_or_404(db, user_id)
    timestamp = _timestamp()
    return await send_notification(
        db,
        NotificationPayload(
            user_id=user_id,
            type="login",
            title="New Login Alert",
            message=(
                f"Hello {user.full_name}, a new login was detected on your account at {timestamp}. "
                f"IP: {ip_address or 'unknown'}. If this wasn't you, please contact support immediately."
            ),
            branch_id=branch_id,
            metadata={
                "ip_address": ip_address,
                "user_agent": user_agent,
                "location": location,
                "timestamp": timestamp,
            },
        ),
    )


async def send_transaction_alert(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    transaction_type: str,
    amount: float,
    service: str,
    reference: str,
    branch_id: str | None = None,
) -> DispatchResult:
    await _get_user_or_404(db, user_id)
    config = await resolve_config(db, user_id)
    high_value = amount >= config.high_value_transaction_threshold
    return await send_notification(
        db,
        NotificationPayload(
            user_id=user_id,
            type="transaction",
            title="Transaction Alert",
            message=(
                f"Transaction processed: {service} {transaction_type} of GHS {amount:.2f}. "
                f"Reference: {reference}"
            ),
            priority="high" if high_value else "medium",
            branch_id=branch_id,
            metadata={
                "transaction_type": transaction_type,
                "amount": amount,
                "service": service,
                "reference": reference,
                "high_value": high_value,
                "timestamp": _timestamp(),
            },
        ),
        config=config,
    )


async def send_low_balance_alert(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    account_name: str,
    current_balance: float,
    threshold: float | None = None,
    branch_id: str | None = None,
) -> DispatchResult:
    await _get_user_or_404(db, user_id)
    config = await resolve_config(db, user_id)
    threshold = config.low_balance_threshold if threshold is None else threshold
    return await send_notification(
        db,
        NotificationPayload(
            user_id=user_id,
            type="low_balance",
            title="Low Balance Alert",
            message=(
                f"Low balance alert for {account_name}. Current balance: GHS {current_balance:.2f}. "
                f"Threshold: GHS {threshold:.2f}. Please recharge soon."
            ),
            priority="high",
            branch_id=branch_id,
            metadata={
                "account_name": account_name,
                "current_balance": current_balance,
                "threshold": threshold,
                "timestamp": _timestamp(),
            },
        ),
        config=config,
    )


async def send_test_notification(db: AsyncSession, user_id: uuid.UUID) -> DispatchResult:
    return await send_notification(
        db,
        NotificationPayload(
            user_id=user_id,
            type="system_alert",
            title="Test Notification",
            message="This is a test notification to verify your notification settings are working correctly.",
        ),
    )


async def send_test_sms(db: AsyncSession, user_id: uuid.UUID, *, phone: str | None = None) -> DeliveryResult:
    config = await resolve_config(db, user_id)
    target = phone or config.phone_number
    if not target:
        raise ValidationError("Phone number is required")
    return await send_sms(
        config,
        target,
        f"{settings.brand_name}: this is a test SMS to confirm your SMS settings are working.",
    )
