"""Effective notification configuration for a user.

Per-user settings win; contact details fall back to the account profile and provider
credentials fall back to the system-wide config store. Reads never raise: when storage
is unavailable the caller gets conservative defaults with no contacts or credentials.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConfigurationError
from app.core.settings import settings
from app.db.upsert import dialect_insert
from app.models import system_config as keys
from app.models.notification_settings import NotificationSettings
from app.models.system_config import SystemConfig
from app.models.user import User
from app.services.email import EmailCredentials
from app.services.sms import SmsCredentials

logger = logging.getLogger(__name__)

DEFAULT_TOGGLES = {
    "email_notifications": True,
    "sms_notifications": True,
    "push_notifications": False,
    "login_alerts": True,
    "transaction_alerts": True,
    "low_balance_alerts": True,
}

UPDATABLE_FIELDS = frozenset(DEFAULT_TOGGLES) | {
    "email_address",
    "phone_number",
    "sms_provider",
    "sms_api_key",
    "sms_api_secret",
    "sms_sender_id",
    "high_value_transaction_threshold",
    "low_balance_threshold",
}


@dataclass(frozen=True, slots=True)
class EffectiveConfig:
    user_id: uuid.UUID
    email_enabled: bool = DEFAULT_TOGGLES["email_notifications"]
    sms_enabled: bool = DEFAULT_TOGGLES["sms_notifications"]
    push_enabled: bool = DEFAULT_TOGGLES["push_notifications"]
    login_alerts: bool = DEFAULT_TOGGLES["login_alerts"]
    transaction_alerts: bool = DEFAULT_TOGGLES["transaction_alerts"]
    low_balance_alerts: bool = DEFAULT_TOGGLES["low_balance_alerts"]
    email_address: str | None = None
    phone_number: str | None = None
    full_name: str | None = None
    sms: SmsCredentials = field(default_factory=lambda: SmsCredentials(provider=settings.default_sms_provider))
    email: EmailCredentials = field(default_factory=EmailCredentials)
    high_value_transaction_threshold: float = settings.high_value_transaction_threshold
    low_balance_threshold: float = settings.low_balance_threshold


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _sms_credentials(row: NotificationSettings | None, system: Mapping[str, str | None]) -> SmsCredentials:
    provider = (
        _first(getattr(row, "sms_provider", None), system.get(keys.SMS_PROVIDER), settings.default_sms_provider)
        .strip()
        .lower()
    )
    if provider == "hubtel":
        system_key = _first(system.get(keys.HUBTEL_CLIENT_ID), system.get(keys.SMS_API_KEY))
        system_secret = _first(system.get(keys.HUBTEL_CLIENT_SECRET), system.get(keys.SMS_API_SECRET))
        system_sender = _first(system.get(keys.HUBTEL_SENDER_ID), system.get(keys.SMS_SENDER_ID))
    else:
        system_key = system.get(keys.SMS_API_KEY)
        system_secret = system.get(keys.SMS_API_SECRET)
        system_sender = system.get(keys.SMS_SENDER_ID)
    return SmsCredentials(
        provider=provider,
        api_key=_first(getattr(row, "sms_api_key", None), system_key),
        api_secret=_first(getattr(row, "sms_api_secret", None), system_secret),
        sender_id=_first(getattr(row, "sms_sender_id", None), system_sender, settings.default_sms_sender_id),
    )


def resolve_effective_config(
    row: NotificationSettings | None,
    profile: User | None,
    system: Mapping[str, str | None],
    *,
    user_id: uuid.UUID,
) -> EffectiveConfig:
    """Merge a settings row, the account profile and system fallbacks. Pure."""
    toggles = {
        name: default if row is None or getattr(row, name) is None else bool(getattr(row, name))
        for name, default in DEFAULT_TOGGLES.items()
    }
    return EffectiveConfig(
        user_id=user_id,
        email_enabled=toggles["email_notifications"],
        sms_enabled=toggles["sms_notifications"],
        push_enabled=toggles["push_notifications"],
        login_alerts=toggles["login_alerts"],
        transaction_alerts=toggles["transaction_alerts"],
        low_balance_alerts=toggles["low_balance_alerts"],
        email_address=_first(getattr(row, "email_address", None), getattr(profile, "email", None)),
        phone_number=_first(getattr(row, "phone_number", None), getattr(profile, "phone_number", None)),
        full_name=getattr(profile, "full_name", None),
        sms=_sms_credentials(row, system),
        email=EmailCredentials(
            api_key=system.get(keys.RESEND_API_KEY),
            sender_email=system.get(keys.RESEND_SENDER_EMAIL),
            from_name=_first(system.get(keys.RESEND_FROM_NAME), settings.brand_name),
        ),
        high_value_transaction_threshold=_first(
            getattr(row, "high_value_transaction_threshold", None), settings.high_value_transaction_threshold
        ),
        low_balance_threshold=_first(getattr(row, "low_balance_threshold", None), settings.low_balance_threshold),
    )


async def load_system_config(db: AsyncSession) -> dict[str, str | None]:
    stmt = select(SystemConfig.config_key, SystemConfig.config_value).where(
        SystemConfig.config_key.in_(keys.FALLBACK_KEYS)
    )
    result = await db.execute(stmt)
    return {key: value for key, value in result.all()}


async def set_system_config(db: AsyncSession, *, key: str, value: str | None) -> None:
    stmt = dialect_insert(db, SystemConfig).values(id=uuid.uuid4(), config_key=key, config_value=value)
    stmt = stmt.on_conflict_do_update(
        index_elements=[SystemConfig.config_key],
        set_={"config_value": stmt.excluded.config_value},
    )
    await db.execute(stmt)
    await db.commit()


async def get_notification_settings(db: AsyncSession, user_id: uuid.UUID) -> NotificationSettings:
    """Return the user's settings row, creating it with defaults on first access."""
    stmt = select(NotificationSettings).where(NotificationSettings.user_id == user_id)
    try:
        row = (await db.execute(stmt)).scalar_one_or_none()
    except ValueError as exc:
        # Stored credentials were encrypted under a different SECRET_KEY
        await db.rollback()
        raise ConfigurationError(
            "Stored SMS credentials cannot be decrypted; re-enter them",
            details={"user_id": str(user_id)},
        ) from exc
    if row is not None:
        return row

    profile = await db.get(User, user_id)
    insert_stmt = (
        dialect_insert(db, NotificationSettings)
        .values(
            id=uuid.uuid4(),
            user_id=user_id,
            email_address=getattr(profile, "email", None),
            phone_number=getattr(profile, "phone_number", None),
            **DEFAULT_TOGGLES,
        )
        .on_conflict_do_nothing(index_elements=[NotificationSettings.user_id])
    )
    await db.execute(insert_stmt)
    await db.commit()
    logger.info("Provisioned default notification settings", extra={"user_id": str(user_id)})
    return (await db.execute(stmt)).scalar_one()


async def update_notification_settings(
    db: AsyncSession, user_id: uuid.UUID, changes: Mapping[str, Any]
) -> NotificationSettings:
    row = await get_notification_settings(db, user_id)
    for name, value in changes.items():
        if name in UPDATABLE_FIELDS:
            setattr(row, name, value)
    db.add(row)
    await db.commit()
    await db.refresh(row)
    return row


async def resolve_config(db: AsyncSession, user_id: uuid.UUID) -> EffectiveConfig:
    try:
        row = await get_notification_settings(db, user_id)
        profile = await db.get(User, user_id)
        system = await load_system_config(db)
    except (SQLAlchemyError, ConfigurationError):
        logger.warning(
            "Notification settings unavailable; using defaults",
            exc_info=True,
            extra={"user_id": str(user_id)},
        )
        await db.rollback()
        return EffectiveConfig(user_id=user_id)
    return resolve_effective_config(row, profile, system, user_id=user_id)
