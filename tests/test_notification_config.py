from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ConfigurationError
from app.core.settings import settings
from app.models import system_config as keys
from app.models.notification_settings import NotificationSettings
from app.services import notification_config
from app.services.notification_config import (
    EffectiveConfig,
    get_notification_settings,
    resolve_config,
    resolve_effective_config,
    update_notification_settings,
)


def _row(**overrides):
    values = dict(notification_config.DEFAULT_TOGGLES)
    values.update(
        email_address=None,
        phone_number=None,
        sms_provider=None,
        sms_api_key=None,
        sms_api_secret=None,
        sms_sender_id=None,
        high_value_transaction_threshold=None,
        low_balance_threshold=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


PROFILE = SimpleNamespace(email="profile@example.com", phone_number="0241234567", full_name="Ama Mensah")


def test_defaults_without_row_or_system_config():
    user_id = uuid4()
    config = resolve_effective_config(None, None, {}, user_id=user_id)

    assert config.user_id == user_id
    assert config.email_enabled is True
    assert config.sms_enabled is True
    assert config.push_enabled is False
    assert config.sms.provider == settings.default_sms_provider
    assert config.sms.api_key is None
    assert config.sms.sender_id == settings.default_sms_sender_id
    assert config.email.api_key is None


def test_row_overrides_profile_contacts():
    config = resolve_effective_config(
        _row(email_address="override@example.com"), PROFILE, {}, user_id=uuid4()
    )
    assert config.email_address == "override@example.com"
    assert config.phone_number == "0241234567"
    assert config.full_name == "Ama Mensah"


def test_user_credentials_win_over_system():
    system = {keys.SMS_API_KEY: "system-key", keys.SMS_API_SECRET: "system-secret"}
    config = resolve_effective_config(
        _row(sms_api_key="mine", sms_provider="SMSOnlineGH"), PROFILE, system, user_id=uuid4()
    )
    assert config.sms.provider == "smsonlinegh"
    assert config.sms.api_key == "mine"
    assert config.sms.api_secret == "system-secret"


def test_hubtel_prefers_hubtel_specific_system_keys():
    system = {
        keys.SMS_PROVIDER: "hubtel",
        keys.HUBTEL_CLIENT_ID: "hubtel-id",
        keys.SMS_API_KEY: "generic-key",
        keys.SMS_API_SECRET: "generic-secret",
        keys.HUBTEL_SENDER_ID: "HUBSENDER",
    }
    config = resolve_effective_config(None, PROFILE, system, user_id=uuid4())
    assert config.sms.api_key == "hubtel-id"
    assert config.sms.api_secret == "generic-secret"
    assert config.sms.sender_id == "HUBSENDER"


def test_disabled_toggles_are_kept():
    config = resolve_effective_config(
        _row(login_alerts=False, sms_notifications=False), PROFILE, {}, user_id=uuid4()
    )
    assert config.login_alerts is False
    assert config.sms_enabled is False
    assert config.transaction_alerts is True


def test_email_credentials_from_system_store():
    system = {keys.RESEND_API_KEY: "re_key", keys.RESEND_SENDER_EMAIL: "alerts@example.com"}
    config = resolve_effective_config(None, PROFILE, system, user_id=uuid4())
    assert config.email.api_key == "re_key"
    assert config.email.from_header == f"{settings.brand_name} <alerts@example.com>"


@pytest.mark.asyncio
async def test_first_access_provisions_defaults(db, user):
    row = await get_notification_settings(db, user.id)

    assert row.user_id == user.id
    assert row.email_address == user.email
    assert row.login_alerts is True
    assert row.push_notifications is False

    again = await get_notification_settings(db, user.id)
    assert again.id == row.id
    rows = (await db.execute(select(NotificationSettings))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_credentials_are_encrypted_at_rest(db, user):
    await update_notification_settings(db, user.id, {"sms_api_key": "plain-key", "sms_provider": "hubtel"})

    row = await get_notification_settings(db, user.id)
    assert row.sms_api_key == "plain-key"

    stored = (
        await db.execute(text("SELECT sms_api_key FROM notification_settings WHERE id = :id"), {"id": row.id.hex})
    ).scalar_one()
    assert isinstance(stored, bytes)
    assert b"plain-key" not in stored


@pytest.mark.asyncio
async def test_update_ignores_unknown_fields(db, user):
    row = await update_notification_settings(db, user.id, {"login_alerts": False, "user_id": uuid4()})
    assert row.login_alerts is False
    assert row.user_id == user.id


@pytest.mark.asyncio
async def test_resolve_config_reads_system_fallbacks(db, user, sms_credentials):
    config = await resolve_config(db, user.id)

    assert config.sms.api_key == "client-id"
    assert config.sms.api_secret == "client-secret"
    assert config.phone_number == user.phone_number


@pytest.mark.asyncio
async def test_resolve_config_degrades_to_defaults(db, user, monkeypatch):
    async def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    monkeypatch.setattr(notification_config, "get_notification_settings", broken)

    config = await resolve_config(db, user.id)

    assert config == EffectiveConfig(user_id=user.id)
    assert config.email_address is None
    assert config.sms.api_key is None


@pytest.mark.asyncio
async def test_rotated_secret_key_is_a_configuration_error(db, user, session_factory, monkeypatch):
    user_id = user.id
    await update_notification_settings(db, user_id, {"sms_api_key": "plain-key"})
    monkeypatch.setattr(settings, "secret_key", "rotated-secret-key")

    async with session_factory() as fresh:
        with pytest.raises(ConfigurationError):
            await get_notification_settings(fresh, user_id)

    async with session_factory() as fresh:
        config = await resolve_config(fresh, user_id)
    assert config == EffectiveConfig(user_id=user_id)
