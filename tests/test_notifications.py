from uuid import uuid4

import pytest
from jinja2 import UndefinedError
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.exceptions import NotFoundError, ValidationError
from app.models.notification import Notification
from app.services import notifications
from app.services.notification_config import EffectiveConfig, update_notification_settings
from app.services.notifications import NotificationPayload


def _payload(user_id, **overrides) -> NotificationPayload:
    values = dict(user_id=user_id, type="system_alert", title="Heads up", message="Something happened")
    values.update(overrides)
    return NotificationPayload(**values)


def test_should_send_maps_types_to_toggles():
    config = EffectiveConfig(user_id=uuid4(), login_alerts=False, transaction_alerts=True, low_balance_alerts=False)
    assert notifications.should_send(config, "login") is False
    assert notifications.should_send(config, "transaction") is True
    assert notifications.should_send(config, "low_balance") is False
    assert notifications.should_send(config, "system_alert") is True
    assert notifications.should_send(config, "high_value_transaction") is True


@pytest.mark.asyncio
async def test_dispatch_records_and_delivers(db, user, sms_credentials, email_credentials, fake_sms, fake_email):
    result = await notifications.send_notification(db, _payload(user.id, metadata={"source": "test"}))

    assert result.success is True
    assert [r.channel for r in result.results] == ["email", "sms"]
    assert fake_sms.sent == [("+233241234567", "Something happened")]
    assert fake_email.sent[0]["to"] == user.email
    assert fake_email.sent[0]["subject"] == "Heads up"

    stored = await db.get(Notification, result.notification_id)
    assert stored.status == "unread"
    assert stored.meta == {"source": "test"}


@pytest.mark.asyncio
async def test_disabled_type_sends_nothing(db, user, sms_credentials, fake_sms):
    await update_notification_settings(db, user.id, {"login_alerts": False})

    result = await notifications.send_notification(db, _payload(user.id, type="login"))

    assert result.success is False
    assert result.reason == notifications.TYPE_DISABLED
    assert result.results == []
    assert fake_sms.sent == []
    count = (await db.execute(select(func.count()).select_from(Notification))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_one_channel_failing_does_not_block_others(db, user, sms_credentials, fake_sms):
    # No email credentials configured: email fails, SMS still goes out
    result = await notifications.send_notification(db, _payload(user.id))

    assert result.success is True
    email_result, sms_result = result.results
    assert email_result.channel == "email" and email_result.success is False
    assert sms_result.channel == "sms" and sms_result.success is True


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["50.00", None, "fifty"])
async def test_free_form_transaction_metadata_still_delivers(
    db, user, sms_credentials, email_credentials, fake_sms, fake_email, amount
):
    result = await notifications.send_notification(
        db, _payload(user.id, type="transaction", metadata={"amount": amount})
    )

    assert result.success is True
    assert [r.success for r in result.results] == [True, True]
    assert len(fake_sms.sent) == 1
    assert len(fake_email.sent) == 1


@pytest.mark.asyncio
async def test_render_failure_only_fails_the_email_channel(
    db, user, sms_credentials, email_credentials, fake_sms, fake_email, monkeypatch
):
    def broken_render(*args, **kwargs):
        raise UndefinedError("missing template variable")

    monkeypatch.setattr(notifications.email_templates, "render", broken_render)

    result = await notifications.send_notification(db, _payload(user.id, type="low_balance"))

    assert result.success is True
    email_result, sms_result = result.results
    assert email_result.success is False
    assert email_result.error == "Template error: UndefinedError"
    assert sms_result.success is True
    assert fake_email.sent == []


@pytest.mark.asyncio
async def test_all_channels_failing_is_unsuccessful(db, user, sms_credentials, fake_sms):
    fake_sms.fail_with = "Gateway down"
    await update_notification_settings(db, user.id, {"email_notifications": False})

    result = await notifications.send_notification(db, _payload(user.id))

    assert result.success is False
    assert result.results[0].error == "Gateway down"


@pytest.mark.asyncio
async def test_no_enabled_channels_counts_as_success(db, user):
    await update_notification_settings(
        db, user.id, {"email_notifications": False, "sms_notifications": False}
    )

    result = await notifications.send_notification(db, _payload(user.id))

    assert result.success is True
    assert result.results == []
    assert result.notification_id is not None


@pytest.mark.asyncio
async def test_push_is_recorded_in_app(db, user):
    await update_notification_settings(
        db, user.id, {"email_notifications": False, "sms_notifications": False, "push_notifications": True}
    )

    result = await notifications.send_notification(db, _payload(user.id))

    assert [(r.channel, r.success) for r in result.results] == [("push", True)]


@pytest.mark.asyncio
async def test_storage_failure_does_not_stop_delivery(db, user, sms_credentials, fake_sms, monkeypatch):
    await update_notification_settings(db, user.id, {"email_notifications": False})
    original_commit = db.commit
    calls = {"n": 0}

    async def failing_commit():
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        await original_commit()

    monkeypatch.setattr(db, "commit", failing_commit)
    config = await notifications.resolve_config(db, user.id)

    result = await notifications.send_notification(db, _payload(user.id), config=config)

    assert result.success is True
    assert result.notification_id is None
    assert len(fake_sms.sent) == 1


@pytest.mark.asyncio
async def test_invalid_payload_is_rejected(db, user):
    with pytest.raises(ValidationError):
        await notifications.send_notification(db, _payload(user.id, type="marketing"))
    with pytest.raises(ValidationError):
        await notifications.send_notification(db, _payload(user.id, priority="urgent"))
    with pytest.raises(ValidationError):
        await notifications.send_notification(db, _payload(user.id, title="  "))


@pytest.mark.asyncio
async def test_listing_filters_and_read_state(db, user):
    await update_notification_settings(db, user.id, {"email_notifications": False, "sms_notifications": False})
    first = await notifications.send_notification(db, _payload(user.id, type="login"))
    await notifications.send_notification(db, _payload(user.id, type="transaction"))

    assert await notifications.get_unread_count(db, user.id) == 2
    logins = await notifications.get_notifications(db, user.id, type="login")
    assert [n.id for n in logins] == [first.notification_id]

    read = await notifications.mark_as_read(db, notification_id=first.notification_id, user_id=user.id)
    assert read.status == "read"
    assert read.read_at is not None
    assert await notifications.get_unread_count(db, user.id) == 1
    assert len(await notifications.get_notifications(db, user.id, status="read")) == 1


@pytest.mark.asyncio
async def test_listing_validates_arguments(db, user):
    with pytest.raises(ValidationError):
        await notifications.get_notifications(db, user.id, limit=0)
    with pytest.raises(ValidationError):
        await notifications.get_notifications(db, user.id, status="archived")


@pytest.mark.asyncio
async def test_mark_as_read_is_scoped_to_owner(db, user):
    await update_notification_settings(db, user.id, {"email_notifications": False, "sms_notifications": False})
    sent = await notifications.send_notification(db, _payload(user.id))

    with pytest.raises(NotFoundError):
        await notifications.mark_as_read(db, notification_id=sent.notification_id, user_id=uuid4())


@pytest.mark.asyncio
async def test_high_value_transaction_alert_is_high_priority(db, user):
    await update_notification_settings(
        db,
        user.id,
        {"email_notifications": False, "sms_notifications": False, "high_value_transaction_threshold": 500},
    )

    result = await notifications.send_transaction_alert(
        db, user.id, transaction_type="debit", amount=750, service="momo", reference="TX-1"
    )

    stored = await db.get(Notification, result.notification_id)
    assert stored.priority == "high"
    assert stored.meta["high_value"] is True
    assert "GHS 750.00" in stored.message


@pytest.mark.asyncio
async def test_low_balance_alert_uses_configured_threshold(db, user):
    await update_notification_settings(
        db, user.id, {"email_notifications": False, "sms_notifications": False, "low_balance_threshold": 250}
    )

    result = await notifications.send_low_balance_alert(db, user.id, account_name="Float", current_balance=120)

    stored = await db.get(Notification, result.notification_id)
    assert stored.meta["threshold"] == 250
    assert "Threshold: GHS 250.00" in stored.message


@pytest.mark.asyncio
async def test_login_alert_mentions_ip(db, user, sms_credentials, fake_sms):
    await update_notification_settings(db, user.id, {"email_notifications": False})

    await notifications.send_login_alert(db, user.id, ip_address="10.1.2.3", user_agent="ua")

    assert "IP: 10.1.2.3" in fake_sms.sent[0][1]


@pytest.mark.asyncio
async def test_test_sms_requires_a_number(db):
    other_id = uuid4()
    with pytest.raises(ValidationError):
        await notifications.send_test_sms(db, other_id)
