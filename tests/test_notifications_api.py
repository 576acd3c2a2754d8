import pytest

from app.core.settings import settings

from conftest import auth_headers


async def _disable_delivery(client, user) -> None:
    response = await client.put(
        "/api/v1/notification-settings",
        json={"email_notifications": False, "sms_notifications": False},
        headers=auth_headers(user),
    )
    assert response.status_code == 200, response.text


@pytest.mark.asyncio
async def test_settings_are_provisioned_on_first_read(client, user):
    response = await client.get("/api/v1/notification-settings", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["login_alerts"] is True
    assert data["push_notifications"] is False
    assert data["email_address"] == user.email
    assert data["sms_credentials_configured"] is False


@pytest.mark.asyncio
async def test_update_settings_never_echoes_secrets(client, user):
    response = await client.put(
        "/api/v1/notification-settings",
        json={"sms_provider": "SMSOnlineGH", "sms_api_key": " key-123 ", "low_balance_threshold": 50},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["sms_provider"] == "smsonlinegh"
    assert data["sms_credentials_configured"] is True
    assert data["low_balance_threshold"] == 50
    assert "sms_api_key" not in data
    assert "key-123" not in response.text


@pytest.mark.asyncio
async def test_update_rejects_unknown_provider(client, user):
    response = await client.put(
        "/api/v1/notification-settings", json={"sms_provider": "fax"}, headers=auth_headers(user)
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_send_list_and_mark_read(client, user):
    await _disable_delivery(client, user)

    sent = await client.post(
        "/api/v1/notifications",
        json={"type": "system_alert", "title": "Maintenance", "message": "Tonight at 10pm", "metadata": {"k": "v"}},
        headers=auth_headers(user),
    )
    assert sent.status_code == 200, sent.text
    dispatch = sent.json()["data"]
    assert dispatch["success"] is True
    assert dispatch["results"] == []
    notification_id = dispatch["notification_id"]

    unread = (await client.get("/api/v1/notifications/unread/count", headers=auth_headers(user))).json()["data"]
    assert unread == {"unread": 1}

    listing = (await client.get("/api/v1/notifications", headers=auth_headers(user))).json()["data"]
    assert listing["limit"] == 50
    assert [item["id"] for item in listing["items"]] == [notification_id]
    assert listing["items"][0]["metadata"] == {"k": "v"}

    read = await client.post(f"/api/v1/notifications/{notification_id}/read", headers=auth_headers(user))
    assert read.status_code == 200
    assert read.json()["data"]["status"] == "read"

    unread = (await client.get("/api/v1/notifications/unread/count", headers=auth_headers(user))).json()["data"]
    assert unread == {"unread": 0}


@pytest.mark.asyncio
async def test_disabled_type_is_reported(client, user):
    await client.put("/api/v1/notification-settings", json={"login_alerts": False}, headers=auth_headers(user))

    sent = await client.post(
        "/api/v1/notifications",
        json={"type": "login", "title": "New login", "message": "Someone signed in"},
        headers=auth_headers(user),
    )

    assert sent.status_code == 200
    assert sent.json()["data"]["success"] is False
    assert sent.json()["data"]["reason"] == "type_disabled"


@pytest.mark.asyncio
async def test_send_rejects_invalid_payload(client, user):
    response = await client.post(
        "/api/v1/notifications",
        json={"type": "marketing", "title": "Sale", "message": "50% off"},
        headers=auth_headers(user),
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_list_rejects_unknown_status(client, user):
    response = await client.get("/api/v1/notifications?status=archived", headers=auth_headers(user))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_mark_read_unknown_notification(client, user):
    response = await client.post(
        "/api/v1/notifications/00000000-0000-0000-0000-000000000000/read", headers=auth_headers(user)
    )
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_test_notification_uses_enabled_channels(client, user, sms_credentials, fake_sms):
    await client.put("/api/v1/notification-settings", json={"email_notifications": False}, headers=auth_headers(user))

    response = await client.post("/api/v1/notifications/test", headers=auth_headers(user))

    assert response.status_code == 200
    results = response.json()["data"]["results"]
    assert [(r["channel"], r["success"]) for r in results] == [("sms", True)]
    assert len(fake_sms.sent) == 1


@pytest.mark.asyncio
async def test_test_sms_to_explicit_number(client, user, sms_credentials, fake_sms):
    response = await client.post(
        "/api/v1/notifications/test-sms", json={"phone_number": "0201234567"}, headers=auth_headers(user)
    )

    assert response.status_code == 200
    assert response.json()["data"]["success"] is True
    assert fake_sms.sent[0][0] == "+233201234567"


@pytest.mark.asyncio
async def test_test_sms_gateway_failure(client, user, sms_credentials, fake_sms):
    fake_sms.fail_with = "Insufficient credit"

    response = await client.post("/api/v1/notifications/test-sms", json={}, headers=auth_headers(user))

    assert response.status_code == 502
    assert response.json()["message"] == "Insufficient credit"


@pytest.mark.asyncio
async def test_test_sms_without_credentials(client, user, fake_sms):
    response = await client.post("/api/v1/notifications/test-sms", json={}, headers=auth_headers(user))
    assert response.status_code == 422
    assert response.json()["code"] == "configuration_error"


@pytest.mark.asyncio
async def test_undecryptable_credentials_are_reported(client, user, monkeypatch):
    response = await client.put(
        "/api/v1/notification-settings", json={"sms_api_key": "key-123"}, headers=auth_headers(user)
    )
    assert response.status_code == 200
    monkeypatch.setattr(settings, "secret_key", "rotated-secret-key")

    response = await client.get("/api/v1/notification-settings", headers=auth_headers(user))

    assert response.status_code == 422
    assert response.json()["code"] == "configuration_error"
    assert "key-123" not in response.text
