from __future__ import annotations

import logging
from typing import Any

import httpx

from app.services.delivery import SMS, DeliveryResult
from app.services.sms.base import SmsAdapter, SmsCredentials

logger = logging.getLogger(__name__)


class HubtelSmsAdapter(SmsAdapter):
    """Hubtel quick-send: client id/secret travel as query parameters on a GET."""

    name = "hubtel"
    required_fields = ("api_key", "api_secret", "sender_id")

    def format_recipient(self, phone: str) -> str:
        return phone.lstrip("+")

    async def _request(
        self, client: httpx.AsyncClient, recipient: str, message: str, credentials: SmsCredentials
    ) -> httpx.Response:
        params = {
            "clientid": credentials.api_key,
            "clientsecret": credentials.api_secret,
            "from": credentials.sender_id,
            "to": recipient,
            "content": message,
        }
        return await client.get(self.url, params=params)

    def _interpret(self, response: httpx.Response, body: dict[str, Any]) -> DeliveryResult:
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        if body.get("status") == 0 or data.get("status") == 0:
            message_id = body.get("messageId") or data.get("messageId")
            logger.info("SMS accepted by Hubtel", extra={"message_id": message_id})
            return DeliveryResult.sent(SMS, provider=self.name, message_id=message_id)

        status = body.get("status", data.get("status"))
        error = body.get("statusDescription") or body.get("message") or f"Hubtel send failed with status: {status}"
        logger.warning("Hubtel rejected SMS", extra={"status": status, "http_status": response.status_code})
        return DeliveryResult.failed(SMS, provider=self.name, error=error)
