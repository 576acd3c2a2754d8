from __future__ import annotations

import logging
from typing import Any

import httpx

from app.services.delivery import SMS, DeliveryResult
from app.services.sms.base import SmsAdapter, SmsCredentials

logger = logging.getLogger(__name__)


class SmsOnlineGhAdapter(SmsAdapter):
    name = "smsonlinegh"
    required_fields = ("api_key", "sender_id")

    async def _request(
        self, client: httpx.AsyncClient, recipient: str, message: str, credentials: SmsCredentials
    ) -> httpx.Response:
        return await client.post(
            self.url,
            headers={"Authorization": f"Bearer {credentials.api_key}"},
            json={"sender": credentials.sender_id, "message": message, "recipients": [recipient]},
        )

    def _interpret(self, response: httpx.Response, body: dict[str, Any]) -> DeliveryResult:
        status = body.get("status")
        if status == "success" or status is True:
            return DeliveryResult.sent(SMS, provider=self.name, message_id=body.get("messageId"))
        logger.warning("SMSOnlineGH rejected SMS", extra={"http_status": response.status_code})
        return DeliveryResult.failed(SMS, provider=self.name, error=body.get("message") or "SMSOnlineGH send failed")
