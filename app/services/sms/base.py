from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.exceptions import ConfigurationError
from app.services.delivery import SMS, DeliveryResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SmsCredentials:
    provider: str
    api_key: str | None = None
    api_secret: str | None = None
    sender_id: str | None = None


class SmsAdapter:
    """One SMS gateway. Subclasses build the request and interpret the reply.

    Adapters make exactly one attempt per message; a timeout or non-success reply is
    reported as a failed ``DeliveryResult`` rather than raised.
    """

    name: str = ""
    required_fields: tuple[str, ...] = ("api_key", "sender_id")

    def __init__(self, *, url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def check_credentials(self, credentials: SmsCredentials) -> None:
        missing = [field for field in self.required_fields if not getattr(credentials, field)]
        if missing:
            raise ConfigurationError(
                f"SMS provider {self.name} is missing credentials",
                details={"provider": self.name, "missing": missing},
            )

    def format_recipient(self, phone: str) -> str:
        return phone

    async def send(self, phone: str, message: str, credentials: SmsCredentials) -> DeliveryResult:
        self.check_credentials(credentials)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await self._request(client, self.format_recipient(phone), message, credentials)
        except httpx.TimeoutException:
            logger.warning("SMS gateway timed out", extra={"provider": self.name})
            return DeliveryResult.failed(SMS, provider=self.name, error="Provider timed out")
        except httpx.HTTPError as exc:
            logger.warning("SMS gateway unreachable", extra={"provider": self.name, "error": type(exc).__name__})
            return DeliveryResult.failed(SMS, provider=self.name, error="Provider unreachable")

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return DeliveryResult.failed(SMS, provider=self.name, error=f"HTTP {response.status_code}")
        return self._interpret(response, body)

    async def _request(
        self, client: httpx.AsyncClient, recipient: str, message: str, credentials: SmsCredentials
    ) -> httpx.Response:
        raise NotImplementedError

    def _interpret(self, response: httpx.Response, body: dict[str, Any]) -> DeliveryResult:
        raise NotImplementedError
