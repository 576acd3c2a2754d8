from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from app.core.exceptions import ConfigurationError
from app.core.settings import settings
from app.services.delivery import EMAIL, DeliveryResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EmailCredentials:
    api_key: str | None = None
    sender_email: str | None = None
    from_name: str | None = None

    @property
    def from_header(self) -> str:
        if self.from_name:
            return f"{self.from_name} <{self.sender_email}>"
        return self.sender_email or ""


class ResendEmailSender:
    """Sends HTML mail through the Resend HTTP API. One attempt, no retries."""

    name = "resend"

    def __init__(self, *, url: str | None = None, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.url = url or settings.resend_api_url
        self.timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self.transport = transport

    def check_credentials(self, credentials: EmailCredentials) -> None:
        if not credentials.api_key or not credentials.sender_email:
            raise ConfigurationError("Email provider is not configured", details={"provider": self.name})

    async def send(self, to: str, subject: str, html: str, credentials: EmailCredentials) -> DeliveryResult:
        self.check_credentials(credentials)
        payload = {"from": credentials.from_header, "to": [to], "subject": subject, "html": html}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    headers={"Authorization": f"Bearer {credentials.api_key}"},
                    json=payload,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("Resend rejected email", extra={"http_status": exc.response.status_code})
            return DeliveryResult.failed(EMAIL, provider=self.name, error=f"HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.warning("Resend unreachable", extra={"error": type(exc).__name__})
            return DeliveryResult.failed(EMAIL, provider=self.name, error="Provider unreachable")

        try:
            message_id = response.json().get("id")
        except (ValueError, AttributeError):
            message_id = None
        return DeliveryResult.sent(EMAIL, provider=self.name, message_id=message_id)


def get_email_sender() -> ResendEmailSender:
    return ResendEmailSender()
