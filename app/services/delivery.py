from __future__ import annotations

from dataclasses import dataclass

EMAIL = "email"
SMS = "sms"
PUSH = "push"


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    """Outcome of one channel attempt."""

    channel: str
    success: bool
    provider: str | None = None
    message_id: str | None = None
    error: str | None = None

    @classmethod
    def sent(cls, channel: str, *, provider: str | None = None, message_id: str | None = None) -> DeliveryResult:
        return cls(channel=channel, success=True, provider=provider, message_id=message_id)

    @classmethod
    def failed(cls, channel: str, *, error: str, provider: str | None = None) -> DeliveryResult:
        return cls(channel=channel, success=False, provider=provider, error=error)
