from app.core.exceptions import ConfigurationError
from app.core.settings import settings
from app.services.sms.base import SmsAdapter, SmsCredentials
from app.services.sms.hubtel import HubtelSmsAdapter
from app.services.sms.smsonlinegh import SmsOnlineGhAdapter

ADAPTERS = {
    HubtelSmsAdapter.name: lambda: HubtelSmsAdapter(
        url=settings.hubtel_sms_url, timeout=settings.provider_timeout_seconds
    ),
    SmsOnlineGhAdapter.name: lambda: SmsOnlineGhAdapter(
        url=settings.smsonlinegh_sms_url, timeout=settings.provider_timeout_seconds
    ),
}


def get_sms_adapter(provider: str | None) -> SmsAdapter:
    factory = ADAPTERS.get((provider or "").strip().lower())
    if factory is None:
        raise ConfigurationError(f"Unknown SMS provider: {provider}", details={"provider": provider})
    return factory()


__all__ = [
    "ADAPTERS",
    "HubtelSmsAdapter",
    "SmsAdapter",
    "SmsCredentials",
    "SmsOnlineGhAdapter",
    "get_sms_adapter",
]
