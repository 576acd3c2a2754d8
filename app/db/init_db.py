import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models import system_config as keys
from app.models.system_config import SystemConfig
from app.services.notification_config import set_system_config

logger = logging.getLogger(__name__)


def _seed_values() -> dict[str, str | None]:
    return {
        keys.SMS_PROVIDER: settings.system_sms_provider,
        keys.SMS_API_KEY: settings.system_sms_api_key,
        keys.SMS_API_SECRET: settings.system_sms_api_secret,
        keys.SMS_SENDER_ID: settings.system_sms_sender_id,
        keys.RESEND_API_KEY: settings.system_resend_api_key,
        keys.RESEND_SENDER_EMAIL: settings.system_resend_sender_email,
        keys.RESEND_FROM_NAME: settings.system_resend_from_name,
    }


async def seed_system_config(db: AsyncSession) -> list[str]:
    """Write configured provider defaults for keys not yet present. Existing values win."""
    existing = set((await db.execute(select(SystemConfig.config_key))).scalars().all())
    seeded = []
    for key, value in _seed_values().items():
        if value and key not in existing:
            await set_system_config(db, key=key, value=value)
            seeded.append(key)
    return seeded


async def init_db() -> None:
    async with AsyncSessionLocal() as session:
        seeded = await seed_system_config(session)
    if seeded:
        logger.info("Seeded system notification config", extra={"keys": seeded})


if __name__ == "__main__":
    asyncio.run(init_db())
