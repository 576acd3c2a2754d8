"""Periodic removal of expired verification codes.

Run from cron or a scheduler: ``python -m app.tasks.cleanup_tokens``.
"""

import asyncio

from app.core.logging import configure_logging
from app.db.session import AsyncSessionLocal
from app.services.otp import cleanup_expired_tokens


async def run() -> int:
    async with AsyncSessionLocal() as session:
        return await cleanup_expired_tokens(session)


if __name__ == "__main__":
    configure_logging()
    asyncio.run(run())
