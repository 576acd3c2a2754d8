from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import settings
from app.db.upsert import dialect_insert
from app.models.trusted_device import TrustedDevice

DEVICE_NAME_LENGTH = 50


def device_fingerprint(user_agent: str | None, ip_address: str | None) -> str:
    """Stable id for a (user agent, address) pair. Identifies, does not authenticate."""
    raw = f"{user_agent or ''}|{ip_address or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def device_name(user_agent: str | None) -> str:
    return (user_agent or "Unknown device")[:DEVICE_NAME_LENGTH]


def _trust_cutoff(now: datetime) -> datetime | None:
    if settings.trusted_device_ttl_days <= 0:
        return None
    return now - timedelta(days=settings.trusted_device_ttl_days)


async def trust_device(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    user_agent: str | None,
    ip_address: str | None,
) -> str:
    device_id = device_fingerprint(user_agent, ip_address)
    now = datetime.now(timezone.utc)
    stmt = dialect_insert(db, TrustedDevice).values(
        id=uuid.uuid4(),
        user_id=user_id,
        device_id=device_id,
        device_name=device_name(user_agent),
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        created_at=now,
        last_used_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[TrustedDevice.user_id, TrustedDevice.device_id],
        set_={"last_used_at": now, "ip_address": ip_address},
    )
    await db.execute(stmt)
    await db.commit()
    return device_id


async def is_trusted(db: AsyncSession, *, user_id: uuid.UUID, device_id: str) -> bool:
    """True if the device is trusted; touching ``last_used_at`` in the same statement."""
    now = datetime.now(timezone.utc)
    stmt = update(TrustedDevice).where(
        TrustedDevice.user_id == user_id,
        TrustedDevice.device_id == device_id,
    )
    cutoff = _trust_cutoff(now)
    if cutoff is not None:
        stmt = stmt.where(TrustedDevice.last_used_at >= cutoff)
    result = await db.execute(stmt.values(last_used_at=now).execution_options(synchronize_session=False))
    await db.commit()
    return result.rowcount > 0


async def list_devices(db: AsyncSession, user_id: uuid.UUID) -> list[TrustedDevice]:
    stmt = (
        select(TrustedDevice)
        .where(TrustedDevice.user_id == user_id)
        .order_by(TrustedDevice.last_used_at.desc())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def revoke_device(db: AsyncSession, *, user_id: uuid.UUID, device_id: str) -> bool:
    stmt = delete(TrustedDevice).where(
        TrustedDevice.user_id == user_id,
        TrustedDevice.device_id == device_id,
    )
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    await db.commit()
    return result.rowcount > 0
