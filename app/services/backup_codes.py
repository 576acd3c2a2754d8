from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidBackupCodeError
from app.core.settings import settings
from app.models.two_factor_settings import TwoFactorSettings

logger = logging.getLogger(__name__)

BACKUP_CODE_LENGTH = 8  # rendered as "XXXX-XXXX"
_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O or 1/I
_MAX_REDEEM_ATTEMPTS = 3


def _generate_backup_code() -> str:
    code = "".join(secrets.choice(_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
    return f"{code[:4]}-{code[4:]}"


def generate_backup_codes(count: int | None = None) -> list[str]:
    codes: set[str] = set()
    target = count or settings.backup_code_count
    while len(codes) < target:
        codes.add(_generate_backup_code())
    return sorted(codes)


def normalize_backup_code(code: str | None) -> str:
    return "".join((code or "").split()).replace("-", "").upper()


def hash_backup_code(code: str) -> str:
    return hashlib.sha256(normalize_backup_code(code).encode("utf-8")).hexdigest()


def remaining_count(two_factor: TwoFactorSettings | None) -> int:
    if two_factor is None:
        return 0
    return len(two_factor.backup_code_hashes or [])


async def redeem_backup_code(db: AsyncSession, *, user_id: uuid.UUID, code: str) -> int:
    """Consume one backup code and return how many remain.

    The hash set is rewritten with a compare-and-set on ``backup_codes_version``; a
    concurrent writer makes the update miss and the read is retried, so each code is
    accepted at most once.
    """
    if len(normalize_backup_code(code)) != BACKUP_CODE_LENGTH:
        raise InvalidBackupCodeError()
    code_hash = hash_backup_code(code)

    for _ in range(_MAX_REDEEM_ATTEMPTS):
        stmt = select(TwoFactorSettings.backup_code_hashes, TwoFactorSettings.backup_codes_version).where(
            TwoFactorSettings.user_id == user_id
        )
        row = (await db.execute(stmt)).one_or_none()
        hashes = list(row.backup_code_hashes or []) if row else []
        if not any(hmac.compare_digest(stored, code_hash) for stored in hashes):
            # Nothing was written; commit so objects the caller holds stay loaded
            await db.commit()
            raise InvalidBackupCodeError()

        remaining = [stored for stored in hashes if stored != code_hash]
        result = await db.execute(
            update(TwoFactorSettings)
            .where(
                TwoFactorSettings.user_id == user_id,
                TwoFactorSettings.backup_codes_version == row.backup_codes_version,
            )
            .values(backup_code_hashes=remaining, backup_codes_version=row.backup_codes_version + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        if result.rowcount == 1:
            return len(remaining)
        logger.info("Backup code set changed concurrently; retrying", extra={"user_id": str(user_id)})

    raise InvalidBackupCodeError()


async def replace_backup_codes(db: AsyncSession, *, user_id: uuid.UUID) -> list[str]:
    """Swap in a fresh set for an existing settings row. Callers commit."""
    codes = generate_backup_codes()
    await db.execute(
        update(TwoFactorSettings)
        .where(TwoFactorSettings.user_id == user_id)
        .values(
            backup_code_hashes=[hash_backup_code(code) for code in codes],
            backup_codes_version=TwoFactorSettings.backup_codes_version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return codes
