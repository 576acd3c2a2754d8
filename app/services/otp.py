from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidOrExpiredTokenError, ValidationError
from app.core.settings import settings
from app.models.otp_token import OtpToken

logger = logging.getLogger(__name__)


def generate_code(length: int | None = None) -> str:
    length = length or settings.otp_length
    return f"{secrets.randbelow(10**length):0{length}d}"


def hash_code(user_id: uuid.UUID, code: str) -> str:
    """Keyed digest of a code, bound to its user so equal codes never share a hash."""
    message = f"{user_id}:{code}".encode("utf-8")
    return hmac.new(settings.secret_key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _normalize_submitted(code: str | None) -> str:
    candidate = "".join((code or "").split())
    if len(candidate) != settings.otp_length or not candidate.isdigit():
        raise ValidationError("Verification code must be numeric", details={"length": settings.otp_length})
    return candidate


async def issue_otp(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[str, datetime]:
    """Persist a fresh single-use code and return it with its expiry. Only the hash is stored."""
    code = generate_code()
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=settings.otp_ttl_minutes)
    db.add(
        OtpToken(
            id=uuid.uuid4(),
            user_id=user_id,
            token_hash=hash_code(user_id, code),
            expires_at=expires_at,
            verified=False,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
            created_at=now,
        )
    )
    await db.commit()
    return code, expires_at


async def verify_otp(db: AsyncSession, *, user_id: uuid.UUID, code: str) -> uuid.UUID:
    """Consume the most recent live token matching ``code``.

    The candidate is claimed with a single conditional UPDATE, so of any number of
    concurrent submissions of the same code exactly one sees a row come back.
    """
    submitted = _normalize_submitted(code)
    now = datetime.now(timezone.utc)
    candidate = (
        select(OtpToken.id)
        .where(
            OtpToken.user_id == user_id,
            OtpToken.token_hash == hash_code(user_id, submitted),
            OtpToken.verified.is_(False),
            OtpToken.expires_at > now,
        )
        .order_by(OtpToken.created_at.desc())
        .limit(1)
        .scalar_subquery()
    )
    stmt = (
        update(OtpToken)
        .where(OtpToken.id == candidate, OtpToken.verified.is_(False))
        .values(verified=True, verified_at=now)
        .returning(OtpToken.id)
        .execution_options(synchronize_session=False)
    )
    token_id = (await db.execute(stmt)).scalar_one_or_none()
    # A miss matched no rows, so committing is a no-op that keeps loaded objects intact
    await db.commit()
    if token_id is None:
        raise InvalidOrExpiredTokenError()

    try:
        await purge_tokens(db, user_id=user_id, keep_id=token_id)
    except SQLAlchemyError:
        await db.rollback()
        logger.warning("Token cleanup after verification failed", exc_info=True, extra={"user_id": str(user_id)})
    return token_id


async def purge_tokens(db: AsyncSession, *, user_id: uuid.UUID, keep_id: uuid.UUID | None = None) -> int:
    stmt = delete(OtpToken).where(OtpToken.user_id == user_id)
    if keep_id is not None:
        stmt = stmt.where(OtpToken.id != keep_id)
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    await db.commit()
    return result.rowcount or 0


async def cleanup_expired_tokens(db: AsyncSession) -> int:
    now = datetime.now(timezone.utc)
    stmt = delete(OtpToken).where(OtpToken.expires_at <= now)
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    await db.commit()
    removed = result.rowcount or 0
    logger.info("Expired verification tokens removed", extra={"removed": removed})
    return removed
