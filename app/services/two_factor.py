"""Step-up authentication: enrolment, code delivery and verification, trusted devices."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConfigurationError,
    InvalidBackupCodeError,
    InvalidOrExpiredTokenError,
    NotEnabledError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from app.core.logging import get_security_logger
from app.core.settings import settings
from app.db.upsert import dialect_insert
from app.models.trusted_device import TrustedDevice
from app.models.two_factor_settings import TwoFactorSettings
from app.models.user import User
from app.services import backup_codes, email_templates, notifications, otp, trusted_devices
from app.services.notification_config import resolve_config
from app.utils.phone import mask_email, mask_phone, normalize_phone

logger = logging.getLogger(__name__)
security_logger = get_security_logger()

METHODS = ("sms", "email")


@dataclass(slots=True)
class TwoFactorStatus:
    enabled: bool
    method: str | None
    phone_number: str | None
    email: str | None
    force_enabled: bool
    setup_required: bool
    backup_codes_remaining: int


@dataclass(slots=True)
class OtpDispatch:
    method: str
    destination: str | None
    expires_at: datetime


async def get_two_factor_settings(db: AsyncSession, user_id: uuid.UUID) -> TwoFactorSettings | None:
    stmt = (
        select(TwoFactorSettings)
        .where(TwoFactorSettings.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _is_forced(user: User) -> bool:
    return (user.role or "").lower() in {role.lower() for role in settings.force_two_factor_roles}


async def enable_two_factor(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    method: str,
    phone_number: str | None = None,
    email: str | None = None,
) -> list[str]:
    """Turn step-up on and return a fresh set of backup codes in plaintext, once."""
    method = (method or "").strip().lower()
    if method not in METHODS:
        raise ValidationError(f"Unsupported verification method: {method}")
    user = await _get_user(db, user_id)

    phone_source = phone_number or user.phone_number
    phone = normalize_phone(phone_source) if phone_source else None
    address = (email or user.email or "").strip() or None
    if method == "sms" and not phone:
        raise ConfigurationError("A phone number is required for SMS verification")
    if method == "email" and not address:
        raise ConfigurationError("An email address is required for email verification")

    codes = backup_codes.generate_backup_codes()
    hashes = [backup_codes.hash_backup_code(code) for code in codes]
    forced = _is_forced(user)
    stmt = dialect_insert(db, TwoFactorSettings).values(
        id=uuid.uuid4(),
        user_id=user_id,
        enabled=True,
        method=method,
        phone_number=phone,
        email=address,
        backup_code_hashes=hashes,
        backup_codes_version=0,
        force_enabled=forced,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[TwoFactorSettings.user_id],
        set_={
            "enabled": True,
            "method": method,
            "phone_number": phone,
            "email": address,
            "backup_code_hashes": hashes,
            "backup_codes_version": TwoFactorSettings.backup_codes_version + 1,
            "force_enabled": forced,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
    await db.commit()
    security_logger.info("Two-factor enabled", extra={"user_id": str(user_id), "method": method})
    return codes


async def disable_two_factor(db: AsyncSession, *, user_id: uuid.UUID) -> None:
    await db.execute(
        update(TwoFactorSettings)
        .where(TwoFactorSettings.user_id == user_id)
        .values(
            enabled=False,
            backup_code_hashes=[],
            backup_codes_version=TwoFactorSettings.backup_codes_version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await otp.purge_tokens(db, user_id=user_id)
    security_logger.info("Two-factor disabled", extra={"user_id": str(user_id)})


async def regenerate_backup_codes(db: AsyncSession, *, user_id: uuid.UUID) -> list[str]:
    two_factor = await get_two_factor_settings(db, user_id)
    if two_factor is None or not two_factor.enabled:
        raise NotEnabledError()
    codes = await backup_codes.replace_backup_codes(db, user_id=user_id)
    await db.commit()
    security_logger.info("Backup codes regenerated", extra={"user_id": str(user_id)})
    return codes


async def get_two_factor_status(db: AsyncSession, user_id: uuid.UUID) -> TwoFactorStatus:
    two_factor = await get_two_factor_settings(db, user_id)
    if two_factor is None:
        user = await _get_user(db, user_id)
        forced = _is_forced(user)
        return TwoFactorStatus(
            enabled=False,
            method=None,
            phone_number=None,
            email=None,
            force_enabled=forced,
            setup_required=forced,
            backup_codes_remaining=0,
        )
    return TwoFactorStatus(
        enabled=two_factor.enabled,
        method=two_factor.method,
        phone_number=mask_phone(two_factor.phone_number),
        email=mask_email(two_factor.email),
        force_enabled=two_factor.force_enabled,
        setup_required=two_factor.force_enabled and not two_factor.enabled,
        backup_codes_remaining=backup_codes.remaining_count(two_factor),
    )


async def send_otp(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> OtpDispatch:
    two_factor = await get_two_factor_settings(db, user_id)
    if two_factor is None or not two_factor.enabled:
        raise NotEnabledError()
    method = two_factor.method
    config = await resolve_config(db, user_id)

    # Destination and credentials are checked before a token exists
    if method == "email":
        destination = two_factor.email or config.email_address
        if not destination:
            raise ConfigurationError("No email address on file for verification")
        notifications.check_email_ready(config)
    else:
        raw_phone = two_factor.phone_number or config.phone_number
        if not raw_phone:
            raise ConfigurationError("No phone number on file for verification")
        destination = normalize_phone(raw_phone)
        notifications.check_sms_ready(config)

    code, expires_at = await otp.issue_otp(db, user_id=user_id, ip_address=ip_address, user_agent=user_agent)
    if method == "email":
        html = email_templates.render("otp_code.html", code=code, ttl_minutes=settings.otp_ttl_minutes)
        result = await notifications.send_email(config, destination, "Login Verification Code", html)
    else:
        text = (
            f"Your {settings.brand_name} login code is: {code}. "
            f"Valid for {settings.otp_ttl_minutes} minutes. Do not share this code."
        )
        result = await notifications.send_sms(config, destination, text)

    if not result.success:
        security_logger.warning(
            "Verification code delivery failed",
            extra={"user_id": str(user_id), "method": method, "provider": result.provider},
        )
        raise ProviderError("Failed to send verification code", details={"method": method})

    security_logger.info("Verification code sent", extra={"user_id": str(user_id), "method": method})
    masked = mask_email(destination) if method == "email" else mask_phone(destination)
    return OtpDispatch(method=method, destination=masked, expires_at=expires_at)


async def verify_otp(db: AsyncSession, *, user_id: uuid.UUID, code: str) -> None:
    try:
        await otp.verify_otp(db, user_id=user_id, code=code)
    except InvalidOrExpiredTokenError:
        security_logger.warning("Verification code rejected", extra={"user_id": str(user_id)})
        raise
    security_logger.info("Verification code accepted", extra={"user_id": str(user_id)})


async def verify_backup_code(db: AsyncSession, *, user_id: uuid.UUID, code: str) -> int:
    try:
        remaining = await backup_codes.redeem_backup_code(db, user_id=user_id, code=code)
    except InvalidBackupCodeError:
        security_logger.warning("Backup code rejected", extra={"user_id": str(user_id)})
        raise
    security_logger.info("Backup code redeemed", extra={"user_id": str(user_id), "remaining": remaining})
    return remaining


async def is_two_factor_required(db: AsyncSession, *, user_id: uuid.UUID, device_id: str | None) -> bool:
    two_factor = await get_two_factor_settings(db, user_id)
    if two_factor is None or not two_factor.enabled:
        return False
    if device_id and await trusted_devices.is_trusted(db, user_id=user_id, device_id=device_id):
        return False
    return True


async def add_trusted_device(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    user_agent: str | None,
    ip_address: str | None,
) -> str:
    device_id = await trusted_devices.trust_device(
        db, user_id=user_id, user_agent=user_agent, ip_address=ip_address
    )
    security_logger.info("Device trusted", extra={"user_id": str(user_id), "device_id": device_id})
    return device_id


async def remove_trusted_device(db: AsyncSession, *, user_id: uuid.UUID, device_id: str) -> bool:
    removed = await trusted_devices.revoke_device(db, user_id=user_id, device_id=device_id)
    if removed:
        security_logger.info("Device trust revoked", extra={"user_id": str(user_id), "device_id": device_id})
    return removed


async def get_trusted_devices(db: AsyncSession, user_id: uuid.UUID) -> list[TrustedDevice]:
    return await trusted_devices.list_devices(db, user_id)
