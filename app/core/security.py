from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from app.core.settings import settings

ACCESS_TOKEN_TYPE = "access"
CHALLENGE_TOKEN_TYPE = "mfa_challenge"


class JWTKeyError(RuntimeError):
    pass


def _is_asymmetric() -> bool:
    return settings.jwt_algorithm.upper().startswith(("RS", "ES", "PS"))


def _signing_key() -> str:
    if not _is_asymmetric():
        return settings.secret_key
    if settings.jwt_private_key:
        return settings.jwt_private_key
    raise JWTKeyError("JWT private key not configured")


def _verification_key() -> str:
    if not _is_asymmetric():
        return settings.secret_key
    if settings.jwt_public_key:
        return settings.jwt_public_key
    raise JWTKeyError("JWT public key not configured")


def _encode(subject: str, token_type: str, expires_delta: timedelta, extra: dict[str, Any] | None = None) -> str:
    now = datetime.now(timezone.utc)
    to_encode: dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    if extra:
        to_encode.update(extra)
    return jwt.encode(to_encode, _signing_key(), algorithm=settings.jwt_algorithm)


def create_access_token(subject: str, expires_delta: timedelta | None = None) -> str:
    return _encode(
        subject,
        ACCESS_TOKEN_TYPE,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_challenge_token(subject: str, expires_delta: timedelta | None = None) -> str:
    """Short-lived token the login flow hands out while a step-up is pending."""
    return _encode(
        subject,
        CHALLENGE_TOKEN_TYPE,
        expires_delta or timedelta(minutes=settings.challenge_token_expire_minutes),
    )


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, _verification_key(), algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if expected_type and payload.get("type") != expected_type:
        raise ValueError(f"Unexpected token type: {payload.get('type')}")
    return payload
