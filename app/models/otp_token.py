import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Uuid, false, func

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OtpToken(Base):
    __tablename__ = "otp_tokens"
    __table_args__ = (
        Index("ix_otp_tokens_user_hash", "user_id", "token_hash"),
        Index("ix_otp_tokens_expires_at", "expires_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    verified = Column(Boolean, nullable=False, default=False, server_default=false())
    verified_at = Column(DateTime(timezone=True), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
