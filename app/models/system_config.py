import uuid

from sqlalchemy import Column, DateTime, String, Uuid, func

from app.db.base import Base
from app.models.types import EncryptedString

SMS_PROVIDER = "sms_provider"
SMS_API_KEY = "sms_api_key"
SMS_API_SECRET = "sms_api_secret"
SMS_SENDER_ID = "sms_sender_id"
HUBTEL_CLIENT_ID = "hubtel_sms_client_id"
HUBTEL_CLIENT_SECRET = "hubtel_sms_client_secret"
HUBTEL_SENDER_ID = "hubtel_sms_sender_id"
RESEND_API_KEY = "resend_api_key"
RESEND_SENDER_EMAIL = "resend_sender_email"
RESEND_FROM_NAME = "resend_from_name"

FALLBACK_KEYS = (
    SMS_PROVIDER,
    SMS_API_KEY,
    SMS_API_SECRET,
    SMS_SENDER_ID,
    HUBTEL_CLIENT_ID,
    HUBTEL_CLIENT_SECRET,
    HUBTEL_SENDER_ID,
    RESEND_API_KEY,
    RESEND_SENDER_EMAIL,
    RESEND_FROM_NAME,
)


class SystemConfig(Base):
    """System-wide provider credentials used when a user has none of their own."""

    __tablename__ = "system_config"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    config_key = Column(String(100), nullable=False, unique=True)
    config_value = Column(EncryptedString(), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
