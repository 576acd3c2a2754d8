import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Uuid, false, func, true

from app.db.base import Base
from app.models.types import EncryptedString


class NotificationSettings(Base):
    """Per-user channel toggles, contact overrides and optional SMS credentials."""

    __tablename__ = "notification_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    email_notifications = Column(Boolean, nullable=False, default=True, server_default=true())
    sms_notifications = Column(Boolean, nullable=False, default=True, server_default=true())
    push_notifications = Column(Boolean, nullable=False, default=False, server_default=false())
    login_alerts = Column(Boolean, nullable=False, default=True, server_default=true())
    transaction_alerts = Column(Boolean, nullable=False, default=True, server_default=true())
    low_balance_alerts = Column(Boolean, nullable=False, default=True, server_default=true())
    email_address = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)
    sms_provider = Column(String(50), nullable=True)
    sms_api_key = Column(EncryptedString(), nullable=True)
    sms_api_secret = Column(EncryptedString(), nullable=True)
    sms_sender_id = Column(String(50), nullable=True)
    high_value_transaction_threshold = Column(Float, nullable=True)
    low_balance_threshold = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
