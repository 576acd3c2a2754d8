import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid, false, func

from app.db.base import Base


class TwoFactorSettings(Base):
    __tablename__ = "two_factor_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    enabled = Column(Boolean, nullable=False, default=False, server_default=false())
    method = Column(String(20), nullable=False, default="sms")
    phone_number = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    backup_code_hashes = Column(JSON, nullable=False, default=list)
    # Bumped on every write to the hash set; redemption compares-and-sets on it.
    backup_codes_version = Column(Integer, nullable=False, default=0, server_default="0")
    force_enabled = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
