from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator

ALLOWED_TYPES = {"login", "transaction", "low_balance", "high_value_transaction", "system_alert"}
ALLOWED_PRIORITIES = {"low", "medium", "high", "critical"}
ALLOWED_STATUSES = {"unread", "read"}
ALLOWED_SMS_PROVIDERS = {"hubtel", "smsonlinegh"}


class NotificationCreate(BaseModel):
    type: str
    title: str
    message: str
    priority: str = "medium"
    branch_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("title", "message")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Value cannot be empty")
        return value

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in ALLOWED_TYPES:
            raise ValueError(f"Invalid type. Allowed: {sorted(ALLOWED_TYPES)}")
        return normalized

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in ALLOWED_PRIORITIES:
            raise ValueError(f"Invalid priority. Allowed: {sorted(ALLOWED_PRIORITIES)}")
        return normalized


class NotificationOut(BaseModel):
    id: UUID
    type: str
    title: str
    message: str
    priority: str
    status: str
    branch_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("meta", "metadata"))
    read_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: list[NotificationOut]
    limit: int
    offset: int


class UnreadCountResponse(BaseModel):
    unread: int


class ChannelResultOut(BaseModel):
    channel: str
    success: bool
    provider: str | None = None
    message_id: str | None = None
    error: str | None = None

    class Config:
        from_attributes = True


class DispatchResponse(BaseModel):
    success: bool
    results: list[ChannelResultOut] = Field(default_factory=list)
    notification_id: UUID | None = None
    reason: str | None = None

    class Config:
        from_attributes = True


class TestSmsRequest(BaseModel):
    phone_number: str | None = None


class NotificationSettingsOut(BaseModel):
    email_notifications: bool
    sms_notifications: bool
    push_notifications: bool
    login_alerts: bool
    transaction_alerts: bool
    low_balance_alerts: bool
    email_address: str | None = None
    phone_number: str | None = None
    sms_provider: str | None = None
    sms_sender_id: str | None = None
    sms_credentials_configured: bool = False
    high_value_transaction_threshold: float | None = None
    low_balance_threshold: float | None = None

    class Config:
        from_attributes = True


class NotificationSettingsUpdate(BaseModel):
    email_notifications: bool | None = None
    sms_notifications: bool | None = None
    push_notifications: bool | None = None
    login_alerts: bool | None = None
    transaction_alerts: bool | None = None
    low_balance_alerts: bool | None = None
    email_address: str | None = None
    phone_number: str | None = None
    sms_provider: str | None = None
    sms_api_key: str | None = None
    sms_api_secret: str | None = None
    sms_sender_id: str | None = None
    high_value_transaction_threshold: float | None = Field(default=None, ge=0)
    low_balance_threshold: float | None = Field(default=None, ge=0)

    @field_validator("sms_provider")
    @classmethod
    def validate_provider(cls, v: str | None) -> str | None:
        if v is None:
            return v
        normalized = v.strip().lower()
        if normalized not in ALLOWED_SMS_PROVIDERS:
            raise ValueError(f"Invalid SMS provider. Allowed: {sorted(ALLOWED_SMS_PROVIDERS)}")
        return normalized

    @field_validator("email_address", "phone_number", "sms_api_key", "sms_api_secret", "sms_sender_id")
    @classmethod
    def strip_opt(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v
