from datetime import datetime

from pydantic import BaseModel, field_validator

ALLOWED_METHODS = {"sms", "email"}


class TwoFactorEnableRequest(BaseModel):
    method: str = "sms"
    phone_number: str | None = None
    email: str | None = None

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        normalized = (v or "").strip().lower()
        if normalized not in ALLOWED_METHODS:
            raise ValueError(f"Invalid method. Allowed: {sorted(ALLOWED_METHODS)}")
        return normalized

    @field_validator("phone_number", "email")
    @classmethod
    def strip_opt(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            return v.strip() or None
        return v


class BackupCodesResponse(BaseModel):
    backup_codes: list[str]


class TwoFactorStatusResponse(BaseModel):
    enabled: bool
    method: str | None = None
    phone_number: str | None = None
    email: str | None = None
    force_enabled: bool = False
    setup_required: bool = False
    backup_codes_remaining: int = 0

    class Config:
        from_attributes = True


class TwoFactorRequiredResponse(BaseModel):
    required: bool
    device_id: str


class OtpSendResponse(BaseModel):
    method: str
    destination: str | None = None
    expires_at: datetime

    class Config:
        from_attributes = True


class OtpVerifyRequest(BaseModel):
    code: str
    remember_device: bool = False

    @field_validator("code")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Code cannot be empty")
        return value


class BackupCodeVerifyRequest(OtpVerifyRequest):
    pass


class VerificationResponse(BaseModel):
    verified: bool = True
    device_id: str | None = None
    backup_codes_remaining: int | None = None


class TrustedDeviceOut(BaseModel):
    device_id: str
    device_name: str | None = None
    ip_address: str | None = None
    created_at: datetime
    last_used_at: datetime

    class Config:
        from_attributes = True
