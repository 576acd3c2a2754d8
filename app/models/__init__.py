from app.models.notification import Notification
from app.models.notification_settings import NotificationSettings
from app.models.otp_token import OtpToken
from app.models.system_config import SystemConfig
from app.models.trusted_device import TrustedDevice
from app.models.two_factor_settings import TwoFactorSettings
from app.models.user import User

__all__ = [
    "Notification",
    "NotificationSettings",
    "OtpToken",
    "SystemConfig",
    "TrustedDevice",
    "TwoFactorSettings",
    "User",
]
