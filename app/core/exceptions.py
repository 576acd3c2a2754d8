"""Domain errors raised by the step-up and notification services.

Each error carries a stable ``code`` and the HTTP status the API layer maps it
to. Errors that guard a security decision expose a generic message only.
"""

from __future__ import annotations

from typing import Any


class StepUpError(Exception):
    code = "stepup_error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(StepUpError):
    code = "configuration_error"
    status_code = 422
    default_message = "Required configuration is missing"


class ValidationError(StepUpError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid input"


class InvalidOrExpiredTokenError(StepUpError):
    code = "invalid_code"
    status_code = 401
    default_message = "Invalid code"


class InvalidBackupCodeError(StepUpError):
    code = "invalid_code"
    status_code = 401
    default_message = "Invalid code"


class NotEnabledError(StepUpError):
    code = "two_factor_not_enabled"
    status_code = 409
    default_message = "Two-factor authentication is not enabled"


class ProviderError(StepUpError):
    code = "provider_error"
    status_code = 502
    default_message = "Delivery provider failed"


class PersistenceError(StepUpError):
    code = "persistence_error"
    status_code = 503
    default_message = "Storage unavailable"


class NotFoundError(StepUpError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


__all__ = [
    "StepUpError",
    "ConfigurationError",
    "ValidationError",
    "InvalidOrExpiredTokenError",
    "InvalidBackupCodeError",
    "NotEnabledError",
    "ProviderError",
    "PersistenceError",
    "NotFoundError",
]
