import re

from app.core.exceptions import ValidationError
from app.core.settings import settings

_SEPARATORS = re.compile(r"[\s\-().]")
_E164 = re.compile(r"^\+[1-9]\d{7,14}$")


def normalize_phone(raw: str | None, *, country_code: str | None = None) -> str:
    """Return ``raw`` in +<country><number> form.

    A leading ``0`` is a national number and gets the default country code; ``00`` is an
    international prefix. Anything that does not end up as 8-15 digits is rejected.
    """
    cleaned = _SEPARATORS.sub("", raw or "")
    if not cleaned:
        raise ValidationError("Phone number is required")

    code = (country_code or settings.default_country_code).lstrip("+")
    if cleaned.startswith("+"):
        normalized = cleaned
    elif cleaned.startswith("00"):
        normalized = f"+{cleaned[2:]}"
    elif cleaned.startswith("0"):
        normalized = f"+{code}{cleaned[1:]}"
    else:
        normalized = f"+{cleaned}"

    if not _E164.match(normalized):
        raise ValidationError("Invalid phone number")
    return normalized


def mask_phone(phone: str | None) -> str | None:
    if not phone:
        return None
    return f"{phone[:4]}{'*' * max(len(phone) - 7, 0)}{phone[-3:]}"


def mask_email(email: str | None) -> str | None:
    if not email or "@" not in email:
        return email
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"
