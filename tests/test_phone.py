import pytest

from app.core.exceptions import ValidationError
from app.utils.phone import mask_email, mask_phone, normalize_phone


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0241234567", "+233241234567"),
        ("024 123 4567", "+233241234567"),
        ("+233241234567", "+233241234567"),
        ("00233241234567", "+233241234567"),
        ("233241234567", "+233241234567"),
        ("(024) 123-4567", "+233241234567"),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_uses_given_country_code():
    assert normalize_phone("07911123456", country_code="+44") == "+447911123456"


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_normalize_phone_requires_a_value(raw):
    with pytest.raises(ValidationError, match="required"):
        normalize_phone(raw)


@pytest.mark.parametrize("raw", ["12345", "+0241234567", "024-abc-4567", "+2332412345678901234"])
def test_normalize_phone_rejects_invalid_numbers(raw):
    with pytest.raises(ValidationError, match="Invalid phone number"):
        normalize_phone(raw)


def test_masking_hides_the_middle():
    assert mask_phone("+233241234567") == "+233******567"
    assert mask_phone(None) is None
    assert mask_email("ama.mensah@example.com") == "a***@example.com"
    assert mask_email(None) is None
