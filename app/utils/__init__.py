from app.utils.phone import mask_email, mask_phone, normalize_phone

__all__ = [
    "mask_email",
    "mask_phone",
    "normalize_phone",
]
