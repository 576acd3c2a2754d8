import base64
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from sqlalchemy import LargeBinary
from sqlalchemy.types import TypeDecorator

from app.core.settings import settings

_KEY_INFO = b"stepup-column-encryption"


@lru_cache(maxsize=8)
def _fernet_for_secret(secret: str) -> Fernet:
    key = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=_KEY_INFO).derive(
        secret.encode("utf-8")
    )
    return Fernet(base64.urlsafe_b64encode(key))


class EncryptedString(TypeDecorator):
    """Provider credentials are stored as Fernet tokens and decrypted on load."""

    impl = LargeBinary
    cache_ok = True

    def __init__(self, *, secret: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self._secret = secret

    @property
    def _fernet(self) -> Fernet:
        return _fernet_for_secret(self._secret or settings.secret_key)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self._fernet.encrypt(str(value).encode("utf-8"))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return self._fernet.decrypt(bytes(value)).decode("utf-8")
        except InvalidToken as exc:  # pragma: no cover - indicates corrupted data or a rotated key
            raise ValueError("Unable to decrypt value") from exc


__all__ = ["EncryptedString"]
