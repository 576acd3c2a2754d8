from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_POSTGRES_SCHEMES = {"postgres", "postgresql", "postgresql+asyncpg", "postgresql+psycopg2"}


def _ssl_mode(value: str) -> str:
    normalized = value.lower().strip()
    if normalized in {"0", "false", "no", "off", "disable"}:
        return "disable"
    if normalized in {"require", "verify-ca", "verify-full"}:
        return normalized
    return "require"


def normalize_database_url(url: str) -> str:
    """Point Postgres URLs at the async psycopg driver and translate ``ssl=`` to ``sslmode=``.

    Other schemes (sqlite+aiosqlite in tests) pass through unchanged.
    """
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    if parts.scheme not in _POSTGRES_SCHEMES:
        return url

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    ssl_key = next((key for key in query if key.lower() == "ssl"), None)
    if ssl_key is not None:
        ssl_val = query.pop(ssl_key)
        query.setdefault("sslmode", _ssl_mode(ssl_val))

    return urlunsplit(
        ("postgresql+psycopg", parts.netloc, parts.path, urlencode(query, doseq=True), parts.fragment)
    )
