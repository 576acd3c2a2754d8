from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_user_id
from app.core.security import ACCESS_TOKEN_TYPE, CHALLENGE_TOKEN_TYPE, decode_token
from app.db.session import get_db
from app.models import User

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class ClientInfo:
    ip_address: str | None
    user_agent: str | None


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _subject_from_token(credentials: HTTPAuthorizationCredentials | None, expected_type: str) -> UUID:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = decode_token(credentials.credentials, expected_type=expected_type)
        return UUID(str(payload.get("sub")))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


async def _load_active_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    set_user_id(str(user.id))
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    user_id = _subject_from_token(credentials, ACCESS_TOKEN_TYPE)
    return await _load_active_user(db, user_id)


async def get_challenge_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """User behind a pending step-up challenge (not yet a full session)."""
    user_id = _subject_from_token(credentials, CHALLENGE_TOKEN_TYPE)
    return await _load_active_user(db, user_id)
