"""Authentication dependencies: access token from cookie or Bearer header."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.user import User
from services.errors import unauthorized
from services.session_token import decode_access_token


ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    username: Optional[str] = None
    email: Optional[str] = None


def _request_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


async def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Resolve the caller from a signed access token; the user must still exist."""
    token = _request_token(request, credentials)
    if not token:
        raise unauthorized("Unauthorized request")

    try:
        payload = decode_access_token(token)
    except ValueError as exc:
        raise unauthorized(str(exc)) from exc

    result = await db.execute(
        select(User.id, User.username, User.email).where(User.id == str(payload.get("sub", "")))
    )
    row = result.one_or_none()
    if row is None:
        raise unauthorized("Invalid access token")
    return AuthContext(user_id=row.id, username=row.username, email=row.email)


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    options = {"httponly": True, "secure": settings.COOKIE_SECURE}
    response.set_cookie(ACCESS_COOKIE, access_token, max_age=settings.ACCESS_TOKEN_EXPIRY_MINUTES * 60, **options)
    response.set_cookie(REFRESH_COOKIE, refresh_token, max_age=settings.REFRESH_TOKEN_EXPIRY_DAYS * 86400, **options)


def clear_auth_cookies(response: Response) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.COOKIE_SECURE)
