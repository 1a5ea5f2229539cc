"""Access/refresh token helpers for cookie or bearer authentication."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import uuid

from jose import JWTError, jwt

from config import settings


ACCESS_TOKEN_TYPE = "vt_access"
REFRESH_TOKEN_TYPE = "vt_refresh"


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    username: Optional[str] = None,
    full_name: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> Dict[str, Any]:
    """Create a short-lived signed access token."""
    now = datetime.now(timezone.utc)
    ttl_minutes = int(expires_minutes or settings.ACCESS_TOKEN_EXPIRY_MINUTES or 60)
    expires_at = now + timedelta(minutes=max(ttl_minutes, 1))
    claims: Dict[str, Any] = {
        "sub": user_id,
        "type": ACCESS_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if email:
        claims["email"] = email
    if username:
        claims["username"] = username
    if full_name:
        claims["full_name"] = full_name

    token = jwt.encode(claims, settings.ACCESS_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)
    return {
        "token": token,
        "expires_at": int(expires_at.timestamp()),
    }


def create_refresh_token(user_id: str, expires_days: Optional[int] = None) -> Dict[str, Any]:
    """Create a long-lived refresh token; jti makes every issued token distinct."""
    now = datetime.now(timezone.utc)
    ttl_days = int(expires_days or settings.REFRESH_TOKEN_EXPIRY_DAYS or 10)
    expires_at = now + timedelta(days=max(ttl_days, 1))
    claims = {
        "sub": user_id,
        "type": REFRESH_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(claims, settings.REFRESH_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)
    return {
        "token": token,
        "expires_at": int(expires_at.timestamp()),
    }


def _decode(token: str, secret: str, expected_type: str, label: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError(f"Invalid or expired {label} token.") from exc

    token_type = str(payload.get("type", "")).strip()
    if token_type != expected_type:
        raise ValueError(f"Invalid {label} token type.")

    subject = str(payload.get("sub", "")).strip()
    if not subject:
        raise ValueError(f"{label.capitalize()} token missing subject.")

    return payload


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a signed access token."""
    return _decode(token, settings.ACCESS_TOKEN_SECRET, ACCESS_TOKEN_TYPE, "access")


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Decode and validate a signed refresh token."""
    return _decode(token, settings.REFRESH_TOKEN_SECRET, REFRESH_TOKEN_TYPE, "refresh")
