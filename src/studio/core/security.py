"""Access token helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from .config import get_settings
from .exceptions import NotAuthenticated


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Mint a signed bearer token whose subject is the user id."""

    settings = get_settings()
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode({"sub": user_id, "exp": expire}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Return the user id carried by ``token`` or raise ``NotAuthenticated``."""

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise NotAuthenticated("Invalid or expired access token.") from exc

    user_id = payload.get("sub")
    if not user_id:
        raise NotAuthenticated("Access token has no subject.")
    return user_id
