"""
Security: bearer JWT verification.
Tokens are issued by the auth provider with the profile id as subject; this
service only validates them. create_access_token exists for tooling and tests.
"""

from datetime import datetime, timezone, timedelta
from typing import Any

from jose import JWTError, jwt

from finderguard.config import get_settings

settings = get_settings()


def create_access_token(profile_id: int, extra: dict[str, Any] | None = None) -> str:
    """Token for a profile, signed with the shared secret."""
    claims: dict[str, Any] = {
        "sub": str(profile_id),
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes),
    }
    claims.update(extra or {})
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verified claims, or None if the signature, expiry or format is bad."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def profile_id_from_token(token: str) -> int | None:
    claims = decode_access_token(token)
    if not claims:
        return None
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None
