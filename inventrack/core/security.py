from datetime import datetime, timedelta
from typing import Optional
from jose import jwt
from inventrack.core.config import settings


def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign identity claims (sub, name, role, branchId) for seeding and tests.

    Production tokens come from the identity service with the same claims.
    """
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {**claims, "exp": datetime.utcnow() + lifetime}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Raises ``jose.JWTError`` on a bad signature or an expired token."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
