"""JWT helpers.

Tokens are minted by the identity provider in production; ``create_access_token``
exists for service accounts, scripts and the test suite.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from protrack.core.config import settings

ALGORITHM = "HS256"


def create_access_token(data: Dict[str, Any], expires: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES or 15
    to_encode = data.copy()
    to_encode.update(
        {
            "type": "access",
            "exp": now + (expires or timedelta(minutes=minutes)),
            "iat": now,
            "nbf": now,
            "iss": settings.JWT_ISSUER,
            "aud": settings.JWT_AUDIENCE,
        }
    )
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> str | None:
    """Return the subject of a valid access token, ``None`` otherwise."""

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload.get("sub")
