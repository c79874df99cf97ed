# backend/miche/auth.py
"""
Bearer token authentication.

Tokens are issued by the identity provider and signed with the shared
``jwt_secret``. The API never mints tokens; it only decodes them into a
``UserPrincipal`` whose id is forwarded to row-level security policies.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt

from .core.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class UserPrincipal:
    """Authenticated caller: ``id`` is the token ``sub`` claim."""

    id: str
    email: Optional[str] = None


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a bearer token. Raises ``jwt.PyJWTError`` when invalid."""
    secret = settings.jwt_secret.get_secret_value()
    if settings.jwt_audience:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    else:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    return cast(Dict[str, Any], payload)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UserPrincipal:
    """
    Dependency resolving the authenticated caller from the Authorization header.

    Raises:
        HTTPException: 401 when the header is missing or the token is invalid
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    email = payload.get("email")
    return UserPrincipal(id=subject, email=email if isinstance(email, str) else None)
