"""Optional JWT identity for FastAPI routes.

Generation is open to anonymous leads; a valid bearer token only switches the
caller to the authenticated rate limit.
"""

import os
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

logger = structlog.get_logger()

ALGORITHM = "HS256"
SECRET_ENV_VAR = "REALTY_JWT_SECRET"

# Headers set by proxies, most specific first
_FORWARD_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")

security = HTTPBearer(auto_error=False)


def _get_jwt_secret() -> Optional[str]:
    return os.getenv(SECRET_ENV_VAR)


def decode_token(token: str) -> dict:
    """Decode a bearer token into ``{"id", "email", "name"}``.

    Raises:
        HTTPException: 401 when the token is invalid or has no subject
    """
    secret = _get_jwt_secret()
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication is not configured",
        )
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing sub",
        )
    return {"id": user_id, "email": payload.get("email"), "name": payload.get("name")}


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[dict]:
    """The caller's user dict, or None for anonymous requests."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def client_address(request: Request) -> str:
    """Client network address, honouring proxy headers."""
    for header in _FORWARD_HEADERS:
        value = request.headers.get(header)
        if value:
            return value.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def request_identity(request: Request, user: Optional[dict]) -> tuple[str, bool]:
    """``(identity, authenticated)`` for rate limiting and usage records."""
    if user:
        return f"user:{user['id']}", True
    return f"ip:{client_address(request)}", False
