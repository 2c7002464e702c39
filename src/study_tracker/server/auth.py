from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from ..settings import get_settings

_security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(_security)) -> str:
    """
    Resolve the bearer credential to a user id.

    Tokens are opaque and provisioned through AUTH_TOKENS ('token:user_id'
    pairs); issuing them is outside this service.

    Raises:
        HTTPException(401) if the credential is missing or unknown.
    """
    if creds is None or not creds.credentials:
        raise _unauthorized("No token provided. Please login.")

    user_id = get_settings().auth_tokens.get(creds.credentials)
    if user_id is None:
        logger.debug("Rejected unknown bearer credential")
        raise _unauthorized("Invalid token. Please login.")
    return user_id
