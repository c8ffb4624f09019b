"""
Module: auth.py
Description: Bearer JWT authentication for the Smart Budget Assistant.

Provides:
    - HS256 JWT verification against JWT_SECRET
    - get_current_user dependency for FastAPI
    - User ID extraction from the 'id' claim (falling back to 'sub')

Usage:
    @app.get("/protected")
    async def protected_route(user_id: str = Depends(get_current_user)):
        ...

Author: Smart Budget Team
"""

from typing import Optional

import jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

import config
from services.observability import logger


security = HTTPBearer(auto_error=False)


def verify_token(token: str) -> Optional[dict]:
    """
    Verify a bearer token and return its claims.

    Returns:
        Dict of token claims if valid, None otherwise.
    """
    if not token:
        return None

    if config.AUTH_BYPASS:
        return {"id": config.AUTH_BYPASS_USER_ID}

    if not config.JWT_SECRET:
        logger.warning("JWT_SECRET not configured; rejecting token")
        return None

    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.info("Invalid token", error=str(e))
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    FastAPI dependency to get the current authenticated user.

    Returns:
        The user ID as a string.

    Raises:
        HTTPException: 401 if not authenticated or token invalid.
    """
    if config.AUTH_BYPASS:
        return config.AUTH_BYPASS_USER_ID

    if not credentials:
        raise _unauthorized("Authentication required. Please sign in.")

    claims = verify_token(credentials.credentials)
    if not claims:
        raise _unauthorized("Invalid or expired token. Please sign in again.")

    user_id = claims.get("id") or claims.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token: missing user ID.")

    return str(user_id)
