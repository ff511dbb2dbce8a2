"""
JWT helpers and FastAPI dependencies that identify the requester.

Core operations take the requester id as a plain argument; this module is
only used by the HTTP adapter to turn a bearer token into that id.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging
import os

import jwt
from fastapi import Header, HTTPException

from ..config import get_settings

logger = logging.getLogger(__name__)


class AuthManager:
    """JWT manager for caregiver and senior sessions."""

    def __init__(self, jwt_secret: str):
        if not jwt_secret or jwt_secret == "change-this-secret":
            logger.warning(
                "Using default/weak JWT secret. Set JWT_SECRET in production."
            )
        self.jwt_secret = jwt_secret

    def generate_user_token(self, user_id: str, expires_minutes: int = 60) -> str:
        now = datetime.now(tz=timezone.utc)
        payload = {
            "sub": user_id,
            "type": "user",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
            "jti": os.urandom(8).hex(),
        }
        return jwt.encode(payload, self.jwt_secret, algorithm="HS256")

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            logger.info("JWT expired")
            return None
        except jwt.InvalidTokenError as e:  # noqa: PERF203
            logger.info("Invalid JWT: %s", e)
            return None


_AUTH_MANAGER: Optional[AuthManager] = None


def get_auth_manager() -> AuthManager:
    global _AUTH_MANAGER
    if _AUTH_MANAGER is None:
        _AUTH_MANAGER = AuthManager(get_settings().jwt_secret)
    return _AUTH_MANAGER


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    """FastAPI dependency that extracts and verifies the current user from JWT.

    Returns a dict: {"id": str, "claims": Dict}
    """
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=401, detail="Missing or invalid Authorization header"
        )

    token = authorization.split(" ", 1)[1]
    claims = get_auth_manager().verify_token(token)
    if not claims or claims.get("type") != "user" or not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")

    return {
        "id": str(claims["sub"]),
        "claims": claims,
    }
