"""
Authentication Dependencies

FastAPI dependencies that turn a bearer token into the caller's AuthContext.
Tokens are issued by the login service; this backend only verifies them.
"""

from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from mockbook.config import Config, get_config
from mockbook.schemas.common import AuthContext, Role
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

security = HTTPBearer()


def verify_token(token: str, config: Config) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, config.auth.jwt_secret, algorithms=[config.auth.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("[Auth] Token has expired")
        return None
    except jwt.InvalidTokenError:
        return None


def create_token(user_id: str, role: Role, config: Config) -> str:
    """Mint a token (scripts and tests; production tokens come from the login service)."""
    return jwt.encode(
        {"user_id": user_id, "role": Role(role).value},
        config.auth.jwt_secret,
        algorithm=config.auth.jwt_algorithm,
    )


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    config: Config = Depends(get_config),
) -> AuthContext:
    """
    Get the caller from the JWT.

    Raises:
        HTTPException: If token is invalid or missing
    """
    payload = verify_token(credentials.credentials, config)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    role = payload.get("role")
    if not user_id or role not in {r.value for r in Role}:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"[Auth] Authenticated user {user_id} with role {role}")
    return AuthContext(user_id=str(user_id), role=Role(role))
