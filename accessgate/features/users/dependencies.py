"""
FastAPI dependencies for identifying the acting principal.

Tokens are issued and signed upstream. We verify the signature with the
shared secret and take the `sub` claim as the user id.
"""
from typing import Annotated, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core import config, request_context
from accessgate.core.database.engine import get_db
from accessgate.core.exceptions import Unauthenticated
from accessgate.features.users.directory import PrincipalDirectory
from accessgate.features.users.service import UserService
from accessgate.utils import get_logger


log = get_logger(__name__)

security = HTTPBearer(auto_error=False)


class Principal(BaseModel):
    """The authenticated actor making a request."""
    user_id: str

    model_config = ConfigDict(frozen=True)


def verify_jwt_token(token: str) -> dict:
    """
    Verify a bearer token and return its payload.

    Raises:
        Unauthenticated: If token is invalid or expired
    """
    if not config.JWT_SECRET:
        log.error("JWT_SECRET is not configured, rejecting bearer token")
        raise Unauthenticated("Token verification is not configured")
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.InvalidTokenError as e:
        raise Unauthenticated(f"Invalid token: {str(e)}")


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Principal:
    """
    Resolve the principal behind the Authorization header.

    Usage:
        @router.get("/me")
        async def me(principal: Principal = Depends(get_current_principal)):
            return principal
    """
    if credentials is None:
        raise Unauthenticated("Not authenticated")

    payload = verify_jwt_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid token payload")

    user = await UserService(db).get_user(str(user_id))
    if user is None or not user.is_active:
        raise Unauthenticated("Unknown or deactivated user")

    request_context.set("user_id", user.id)
    return Principal(user_id=user.id)


def get_principal_directory(db: Annotated[AsyncSession, Depends(get_db)]) -> PrincipalDirectory:
    return PrincipalDirectory(db)


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
