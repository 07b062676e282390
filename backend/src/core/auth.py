"""
Bearer token authentication against the identity provider.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.core.database import get_db
from backend.src.core.exceptions import AuthenticationError
from backend.src.core.firebase import IdentityProvider, get_identity_provider
from backend.src.core.logging import get_logger
from backend.src.models.product_event import Actor
from backend.src.models.user import User
from backend.src.services.identity_service import IdentityService

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    provider: IdentityProvider = Depends(get_identity_provider),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency to get the authenticated user from the request.

    The user is attached to ``request.state.user`` only after both the token
    and the local lookup succeed.

    Raises:
        AuthenticationError: If the header is missing or malformed, or the
            token cannot be resolved to a local user
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required", error="No token provided")

    try:
        user = await IdentityService(provider).verify_token(credentials.credentials, db)
    except AuthenticationError as e:
        raise AuthenticationError("Authentication required", error=e.error or e.message) from e
    except Exception as e:
        logger.warning(
            "Authentication lookup failed",
            extra={"path": request.url.path, "error": str(e)},
        )
        raise AuthenticationError("Authentication required", error="Invalid or expired token") from e

    request.state.user = user
    request.state.token = credentials.credentials

    logger.info(
        "User authenticated",
        extra={"user_id": user.id, "path": request.url.path},
    )
    return user


def actor_for(user: User) -> Actor:
    """Acting principal recorded on audit events."""
    return Actor(id=str(user.id), email=user.email)
