"""
Authentication and user management API endpoints.

Accounts live with the identity provider and are mirrored into the local
``users`` table.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.api.schemas.auth_schemas import (
    AuthPayload,
    LoginRequest,
    RegisterRequest,
    UserPayload,
    UserResponse,
    UserUpdateRequest,
)
from backend.src.core.auth import get_current_user
from backend.src.core.database import get_db
from backend.src.core.exceptions import (
    APIException,
    OperationFailedError,
    ResourceNotFoundError,
)
from backend.src.core.logging import get_logger
from backend.src.models.base import ApiResponse
from backend.src.models.user import User
from backend.src.services.identity_service import IdentityService, get_identity_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=ApiResponse[AuthPayload],
    status_code=status.HTTP_201_CREATED,
    summary="Register an account",
)
async def register(
    request: RegisterRequest,
    service: IdentityService = Depends(get_identity_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AuthPayload]:
    """
    Create an identity provider account and its local user.

    Returns the user together with a custom token the client exchanges for
    an ID token.

    Example:
        ```bash
        curl -X POST http://localhost:3000/api/auth/register \\
          -H "Content-Type: application/json" \\
          -d '{"email": "ana@stockroom.io", "password": "secret1", "username": "ana"}'
        ```
    """
    try:
        user, token = await service.register(
            email=request.email,
            password=request.password,
            username=request.username,
            db=db,
        )
    except APIException:
        raise
    except Exception as e:
        logger.error(
            "Registration failed",
            extra={"error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to register user", e) from e

    return ApiResponse(
        message="User registered successfully",
        data=AuthPayload(user=UserResponse.model_validate(user), token=token),
    )


@router.post(
    "/login",
    response_model=ApiResponse[AuthPayload],
    summary="Log in",
)
async def login(
    request: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AuthPayload]:
    """Issue a token for an existing account."""
    try:
        user, token = await service.login(request.email, request.password, db)
    except APIException:
        raise
    except Exception as e:
        logger.error(
            "Login failed",
            extra={"error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to log in", e) from e

    return ApiResponse(
        message="User logged in successfully",
        data=AuthPayload(user=UserResponse.model_validate(user), token=token),
    )


@router.get(
    "/profile/me",
    response_model=ApiResponse[UserPayload],
    summary="Current user",
)
async def get_profile(
    user: User = Depends(get_current_user),
) -> ApiResponse[UserPayload]:
    """Return the user the bearer token belongs to."""
    return ApiResponse(
        message="Token verified successfully",
        data=UserPayload(user=UserResponse.model_validate(user)),
    )


@router.get(
    "/users/{user_id}",
    response_model=ApiResponse[UserPayload],
    summary="Get a user",
)
async def get_user(
    user_id: int = Path(..., ge=1, description="User ID"),
    current_user: User = Depends(get_current_user),
    service: IdentityService = Depends(get_identity_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserPayload]:
    """Fetch a user by local id."""
    user = await service.get_by_id(user_id, db)
    if user is None:
        raise ResourceNotFoundError("User", user_id)

    return ApiResponse(
        message="User retrieved successfully",
        data=UserPayload(user=UserResponse.model_validate(user)),
    )


@router.put(
    "/users/{user_id}",
    response_model=ApiResponse[UserPayload],
    summary="Update a user",
)
async def update_user(
    request: UserUpdateRequest,
    user_id: int = Path(..., ge=1, description="User ID"),
    current_user: User = Depends(get_current_user),
    service: IdentityService = Depends(get_identity_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserPayload]:
    """
    Update profile fields.

    Display name and photo changes are written to the identity provider
    before the local row.
    """
    changes = request.model_dump(exclude_unset=True)
    try:
        user = await service.update_profile(user_id, changes, db)
    except APIException:
        raise
    except Exception as e:
        logger.error(
            "User update failed",
            extra={"user_id": user_id, "error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to update user profile", e) from e

    if user is None:
        raise ResourceNotFoundError("User", user_id)

    return ApiResponse(
        message="User profile updated successfully",
        data=UserPayload(user=UserResponse.model_validate(user)),
    )


@router.delete(
    "/users/{user_id}",
    response_model=ApiResponse[None],
    summary="Delete a user",
)
async def delete_user(
    user_id: int = Path(..., ge=1, description="User ID"),
    current_user: User = Depends(get_current_user),
    service: IdentityService = Depends(get_identity_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[None]:
    """Delete the identity provider account and the local user."""
    try:
        deleted = await service.delete_user(user_id, db)
    except APIException:
        raise
    except Exception as e:
        logger.error(
            "User deletion failed",
            extra={"user_id": user_id, "error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to delete user", e) from e

    if not deleted:
        raise ResourceNotFoundError("User", user_id)

    logger.info(
        "User removed",
        extra={"user_id": user_id, "removed_by": current_user.id},
    )
    return ApiResponse(message="User deleted successfully")
