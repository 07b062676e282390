"""
Product management API endpoints.

Every mutation records an audit event for the live activity feed; reads are
open to anonymous callers.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.api.schemas.product_schemas import (
    ProductCreateRequest,
    ProductResponse,
    ProductUpdateRequest,
)
from backend.src.core.auth import actor_for, get_current_user
from backend.src.core.database import get_db
from backend.src.core.exceptions import (
    APIException,
    OperationFailedError,
    ResourceNotFoundError,
)
from backend.src.core.logging import get_logger
from backend.src.models.base import ApiResponse
from backend.src.models.user import User
from backend.src.services.product_service import ProductService, get_product_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.post(
    "",
    response_model=ApiResponse[ProductResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a product",
)
async def create_product(
    request: ProductCreateRequest,
    user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ProductResponse]:
    """
    Create a product and record a ``CREATE_PRODUCT`` event.

    Example:
        ```bash
        curl -X POST http://localhost:3000/api/products \\
          -H "Authorization: Bearer <token>" \\
          -H "Content-Type: application/json" \\
          -d '{"name": "Widget", "price": 9.99, "stock": 5}'
        ```
    """
    try:
        product = await service.create(
            name=request.name,
            price=request.price,
            stock=request.stock,
            db=db,
            actor=actor_for(user),
        )
    except APIException:
        raise
    except Exception as e:
        logger.error(
            "Product creation failed",
            extra={"error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to create product", e) from e

    return ApiResponse(
        message="Product created successfully",
        data=ProductResponse.model_validate(product),
    )


@router.get(
    "",
    response_model=ApiResponse[List[ProductResponse]],
    summary="List products",
)
async def list_products(
    service: ProductService = Depends(get_product_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[ProductResponse]]:
    """List all products, most recently updated first."""
    try:
        products = await service.get_all(db)
    except Exception as e:
        logger.error(
            "Product listing failed",
            extra={"error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to fetch products", e) from e

    items = [ProductResponse.model_validate(p) for p in products]
    return ApiResponse(
        message="Products retrieved successfully",
        data=items,
        total=len(items),
    )


@router.get(
    "/{product_id}",
    response_model=ApiResponse[ProductResponse],
    summary="Get a product",
)
async def get_product(
    product_id: int = Path(..., ge=1, description="Product ID"),
    service: ProductService = Depends(get_product_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ProductResponse]:
    """Fetch a single product by id."""
    try:
        product = await service.get_by_id(product_id, db)
    except Exception as e:
        logger.error(
            "Product lookup failed",
            extra={"product_id": product_id, "error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to fetch product", e) from e

    if product is None:
        raise ResourceNotFoundError("Product", product_id)

    return ApiResponse(
        message="Product retrieved successfully",
        data=ProductResponse.model_validate(product),
    )


@router.put(
    "/{product_id}",
    response_model=ApiResponse[ProductResponse],
    summary="Update a product",
)
async def update_product(
    request: ProductUpdateRequest,
    product_id: int = Path(..., ge=1, description="Product ID"),
    user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ProductResponse]:
    """
    Partially update a product.

    Only the supplied fields change. Records an ``UPDATE_PRODUCT`` event.
    """
    try:
        product = await service.update(
            product_id,
            request.to_patch(),
            db=db,
            actor=actor_for(user),
        )
    except APIException:
        raise
    except Exception as e:
        logger.error(
            "Product update failed",
            extra={"product_id": product_id, "error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to update product", e) from e

    if product is None:
        raise ResourceNotFoundError("Product", product_id)

    return ApiResponse(
        message="Product updated successfully",
        data=ProductResponse.model_validate(product),
    )


@router.delete(
    "/{product_id}",
    response_model=ApiResponse[None],
    summary="Delete a product",
)
async def delete_product(
    product_id: int = Path(..., ge=1, description="Product ID"),
    user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[None]:
    """Delete a product and record a ``DELETE_PRODUCT`` event."""
    try:
        deleted = await service.delete(product_id, db=db, actor=actor_for(user))
    except Exception as e:
        logger.error(
            "Product deletion failed",
            extra={"product_id": product_id, "error": str(e)},
            exc_info=True,
        )
        raise OperationFailedError("Failed to delete product", e) from e

    if not deleted:
        raise ResourceNotFoundError("Product", product_id)

    return ApiResponse(message="Product deleted successfully")
