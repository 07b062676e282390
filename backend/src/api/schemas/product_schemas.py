"""
Pydantic schemas for product requests and responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, StrictInt, model_validator

from backend.src.models.base import BaseModel, IDMixin
from backend.src.models.product_patch import ProductPatch

MAX_PRICE = 999_999_999
MAX_STOCK = 999_999


class ProductCreateRequest(BaseModel):
    """Request schema for creating a product."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        ...,
        description="Product name",
        min_length=1,
        max_length=255,
        examples=["Widget"],
    )
    price: float = Field(..., description="Unit price", ge=0, le=MAX_PRICE, examples=[9.99])
    stock: StrictInt = Field(..., description="Units in stock", ge=0, le=MAX_STOCK, examples=[5])


class ProductUpdateRequest(BaseModel):
    """
    Request schema for a partial product update.

    At least one field must be supplied. A supplied field must carry a
    value; ``null`` is rejected rather than read as "unchanged".
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, description="Product name", min_length=1, max_length=255)
    price: Optional[float] = Field(None, description="Unit price", ge=0, le=MAX_PRICE)
    stock: Optional[StrictInt] = Field(None, description="Units in stock", ge=0, le=MAX_STOCK)

    @model_validator(mode="after")
    def check_supplied_fields(self) -> "ProductUpdateRequest":
        """Require a non-empty body without explicit nulls."""
        if not self.model_fields_set:
            raise ValueError("At least one of name, price or stock must be provided")
        nulls = sorted(f for f in self.model_fields_set if getattr(self, f) is None)
        if nulls:
            raise ValueError(f"Fields may not be null: {', '.join(nulls)}")
        return self

    def to_patch(self) -> ProductPatch:
        """Patch holding exactly the supplied fields."""
        return ProductPatch.from_fields({f: getattr(self, f) for f in self.model_fields_set})


class ProductResponse(IDMixin):
    """Product as returned by the API."""

    name: str = Field(..., description="Product name")
    price: float = Field(..., description="Unit price")
    stock: int = Field(..., description="Units in stock")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


# Export
__all__ = [
    "ProductCreateRequest",
    "ProductUpdateRequest",
    "ProductResponse",
]
