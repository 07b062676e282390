"""
Base Pydantic models and response schemas.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field, model_serializer


class BaseModel(PydanticBaseModel):
    """Base Pydantic model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=False,
        arbitrary_types_allowed=True,
    )


class TimestampMixin(BaseModel):
    """Mixin for models with created_at and updated_at timestamps."""

    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class IDMixin(BaseModel):
    """Mixin for models with an integer identifier assigned by the store."""

    id: int = Field(..., description="Unique identifier", ge=1)


# Generic type for envelope payloads
T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """
    Uniform response envelope.

    ``data``, ``total`` and ``error`` are left out of the JSON body when they
    are not set, so a delete answers with just ``success`` and ``message``.
    """

    success: bool = Field(default=True, description="Whether the operation succeeded")
    message: str = Field(..., description="Human-readable outcome")
    data: Optional[T] = Field(None, description="Response payload")
    total: Optional[int] = Field(None, description="Number of items in data", ge=0)
    error: Optional[str] = Field(None, description="Error detail")

    @model_serializer(mode="wrap")
    def _omit_unset(self, handler) -> Dict[str, Any]:
        payload = handler(self)
        for key in ("data", "total", "error"):
            if payload.get(key) is None:
                payload.pop(key, None)
        return payload


class ErrorDetail(BaseModel):
    """Detailed error information."""

    loc: Optional[List[Any]] = Field(None, description="Error location path")
    msg: str = Field(..., description="Error message")
    type: str = Field(..., description="Error type")
