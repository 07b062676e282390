"""Data models package."""

from backend.src.models.base import (
    ApiResponse,
    BaseModel,
    ErrorDetail,
    IDMixin,
    TimestampMixin,
)
from backend.src.models.product import Product
from backend.src.models.product_event import Actor, ProductAction, ProductEvent
from backend.src.models.product_patch import UNSET, ProductPatch
from backend.src.models.user import USER_STATUSES, User

__all__ = [
    "BaseModel",
    "IDMixin",
    "TimestampMixin",
    "ApiResponse",
    "ErrorDetail",
    "Product",
    "User",
    "USER_STATUSES",
    "Actor",
    "ProductAction",
    "ProductEvent",
    "ProductPatch",
    "UNSET",
]
