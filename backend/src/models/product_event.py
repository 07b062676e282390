"""
Audit events written to the product activity stream.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field

from backend.src.models.base import BaseModel


class ProductAction(str, Enum):
    """Mutations that produce an audit event."""

    CREATE_PRODUCT = "CREATE_PRODUCT"
    UPDATE_PRODUCT = "UPDATE_PRODUCT"
    DELETE_PRODUCT = "DELETE_PRODUCT"


class Actor(BaseModel):
    """Principal that performed a mutation."""

    id: str = Field(..., description="Acting user identifier")
    email: Optional[str] = Field(None, description="Acting user email")


class ProductEvent(BaseModel):
    """
    Immutable record of one successful product mutation.

    Stored records use camelCase keys (``productId``, ``productName``,
    ``userId``, ``userEmail``) and omit fields that are not known. The product
    may since have been deleted; nothing enforces the reference.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action: ProductAction = Field(..., description="Mutation performed")
    product_id: int = Field(..., alias="productId", description="Affected product")
    product_name: Optional[str] = Field(
        None, alias="productName", description="Product name when the event was created"
    )
    timestamp: str = Field(..., description="ISO-8601 creation time")
    user_id: Optional[str] = Field(None, alias="userId", description="Acting user")
    user_email: Optional[str] = Field(None, alias="userEmail", description="Acting user email")

    @classmethod
    def now(
        cls,
        action: ProductAction,
        product_id: int,
        product_name: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> "ProductEvent":
        """Create an event stamped with the current UTC time."""
        return cls(
            action=action,
            product_id=product_id,
            product_name=product_name,
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=actor.id if actor else None,
            user_email=actor.email if actor else None,
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the record layout kept in the stream."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @property
    def occurred_at(self) -> datetime:
        """Parsed timestamp, always timezone-aware."""
        parsed = datetime.fromisoformat(self.timestamp.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
