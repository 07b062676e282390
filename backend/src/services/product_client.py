"""
HTTP client for the product REST API.

Used by the command line to list, create, edit and delete products. Every
call unwraps the response envelope and raises ``ProductApiError`` with the
server's message when ``success`` is false.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from backend.src.api.schemas.product_schemas import ProductResponse
from backend.src.core.config import settings
from backend.src.core.logging import get_logger
from backend.src.models.base import ApiResponse

logger = get_logger(__name__)


class ProductApiError(Exception):
    """The API answered with a failure envelope or an unreadable body."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error = error
        self.errors = errors or []
        super().__init__(message)


class ProductNotFoundError(ProductApiError):
    """Product not found"""


class ProductApiUnavailableError(ProductApiError):
    """The API could not be reached."""


class ProductApiClient:
    """Client for the ``/api/products`` endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ):
        self.token = token
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=base_url or settings.API_URL,
            timeout=timeout if timeout is not None else settings.API_TIMEOUT,
        )

    def __enter__(self) -> "ProductApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection pool if this client opened it."""
        if self._owns_client:
            self._client.close()

    def list_products(self) -> List[ProductResponse]:
        """Fetch every product, most recently updated first."""
        envelope = self._request("GET", "/api/products", ApiResponse[List[ProductResponse]])
        return envelope.data or []

    def get_product(self, product_id: int) -> ProductResponse:
        """
        Fetch one product.

        Raises:
            ProductNotFoundError: If no product has this ID
        """
        envelope = self._request("GET", f"/api/products/{product_id}", ApiResponse[ProductResponse])
        return envelope.data

    def create_product(self, name: str, price: float, stock: int) -> ProductResponse:
        """Create a product. Requires a token."""
        envelope = self._request(
            "POST",
            "/api/products",
            ApiResponse[ProductResponse],
            json={"name": name, "price": price, "stock": stock},
        )
        return envelope.data

    def update_product(self, product_id: int, changes: Dict[str, Any]) -> ProductResponse:
        """
        Apply a partial update. Requires a token.

        Args:
            product_id: Product ID
            changes: Only the fields to change; ``0`` is a value, not a gap
        """
        envelope = self._request(
            "PUT",
            f"/api/products/{product_id}",
            ApiResponse[ProductResponse],
            json=changes,
        )
        return envelope.data

    def delete_product(self, product_id: int) -> str:
        """Delete a product and return the server's confirmation. Requires a token."""
        envelope = self._request("DELETE", f"/api/products/{product_id}", ApiResponse[None])
        return envelope.message

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, url: str, envelope_type: Any, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, headers=self._headers(), **kwargs)
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            logger.error(
                "Product API unavailable",
                extra={"method": method, "url": url, "error": str(e)},
            )
            raise ProductApiUnavailableError(f"Product API unavailable: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ProductApiError(
                f"Unexpected response from the product API ({response.status_code})",
                status_code=response.status_code,
            ) from e

        if response.is_error or not body.get("success", False):
            error_type = ProductNotFoundError if response.status_code == 404 else ProductApiError
            raise error_type(
                body.get("message") or f"Request failed ({response.status_code})",
                status_code=response.status_code,
                error=body.get("error"),
                errors=body.get("errors"),
            )

        try:
            return envelope_type.model_validate(body)
        except ValidationError as e:
            raise ProductApiError(
                "Unexpected response from the product API",
                status_code=response.status_code,
            ) from e
