"""
Custom exceptions and error handling for the application.
"""

from typing import Any, Dict, Optional


class APIException(Exception):
    """Base exception for all API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize API exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            error_code: Machine-readable error code
            details: Additional error details
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    @property
    def error(self) -> Optional[str]:
        """Detail string reported in the ``error`` field of the envelope."""
        return self.details.get("error")


class AuthenticationError(APIException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication required", error: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTHENTICATION_ERROR",
            details={"error": error} if error else {},
        )


class ResourceNotFoundError(APIException):
    """Raised when requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: Optional[Any] = None):
        super().__init__(
            message=f"{resource_type} not found",
            status_code=404,
            error_code="RESOURCE_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

    @property
    def error(self) -> Optional[str]:
        return None


class DuplicateResourceError(APIException):
    """Raised when attempting to create a duplicate resource."""

    def __init__(self, resource_type: str, identifier: Optional[str] = None):
        message = f"{resource_type} already exists"
        super().__init__(
            message=message,
            status_code=409,
            error_code="DUPLICATE_RESOURCE",
            details={
                "resource_type": resource_type,
                "identifier": identifier,
                "error": f"{message}: {identifier}" if identifier else message,
            },
        )


class OperationFailedError(APIException):
    """Raised by the API layer when a service call fails unexpectedly."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="OPERATION_FAILED",
            details={"error": str(original_error)} if original_error else {},
        )


class ConfigurationError(APIException):
    """Raised when configuration is invalid."""

    def __init__(self, message: str = "Invalid configuration", config_key: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key, "error": message} if config_key else {"error": message},
        )


class ExternalServiceError(APIException):
    """Raised when external service call fails."""

    def __init__(
        self,
        message: str = "External service unavailable",
        service_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if service_name:
            details["service_name"] = service_name
        if original_error:
            details["error"] = str(original_error)
        super().__init__(
            message=message,
            status_code=500,
            error_code="EXTERNAL_SERVICE_ERROR",
            details=details,
        )
