"""
Custom exception classes for the application.

Every error carries a stable code, a human-readable message and an HTTP
status so routes can convert them with handle_error().
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "IMPORT_SESSION_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DuplicateError(ConflictError):
    """Duplicate resource (409)."""

    def __init__(
        self,
        resource: str,
        field: str,
        value: str
    ):
        super().__init__(
            code=f"{resource.upper()}_{field.upper()}_EXISTS",
            message=f"{resource} with this {field} already exists",
            details={field: value}
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# SOURCE ERRORS
# ===================

class CSVParseError(ValidationError):
    """CSV payload could not be parsed."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CSV_PARSE_ERROR",
            message=message,
            details=details
        )


class SourceFetchError(ExternalServiceError):
    """Supplier API returned nothing usable."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="supplier_api",
            message=message,
            details=details
        )


# ===================
# MAPPING / MARKUP ERRORS
# ===================

class InvalidFieldMappingError(ValidationError):
    """Field mapping does not cover the required targets."""

    def __init__(self, missing: list[str]):
        super().__init__(
            code="INVALID_FIELD_MAPPING",
            message=f"Field mapping is missing required targets: {', '.join(missing)}",
            details={"missing": missing}
        )


class InvalidPriceError(ValidationError):
    """Record has no usable price."""

    def __init__(self, value: Any, label: Optional[str] = None):
        super().__init__(
            code="INVALID_PRICE",
            message=f"Price is missing or not numeric: {value!r}",
            details={"provided": value, "record": label}
        )


# ===================
# REMOTE PLATFORM ERRORS
# ===================

class RemoteMutationError(ExternalServiceError):
    """Shopify rejected a query or mutation."""

    def __init__(self, operation: str, message: str, details: Optional[dict] = None):
        super().__init__(
            service="shopify",
            message=f"{operation} failed: {message}",
            details={"operation": operation, **(details or {})}
        )


# ===================
# IMPORT SESSION ERRORS
# ===================

class ImportSessionNotFoundError(NotFoundError):
    """Import session not found."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Import session",
            identifier=session_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class ImportAlreadyRunningError(ConflictError):
    """Another import is still running for this shop."""

    def __init__(self, shop: str):
        super().__init__(
            code="IMPORT_ALREADY_RUNNING",
            message="An import is already running for this shop",
            details={"shop": shop}
        )


class InvalidStatusTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, current_status: str, new_status: str, terminal_status: str = "completed"):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
                "reason": f"Status can only move forward, and {terminal_status} is terminal"
            }
        )


# ===================
# CONNECTION ERRORS
# ===================

class ConnectionNotFoundError(NotFoundError):
    """Supplier connection not found."""

    def __init__(self, connection_id: str):
        super().__init__(
            resource="Supplier connection",
            identifier=connection_id,
            code="CONNECTION_NOT_FOUND"
        )


class ImportConfigurationNotFoundError(NotFoundError):
    """Saved import configuration not found."""

    def __init__(self, configuration_id: str):
        super().__init__(
            resource="Import configuration",
            identifier=configuration_id,
            code="IMPORT_CONFIGURATION_NOT_FOUND"
        )
