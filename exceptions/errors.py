"""
Custom exception classes for the application.

Every error carries a machine-readable code and an HTTP status so routes
can render it without knowing where it came from.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "IMPORT_JOB_NOT_FOUND")
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
# IMPORT FILE ERRORS
# ===================

class FormatError(ValidationError):
    """Import file cannot be decoded. Raised before any job exists."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="IMPORT_FORMAT_ERROR",
            message=message,
            details=details
        )


class RowValidationError(ValidationError):
    """A single import row cannot be committed."""

    def __init__(self, message: str, row_number: Optional[int] = None):
        super().__init__(
            code="IMPORT_ROW_INVALID",
            message=message,
            details={"row": row_number} if row_number is not None else None
        )


# ===================
# IMPORT JOB ERRORS
# ===================

class ImportJobNotFoundError(NotFoundError):
    """Import job not found."""

    def __init__(self, job_id: str):
        super().__init__(
            resource="Import job",
            identifier=job_id,
            code="IMPORT_JOB_NOT_FOUND"
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
# CATALOG ERRORS
# ===================

class ResolutionFailure(AppError):
    """Catalog rejected a read or write while resolving a row."""

    def __init__(
        self,
        operation: str,
        message: str,
        code: str = "RESOLUTION_FAILED",
        status_code: int = 500,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details={"operation": operation, **(details or {})}
        )


class TimeoutFailure(ResolutionFailure):
    """Catalog call exceeded its timeout."""

    def __init__(self, operation: str, timeout_seconds: Optional[float] = None):
        super().__init__(
            operation=operation,
            message=f"Catalog {operation} timed out",
            code="CATALOG_TIMEOUT",
            status_code=504,
            details={"timeout_seconds": timeout_seconds}
        )
