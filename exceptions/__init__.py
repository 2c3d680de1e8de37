"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Import files
    FormatError,
    RowValidationError,

    # Import jobs
    ImportJobNotFoundError,
    InvalidStatusTransitionError,

    # Catalog
    ResolutionFailure,
    TimeoutFailure,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Import files
    "FormatError",
    "RowValidationError",

    # Import jobs
    "ImportJobNotFoundError",
    "InvalidStatusTransitionError",

    # Catalog
    "ResolutionFailure",
    "TimeoutFailure",
]
