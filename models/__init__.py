"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.product import (
    PublicationStatus,
    Product,
    ProductPublication,
    DuePublicationError,
    DuePublicationsResult,
    translations_key,
)
from models.product_import import (
    FileFormat,
    PublicationMode,
    ImportStatus,
    RowStatus,
    RowOutcome,
    FieldType,
    ColumnMapping,
    ImportPreviewRow,
    ImportPreviewResponse,
    ImportRowError,
    ImportJob,
    ImportJobListResponse,
    ImportSubmitResponse,
    ImportResult,
    ImportRowAudit,
    is_valid_status_transition,
)

__all__ = [
    "BaseSchema",
    # Product
    "PublicationStatus",
    "Product",
    "ProductPublication",
    "DuePublicationError",
    "DuePublicationsResult",
    "translations_key",
    # Product import
    "FileFormat",
    "PublicationMode",
    "ImportStatus",
    "RowStatus",
    "RowOutcome",
    "FieldType",
    "ColumnMapping",
    "ImportPreviewRow",
    "ImportPreviewResponse",
    "ImportRowError",
    "ImportJob",
    "ImportJobListResponse",
    "ImportSubmitResponse",
    "ImportResult",
    "ImportRowAudit",
    "is_valid_status_transition",
]
