"""
Product import schemas for validation and serialization.

Covers the import job lifecycle, column mappings, preview rows and the
per-row audit trail.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional
from enum import Enum
from datetime import datetime

from models.base import BaseSchema
from models.product import translations_key


class FileFormat(str, Enum):
    """Declared import file formats."""
    CSV = "csv"
    JSON = "json"
    EXCEL = "excel"  # recognised so it can be rejected explicitly


class PublicationMode(str, Enum):
    """When imported changes become visible."""
    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"
    PER_ROW = "per_row"


class ImportStatus(str, Enum):
    """Import job status values."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


# Status order for transition validation (lower index = earlier in flow)
STATUS_ORDER = {
    ImportStatus.PENDING: 0,
    ImportStatus.PROCESSING: 1,
    ImportStatus.COMPLETED: 2,
}


def is_valid_status_transition(current: ImportStatus, new: ImportStatus) -> bool:
    """
    Check if an import job status transition is valid.

    Jobs move one step at a time and COMPLETED is terminal.
    """
    if current == ImportStatus.COMPLETED:
        return False
    return STATUS_ORDER[new] == STATUS_ORDER[current] + 1


class RowStatus(str, Enum):
    """Preview classification of a row."""
    VALID = "valid"
    WARNING = "warning"
    ERROR = "error"


class RowOutcome(str, Enum):
    """Commit outcome of a row."""
    PROCESSED = "processed"
    FAILED = "failed"


class FieldType(str, Enum):
    """Inferred value type of a mapped column."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    IMAGE = "image"


# ===================
# COLUMN MAPPING
# ===================

class ColumnMapping(BaseModel):
    """
    Maps one source key onto a catalog attribute.

    Frozen: mappings are computed once per job from the header.
    Source keys are kept exactly as they appear in the file.
    """
    model_config = ConfigDict(frozen=True)

    source_key: str
    target_field: str
    field_type: FieldType = FieldType.TEXT
    is_translation: bool = False
    locale: Optional[str] = None

    @property
    def attribute_key(self) -> str:
        """Top-level attribute key the value lands under."""
        if self.is_translation and self.locale:
            return translations_key(self.locale)
        return self.target_field


# ===================
# PREVIEW
# ===================

class ImportPreviewRow(BaseSchema):
    """One classified row shown in the preview. Never persisted."""
    row_number: int = Field(..., ge=1)
    data: dict[str, Any]
    status: RowStatus
    messages: list[str] = Field(default_factory=list)
    product_id: Optional[str] = None
    publication_date: Optional[str] = None


class ImportPreviewResponse(BaseSchema):
    """Mappings, detected locales and the first classified rows of a file."""
    file_format: FileFormat
    mappings: list[ColumnMapping]
    detected_locales: list[str]
    total_rows: int
    rows: list[ImportPreviewRow]
    status_counts: dict[str, int] = Field(default_factory=dict)


# ===================
# JOB
# ===================

class ImportRowError(BaseSchema):
    """Row number + message pair in a job's error log."""
    row: int
    error: str


class ImportJob(BaseSchema):
    """
    One submitted batch import.

    Counters and error log are written once, when the job completes.
    """
    id: str
    import_name: str
    file_format: FileFormat
    publication_mode: PublicationMode
    scheduled_publish_at: Optional[datetime] = None
    column_mappings: list[ColumnMapping] = Field(default_factory=list)
    translation_locales: list[str] = Field(default_factory=list)
    total_rows: int = 0
    status: ImportStatus = ImportStatus.PENDING
    processed_rows: int = 0
    failed_rows: int = 0
    products_created: int = 0
    products_updated: int = 0
    error_log: list[ImportRowError] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        return v if isinstance(v, str) else str(v)


class ImportJobListResponse(BaseSchema):
    """Recent import jobs."""
    data: list[ImportJob]
    total: int


class ImportSubmitResponse(BaseSchema):
    """Returned when a job has been accepted for processing."""
    job_id: str
    status: ImportStatus
    total_rows: int


class ImportResult(BaseSchema):
    """Aggregate counters of a finished commit."""
    success: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)


# ===================
# AUDIT
# ===================

class ImportRowAudit(BaseSchema):
    """
    Immutable record of what was attempted for one row and how it ended.

    `product_id` is the resolved existing product; None means a new product
    was created (see `created_product_id`) or the row failed first.
    """
    id: Optional[str] = None
    import_id: str
    row_number: int
    row_data: dict[str, Any] = Field(default_factory=dict)
    product_id: Optional[str] = None
    created_product_id: Optional[str] = None
    publication_date: Optional[datetime] = None
    status: RowOutcome
    error_message: Optional[str] = None
    message: Optional[str] = None
    changes_applied: Optional[dict[str, Any]] = None
    processed_at: datetime

    @field_validator("id", "import_id", "product_id", "created_product_id", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)
