"""
Import job persistence.

Stores ImportJob records (product_imports) and their per-row audit trail
(product_import_rows). Status only moves pending -> processing ->
completed; a completed job cannot be written again.
"""

from datetime import datetime, timezone
from typing import Any, Optional
import structlog

from pydantic import BaseModel

from config import get_supabase_client
from models.product_import import (
    ColumnMapping,
    FileFormat,
    ImportJob,
    ImportResult,
    ImportRowAudit,
    ImportStatus,
    PublicationMode,
    is_valid_status_transition,
)
from exceptions import (
    DatabaseError,
    ImportJobNotFoundError,
    InvalidStatusTransitionError,
)

logger = structlog.get_logger(__name__)


def _to_column(value: Any) -> Any:
    """Make a model field value storable in a JSON/timestamp column."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_column(item) for item in value]
    return value


class ImportJobService:
    """
    Import job storage.

    Handles job creation, lifecycle transitions and audit rows.
    """

    def __init__(self, client=None):
        self.db = client or get_supabase_client()
        self.table = "product_imports"
        self.rows_table = "product_import_rows"

    # ===================
    # JOBS
    # ===================

    def create_job(
        self,
        import_name: str,
        file_format: FileFormat,
        publication_mode: PublicationMode,
        scheduled_publish_at: Optional[datetime],
        mappings: list[ColumnMapping],
        translation_locales: list[str],
        total_rows: int,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ImportJob:
        """
        Insert a pending import job.

        Returns:
            ImportJob with its id

        Raises:
            DatabaseError: If the insert fails
        """
        payload = {
            "import_name": import_name,
            "file_format": file_format.value,
            "publication_mode": publication_mode.value,
            "scheduled_publish_at": (
                scheduled_publish_at.isoformat() if scheduled_publish_at else None
            ),
            "column_mapping": {
                "mappings": [mapping.model_dump(mode="json") for mapping in mappings]
            },
            "translation_locales": translation_locales,
            "total_rows": total_rows,
            "status": ImportStatus.PENDING.value,
            "metadata": metadata or {},
        }

        try:
            result = self.db.table(self.table).insert(payload).execute()
        except Exception as e:
            logger.error("import_job_create_failed", error=str(e))
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "No import job returned")

        job = self._to_model(result.data[0])
        logger.info(
            "import_job_created",
            job_id=job.id,
            import_name=import_name,
            file_format=file_format.value,
            publication_mode=publication_mode.value,
            total_rows=total_rows
        )
        return job

    def get_job(self, job_id: str) -> ImportJob:
        """
        Raises:
            ImportJobNotFoundError: If the job doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", job_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_import_job_failed", job_id=job_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ImportJobNotFoundError(job_id)
        return self._to_model(result.data[0])

    def list_jobs(self, limit: int = 20) -> list[ImportJob]:
        """Most recent jobs first."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error("list_import_jobs_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [self._to_model(row) for row in result.data or []]

    def mark_processing(self, job: ImportJob) -> ImportJob:
        return self._transition(job, ImportStatus.PROCESSING, {})

    def complete_job(self, job: ImportJob, result: ImportResult) -> ImportJob:
        """Write the final counters and error log, and close the job."""
        completed_at = datetime.now(timezone.utc)
        return self._transition(
            job,
            ImportStatus.COMPLETED,
            {
                "processed_rows": result.success,
                "failed_rows": result.failed,
                "products_created": result.created,
                "products_updated": result.updated,
                "error_log": list(result.errors),
                "completed_at": completed_at,
            },
        )

    def _transition(
        self,
        job: ImportJob,
        new_status: ImportStatus,
        fields: dict[str, Any],
    ) -> ImportJob:
        if not is_valid_status_transition(job.status, new_status):
            raise InvalidStatusTransitionError(job.status.value, new_status.value)

        payload = {
            **{key: _to_column(value) for key, value in fields.items()},
            "status": new_status.value,
        }

        try:
            # Guard on the stored status so a job can't be moved twice
            updated = (
                self.db.table(self.table)
                .update(payload)
                .eq("id", job.id)
                .eq("status", job.status.value)
                .execute()
            )
        except Exception as e:
            logger.error(
                "import_job_transition_failed",
                job_id=job.id,
                new_status=new_status.value,
                error=str(e)
            )
            raise DatabaseError("update", str(e))

        if not updated.data:
            raise InvalidStatusTransitionError(job.status.value, new_status.value)

        logger.info(
            "import_job_status_changed",
            job_id=job.id,
            from_status=job.status.value,
            to_status=new_status.value
        )
        return job.model_copy(update={**fields, "status": new_status})

    # ===================
    # AUDIT ROWS
    # ===================

    def record_row_audit(self, audit: ImportRowAudit) -> ImportRowAudit:
        """
        Append one row's audit entry.

        Raises:
            DatabaseError: If the insert fails
        """
        payload = audit.model_dump(mode="json", exclude={"id"})
        try:
            result = self.db.table(self.rows_table).insert(payload).execute()
        except Exception as e:
            logger.error(
                "import_row_audit_failed",
                job_id=audit.import_id,
                row_number=audit.row_number,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

        return ImportRowAudit(**result.data[0]) if result.data else audit

    def list_row_audits(self, job_id: str) -> list[ImportRowAudit]:
        """Audit entries of a job in row order."""
        try:
            result = (
                self.db.table(self.rows_table)
                .select("*")
                .eq("import_id", job_id)
                .order("row_number")
                .execute()
            )
        except Exception as e:
            logger.error("list_row_audits_failed", job_id=job_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [ImportRowAudit(**row) for row in result.data or []]

    # ===================
    # HELPERS
    # ===================

    @staticmethod
    def _to_model(row: dict) -> ImportJob:
        mappings = (row.get("column_mapping") or {}).get("mappings", [])
        return ImportJob(**{
            **row,
            "column_mappings": mappings,
            "translation_locales": row.get("translation_locales") or [],
            "error_log": row.get("error_log") or [],
            "metadata": row.get("metadata") or {},
        })
