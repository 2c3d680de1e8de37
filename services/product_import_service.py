"""
Product import orchestration.

Preview decodes a file, infers its column mappings and classifies the
first rows without touching the database. Commit runs every row through
the resolver in row-number order, writes one audit entry per row and
closes the job with aggregate counters. A failing row never stops the
rows after it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union
import structlog

from config import settings
from models.product_import import (
    FileFormat,
    ImportJob,
    ImportPreviewResponse,
    ImportResult,
    ImportRowAudit,
    ImportRowError,
    PublicationMode,
    RowOutcome,
    RowStatus,
)
from parsers.import_decoder import DecodedFile, DecodedRow, decode_import_file
from parsers.schema_inference import SchemaInference, apply_mappings, infer_column_mappings
from services.catalog_service import CatalogGateway, CatalogService
from services.import_job_service import ImportJobService
from services.publication_service import PublicationService, ResolutionOutcome
from services.row_validation_service import (
    INVALID_PUBLICATION_DATE_MESSAGE,
    MISSING_NAME_MESSAGE,
    RESERVED_FIELDS,
    classify_rows,
    extract_identity,
    extract_name,
    extract_publication_hint,
    parse_publication_date,
    validate_row,
)
from exceptions import AppError, RowValidationError, ValidationError

logger = structlog.get_logger(__name__)


AUDIT_LOST_MESSAGE = "Row audit entry could not be recorded"


def _decode_and_infer(
    content: bytes,
    file_format: Union[FileFormat, str],
) -> tuple[DecodedFile, SchemaInference]:
    decoded = decode_import_file(content, file_format)
    schema = infer_column_mappings(decoded.keys, decoded.file_format, decoded.first_record)
    return decoded, schema


def preview_import(
    content: bytes,
    file_format: Union[FileFormat, str],
    limit: Optional[int] = None,
) -> ImportPreviewResponse:
    """
    Preview an import file.

    Pure: nothing is persisted and the catalog is not consulted.

    Args:
        content: Uploaded file bytes
        file_format: Declared format
        limit: Rows to classify (defaults to the import_preview_rows setting)

    Returns:
        ImportPreviewResponse

    Raises:
        FormatError: If the file cannot be decoded
    """
    if limit is None:
        limit = settings.import_preview_rows
    decoded, schema = _decode_and_infer(content, file_format)
    rows = classify_rows(decoded.rows, schema.mappings, limit=limit)

    status_counts = {status.value: 0 for status in RowStatus}
    for row in rows:
        status_counts[row.status.value] += 1

    logger.info(
        "import_previewed",
        file_format=decoded.file_format.value,
        total_rows=decoded.total_rows,
        previewed=len(rows),
        locales=schema.detected_locales
    )
    return ImportPreviewResponse(
        file_format=decoded.file_format,
        mappings=schema.mappings,
        detected_locales=schema.detected_locales,
        total_rows=decoded.total_rows,
        rows=rows,
        status_counts=status_counts,
    )


@dataclass
class PreparedImport:
    """A created (pending) job and the rows it will process."""
    job: ImportJob
    rows: list[DecodedRow]


class ProductImportService:
    """
    Product import orchestrator.

    Owns the ImportJob lifecycle: pending -> processing -> completed.
    """

    def __init__(
        self,
        catalog: Optional[CatalogGateway] = None,
        jobs: Optional[ImportJobService] = None,
        protect_synced_fields: Optional[bool] = None,
    ):
        self.catalog = catalog or CatalogService()
        self.jobs = jobs or ImportJobService()
        self.protect_synced_fields = (
            settings.import_protect_synced_fields
            if protect_synced_fields is None
            else protect_synced_fields
        )

    # ===================
    # READ OPERATIONS
    # ===================

    def preview_import(
        self,
        content: bytes,
        file_format: Union[FileFormat, str],
    ) -> ImportPreviewResponse:
        return preview_import(content, file_format)

    def get_import_status(self, job_id: str) -> ImportJob:
        """
        Raises:
            ImportJobNotFoundError: If the job doesn't exist
        """
        return self.jobs.get_job(job_id)

    def list_imports(self, limit: int = 20) -> list[ImportJob]:
        return self.jobs.list_jobs(limit=limit)

    def get_row_audits(self, job_id: str) -> list[ImportRowAudit]:
        self.jobs.get_job(job_id)
        return self.jobs.list_row_audits(job_id)

    # ===================
    # SUBMIT
    # ===================

    def submit_import(
        self,
        content: bytes,
        file_format: Union[FileFormat, str],
        publication_mode: Union[PublicationMode, str],
        scheduled_publish_at: Optional[datetime],
        import_name: str,
        file_name: Optional[str] = None,
    ) -> str:
        """
        Create an import job and run it to completion.

        Returns:
            The job id

        Raises:
            ValidationError: Bad publication mode, schedule or name
            FormatError: File cannot be decoded (no job is created)
        """
        prepared = self.prepare_import(
            content,
            file_format,
            publication_mode,
            scheduled_publish_at,
            import_name,
            file_name=file_name,
        )
        self.process_import(prepared.job, prepared.rows)
        return prepared.job.id

    def prepare_import(
        self,
        content: bytes,
        file_format: Union[FileFormat, str],
        publication_mode: Union[PublicationMode, str],
        scheduled_publish_at: Optional[datetime],
        import_name: str,
        file_name: Optional[str] = None,
    ) -> PreparedImport:
        """
        Validate the request, decode the file and create a pending job.

        Everything that can reject the file happens before the job exists.
        """
        mode = _coerce_publication_mode(publication_mode)
        name = (import_name or "").strip()
        if not name:
            raise ValidationError(
                message="Import name is required",
                code="IMPORT_NAME_REQUIRED"
            )
        if mode == PublicationMode.SCHEDULED and scheduled_publish_at is None:
            raise ValidationError(
                message="A publication date and time is required for scheduled imports",
                code="SCHEDULED_PUBLISH_AT_REQUIRED"
            )
        if mode != PublicationMode.SCHEDULED:
            scheduled_publish_at = None

        decoded, schema = _decode_and_infer(content, file_format)

        job = self.jobs.create_job(
            import_name=name,
            file_format=decoded.file_format,
            publication_mode=mode,
            scheduled_publish_at=scheduled_publish_at,
            mappings=schema.mappings,
            translation_locales=schema.detected_locales,
            total_rows=decoded.total_rows,
            metadata={"file_name": file_name, "file_size": len(content)},
        )
        return PreparedImport(job=job, rows=decoded.rows)

    # ===================
    # COMMIT
    # ===================

    def process_import(self, job: ImportJob, rows: list[DecodedRow]) -> ImportResult:
        """
        Commit every row of a pending job.

        Rows run sequentially in row-number order so that two rows for the
        same product apply last-writer-wins.

        Returns:
            ImportResult with the counters written onto the job
        """
        job = self.jobs.mark_processing(job)
        resolver = PublicationService(
            self.catalog,
            default_template_id=self._default_template_id(),
            protect_synced_fields=self.protect_synced_fields,
        )
        result = ImportResult()

        logger.info("import_processing_started", job_id=job.id, rows=len(rows))

        for row in sorted(rows, key=lambda r: r.row_number):
            audit = self._process_row(job, row, resolver, result)
            self._record_audit(audit, result)

        self.jobs.complete_job(job, result)

        logger.info(
            "import_processing_completed",
            job_id=job.id,
            success=result.success,
            failed=result.failed,
            created=result.created,
            updated=result.updated
        )
        return result

    def _default_template_id(self) -> Optional[str]:
        try:
            return self.catalog.get_default_attribute_template_id()
        except AppError as e:
            logger.warning("default_template_lookup_failed", error=e.message)
            return None

    def _process_row(
        self,
        job: ImportJob,
        row: DecodedRow,
        resolver: PublicationService,
        result: ImportResult,
    ) -> ImportRowAudit:
        publish_at: Optional[datetime] = None
        try:
            validation = validate_row(row.data, job.column_mappings)
            name = extract_name(row.data, job.column_mappings)
            if name is None:
                raise RowValidationError(MISSING_NAME_MESSAGE, row.row_number)

            identity = extract_identity(row.data, job.column_mappings)
            publish_at = self._effective_publication_date(job, row)
            mapped = apply_mappings(
                row.data,
                job.column_mappings,
                coerce=job.file_format == FileFormat.CSV,
            )
            attributes = {
                key: value for key, value in mapped.items() if key not in RESERVED_FIELDS
            }
            outcome = resolver.resolve(identity, name, attributes, publish_at)

        except Exception as e:
            message = e.message if isinstance(e, AppError) else str(e)
            result.failed += 1
            result.errors.append(ImportRowError(row=row.row_number, error=message))
            logger.warning(
                "import_row_failed",
                job_id=job.id,
                row_number=row.row_number,
                error=message,
                error_type=type(e).__name__
            )
            return ImportRowAudit(
                import_id=job.id,
                row_number=row.row_number,
                row_data=row.data,
                publication_date=publish_at,
                status=RowOutcome.FAILED,
                error_message=message,
                processed_at=datetime.now(timezone.utc),
            )

        result.success += 1
        if outcome.created:
            result.created += 1
        else:
            result.updated += 1

        return ImportRowAudit(
            import_id=job.id,
            row_number=row.row_number,
            row_data=row.data,
            product_id=None if outcome.created else outcome.product_id,
            created_product_id=outcome.product_id if outcome.created else None,
            publication_date=publish_at,
            status=RowOutcome.PROCESSED,
            message=_audit_message(validation.status, validation.messages, outcome),
            changes_applied=outcome.changes,
            processed_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _effective_publication_date(job: ImportJob, row: DecodedRow) -> Optional[datetime]:
        """Per-row date, else the job's schedule in scheduled mode, else now (None)."""
        hint = extract_publication_hint(row.data, job.column_mappings)
        if hint is not None:
            try:
                return parse_publication_date(hint)
            except ValueError:
                raise RowValidationError(INVALID_PUBLICATION_DATE_MESSAGE, row.row_number)
        if job.publication_mode == PublicationMode.SCHEDULED:
            return job.scheduled_publish_at
        return None

    def _record_audit(self, audit: ImportRowAudit, result: ImportResult) -> None:
        try:
            self.jobs.record_row_audit(audit)
        except AppError as e:
            # Counters already carry this row; the error log names the gap
            result.errors.append(ImportRowError(
                row=audit.row_number,
                error=f"{AUDIT_LOST_MESSAGE}: {e.message}",
            ))
            logger.error(
                "import_row_audit_lost",
                job_id=audit.import_id,
                row_number=audit.row_number,
                status=audit.status.value,
                error=e.message
            )


def _coerce_publication_mode(value: Union[PublicationMode, str]) -> PublicationMode:
    if isinstance(value, PublicationMode):
        return value
    try:
        return PublicationMode(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            message=f"Invalid publication mode: {value}",
            code="INVALID_PUBLICATION_MODE",
            details={"valid": [mode.value for mode in PublicationMode]}
        )


def _audit_message(
    status: RowStatus,
    messages: list[str],
    outcome: ResolutionOutcome,
) -> Optional[str]:
    notes: list[str] = list(messages) if status == RowStatus.WARNING else []
    if outcome.skipped_fields:
        notes.append(
            "Skipped fields synced from integration: " + ", ".join(outcome.skipped_fields)
        )
    return "; ".join(notes) or None


# ===================
# SINGLETON
# ===================

_service: Optional[ProductImportService] = None


def get_product_import_service() -> ProductImportService:
    global _service
    if _service is None:
        _service = ProductImportService()
    return _service
