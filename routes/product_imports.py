"""
Product import API routes.

Upload a CSV/JSON catalog file, preview how it will be read, submit it as
an import job and poll the job while it runs in the background.
"""

from fastapi import APIRouter, BackgroundTasks, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Optional
import structlog

from config import get_admin_client, settings
from models.product import DuePublicationsResult
from models.product_import import (
    FileFormat,
    ImportJob,
    ImportJobListResponse,
    ImportPreviewResponse,
    ImportRowAudit,
    ImportSubmitResponse,
)
from parsers.import_decoder import DecodedRow, detect_file_format
from services.product_import_service import get_product_import_service
from services.catalog_service import CatalogService
from services.publication_service import PublicationService
from exceptions import AppError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# HELPERS
# ===================

async def _read_upload(file: UploadFile, file_format: Optional[FileFormat]) -> tuple[bytes, FileFormat]:
    """Read an upload, enforce the size limit and settle its format."""
    content = await file.read()

    if len(content) > settings.import_max_upload_bytes:
        raise ValidationError(
            message=f"File exceeds the {settings.import_max_upload_mb} MB upload limit",
            code="IMPORT_FILE_TOO_LARGE",
            details={"size": len(content), "max_bytes": settings.import_max_upload_bytes}
        )

    return content, file_format or detect_file_format(file.filename or "")


def _run_import(job: ImportJob, rows: list[DecodedRow]) -> None:
    """Background commit of a prepared job."""
    try:
        get_product_import_service().process_import(job, rows)
    except AppError as e:
        # Row failures are handled inside; this is a job-store failure
        logger.error(
            "import_processing_aborted",
            job_id=job.id,
            code=e.code,
            error=e.message
        )


# ===================
# ROUTES
# ===================

@router.post("/preview", response_model=ImportPreviewResponse)
async def preview_import(
    file: UploadFile = File(..., description="CSV or JSON catalog file"),
    file_format: Optional[FileFormat] = Form(None, description="Overrides detection by extension")
):
    """
    Preview an import file.

    Returns the inferred column mappings, detected translation locales and
    the first rows classified as valid / warning / error. Nothing is saved.
    """
    try:
        content, resolved_format = await _read_upload(file, file_format)

        logger.info(
            "import_preview_requested",
            filename=file.filename,
            file_format=resolved_format.value,
            size=len(content)
        )

        service = get_product_import_service()
        return service.preview_import(content, resolved_format)

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=ImportSubmitResponse, status_code=202)
async def submit_import(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="CSV or JSON catalog file"),
    import_name: str = Form(..., description="Name shown in the import history"),
    publication_mode: str = Form("immediate", description="immediate, scheduled or per_row"),
    scheduled_publish_at: Optional[datetime] = Form(None, description="Required for scheduled mode"),
    file_format: Optional[FileFormat] = Form(None, description="Overrides detection by extension")
):
    """
    Submit an import job.

    File-level problems are reported here. Rows are committed in the
    background; poll GET /{job_id} for progress.
    """
    try:
        content, resolved_format = await _read_upload(file, file_format)

        service = get_product_import_service()
        prepared = service.prepare_import(
            content,
            resolved_format,
            publication_mode,
            scheduled_publish_at,
            import_name,
            file_name=file.filename,
        )

        background_tasks.add_task(_run_import, prepared.job, prepared.rows)

        logger.info(
            "import_submitted",
            job_id=prepared.job.id,
            filename=file.filename,
            total_rows=prepared.job.total_rows
        )
        return ImportSubmitResponse(
            job_id=prepared.job.id,
            status=prepared.job.status,
            total_rows=prepared.job.total_rows,
        )

    except Exception as e:
        return handle_error(e)


@router.get("", response_model=ImportJobListResponse)
async def list_imports(
    limit: int = Query(20, ge=1, le=100, description="Number of jobs to return")
):
    """List recent import jobs, newest first."""
    try:
        jobs = get_product_import_service().list_imports(limit=limit)
        return ImportJobListResponse(data=jobs, total=len(jobs))

    except Exception as e:
        return handle_error(e)


@router.post("/publications/apply-due", response_model=DuePublicationsResult)
async def apply_due_publications():
    """
    Apply scheduled publications whose time has passed.

    Meant to be called by a scheduler.
    """
    try:
        service = get_product_import_service()
        admin_client = get_admin_client()
        catalog = CatalogService(admin_client) if admin_client is not None else service.catalog
        resolver = PublicationService(
            catalog,
            protect_synced_fields=service.protect_synced_fields,
        )
        return resolver.apply_due_publications()

    except Exception as e:
        return handle_error(e)


@router.get("/{job_id}", response_model=ImportJob)
async def get_import_status(job_id: str):
    """Get an import job with its counters and error log."""
    try:
        return get_product_import_service().get_import_status(job_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{job_id}/rows", response_model=list[ImportRowAudit])
async def get_import_rows(job_id: str):
    """Per-row audit trail of an import job."""
    try:
        return get_product_import_service().get_row_audits(job_id)

    except Exception as e:
        return handle_error(e)
