"""
Business logic services.

Each service handles one stage of the product import pipeline.
"""

from services.catalog_service import CatalogGateway, CatalogService
from services.import_job_service import ImportJobService
from services.row_validation_service import (
    RowValidation,
    validate_row,
    classify_rows,
    parse_publication_date,
)
from services.publication_service import (
    PublicationService,
    ResolutionOutcome,
    merge_attributes,
)
from services.product_import_service import (
    ProductImportService,
    PreparedImport,
    get_product_import_service,
    preview_import,
)

__all__ = [
    "CatalogGateway",
    "CatalogService",
    "ImportJobService",
    "RowValidation",
    "validate_row",
    "classify_rows",
    "parse_publication_date",
    "PublicationService",
    "ResolutionOutcome",
    "merge_attributes",
    "ProductImportService",
    "PreparedImport",
    "get_product_import_service",
    "preview_import",
]
