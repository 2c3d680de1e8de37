"""
Row validation for product imports.

Classifies a raw record as valid / warning / error and pulls out the
identity and publication-date hint the commit stage needs. Used both for
the preview and, unchanged, during commit so that messages and row numbers
line up between the two.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional
import structlog

import pandas as pd

from models.product_import import (
    ColumnMapping,
    ImportPreviewRow,
    RowStatus,
)
from parsers.import_decoder import DecodedRow

logger = structlog.get_logger(__name__)


NAME_FIELDS = ("name", "product_name")
IDENTITY_FIELDS = ("id", "product_id")
PUBLICATION_DATE_FIELDS = ("publication_date", "publish_at")

# Row metadata: drives identity, naming and timing, never stored as attributes
RESERVED_FIELDS = NAME_FIELDS + IDENTITY_FIELDS + PUBLICATION_DATE_FIELDS

MISSING_NAME_MESSAGE = "Missing product name"
NO_IDENTITY_MESSAGE = "No product ID - will create new product"
INVALID_PUBLICATION_DATE_MESSAGE = "Invalid publication date format"
READY_MESSAGE = "Ready to import"


@dataclass
class RowValidation:
    """Classification and messages for one row."""
    status: RowStatus
    messages: list[str] = field(default_factory=list)


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def lookup_field(
    data: dict[str, Any],
    fields: Iterable[str],
    mappings: Optional[list[ColumnMapping]] = None,
) -> Any:
    """
    First non-blank value for any of `fields`.

    A field is found either under its own raw key or under a source key
    whose (non-translation) mapping targets it, e.g. a "Name" header.
    """
    for name in fields:
        if _is_present(data.get(name)):
            return data[name]
        for mapping in mappings or []:
            if mapping.is_translation or mapping.target_field != name:
                continue
            if _is_present(data.get(mapping.source_key)):
                return data[mapping.source_key]
    return None


def extract_name(data: dict[str, Any], mappings: Optional[list[ColumnMapping]] = None) -> Optional[str]:
    value = lookup_field(data, NAME_FIELDS, mappings)
    return str(value).strip() if value is not None else None


def extract_identity(data: dict[str, Any], mappings: Optional[list[ColumnMapping]] = None) -> Optional[str]:
    """Explicit product identity of a row, or None for the create path."""
    value = lookup_field(data, IDENTITY_FIELDS, mappings)
    return str(value).strip() if value is not None else None


def extract_publication_hint(
    data: dict[str, Any],
    mappings: Optional[list[ColumnMapping]] = None,
) -> Optional[str]:
    """Raw per-row publication date, unparsed."""
    value = lookup_field(data, PUBLICATION_DATE_FIELDS, mappings)
    return str(value).strip() if value is not None else None


def parse_publication_date(value: Any) -> datetime:
    """
    Parse a publication date leniently.

    Accepts anything pandas recognises as a calendar date/time.

    Raises:
        ValueError: If the value is blank or not a date
    """
    if isinstance(value, datetime):
        return value
    if not _is_present(value):
        raise ValueError("Publication date is empty")
    try:
        parsed = pd.to_datetime(value)
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Unparseable publication date: {value}") from e
    if pd.isna(parsed):
        raise ValueError(f"Unparseable publication date: {value}")
    return parsed.to_pydatetime()


def validate_row(
    data: dict[str, Any],
    mappings: Optional[list[ColumnMapping]] = None,
) -> RowValidation:
    """
    Apply the import row rules.

    Rules, in order:
        1. No name / product_name  -> error
        2. No id / product_id      -> warning (row will create a product)
        3. Unparseable publication_date / publish_at -> warning
    Any error makes the row an error regardless of warnings.

    Returns:
        RowValidation with status and messages
    """
    messages: list[str] = []
    has_error = False
    has_warning = False

    if extract_name(data, mappings) is None:
        messages.append(MISSING_NAME_MESSAGE)
        has_error = True

    if extract_identity(data, mappings) is None:
        messages.append(NO_IDENTITY_MESSAGE)
        has_warning = True

    hint = extract_publication_hint(data, mappings)
    if hint is not None:
        try:
            parse_publication_date(hint)
        except ValueError:
            messages.append(INVALID_PUBLICATION_DATE_MESSAGE)
            has_warning = True

    if has_error:
        return RowValidation(status=RowStatus.ERROR, messages=messages)
    if has_warning:
        return RowValidation(status=RowStatus.WARNING, messages=messages)
    return RowValidation(status=RowStatus.VALID, messages=[READY_MESSAGE])


def classify_rows(
    rows: list[DecodedRow],
    mappings: Optional[list[ColumnMapping]] = None,
    limit: Optional[int] = None,
) -> list[ImportPreviewRow]:
    """
    Validate rows for the preview.

    Args:
        rows: Decoded rows in file order
        mappings: Column mappings of the file
        limit: Only classify the first `limit` rows

    Returns:
        Preview rows keeping the decoder's row numbers
    """
    selected = rows if limit is None else rows[:limit]
    preview: list[ImportPreviewRow] = []

    for row in selected:
        validation = validate_row(row.data, mappings)
        preview.append(
            ImportPreviewRow(
                row_number=row.row_number,
                data=row.data,
                status=validation.status,
                messages=validation.messages,
                product_id=extract_identity(row.data, mappings),
                publication_date=extract_publication_hint(row.data, mappings),
            )
        )

    logger.debug("import_rows_classified", rows=len(preview))
    return preview
