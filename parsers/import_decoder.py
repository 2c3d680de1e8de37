"""
Import file decoder.

Turns uploaded bytes into ordered, numbered flat records plus the list of
keys found in the file. Delimited text goes through pandas; structured
objects through the json module.

Row numbers are what operators see in the preview and in the audit trail:
delimited rows start at 2 (row 1 is the header) and count records, so a
blank line takes no number and a quoted multi-line value is one row;
structured rows start at 1.
"""

import json
from dataclasses import dataclass, field
from io import StringIO
from pathlib import PurePath
from typing import Any, Union
import structlog

import pandas as pd

from exceptions import FormatError
from models.product_import import FileFormat

logger = structlog.get_logger(__name__)


CSV_FIRST_ROW_NUMBER = 2
JSON_FIRST_ROW_NUMBER = 1

EXTENSION_FORMATS = {
    ".csv": FileFormat.CSV,
    ".json": FileFormat.JSON,
    ".xlsx": FileFormat.EXCEL,
    ".xls": FileFormat.EXCEL,
}


@dataclass
class DecodedRow:
    """One record from the file with its operator-visible row number."""
    row_number: int
    data: dict[str, Any]


@dataclass
class DecodedFile:
    """Result of decoding an import file."""
    file_format: FileFormat
    keys: list[str]
    rows: list[DecodedRow] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def first_record(self) -> dict[str, Any]:
        return self.rows[0].data if self.rows else {}


def detect_file_format(filename: str) -> FileFormat:
    """
    Guess the declared format from an upload's file name.

    Raises:
        FormatError: If the extension is not one we recognise
    """
    suffix = PurePath(filename or "").suffix.lower()
    if suffix not in EXTENSION_FORMATS:
        raise FormatError(
            message="Unsupported file format. Please upload CSV or JSON files.",
            details={"filename": filename}
        )
    return EXTENSION_FORMATS[suffix]


def decode_import_file(content: bytes, file_format: Union[FileFormat, str]) -> DecodedFile:
    """
    Decode raw import bytes.

    Args:
        content: Uploaded file bytes
        file_format: Declared format ("csv", "json"); "excel" is rejected

    Returns:
        DecodedFile with keys and numbered rows

    Raises:
        FormatError: Empty, unreadable, or unsupported input
    """
    fmt = _coerce_format(file_format)

    if fmt == FileFormat.EXCEL:
        raise FormatError(
            message="Excel files are not supported. Please export the sheet to CSV.",
            details={"file_format": fmt.value}
        )

    if not content or not content.strip():
        raise FormatError(message="Import file is empty")

    text = _decode_text(content)

    if fmt == FileFormat.CSV:
        decoded = _decode_csv(text)
    else:
        decoded = _decode_json(text)

    logger.info(
        "import_file_decoded",
        file_format=fmt.value,
        rows=decoded.total_rows,
        columns=len(decoded.keys)
    )
    return decoded


def _coerce_format(file_format: Union[FileFormat, str]) -> FileFormat:
    if isinstance(file_format, FileFormat):
        return file_format
    try:
        return FileFormat(str(file_format).strip().lower())
    except ValueError:
        raise FormatError(
            message=f"Unsupported file format: {file_format}",
            details={"supported": [FileFormat.CSV.value, FileFormat.JSON.value]}
        )


def _decode_text(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FormatError(
            message="File is not valid UTF-8 text",
            details={"original_error": str(e)}
        )


# ===================
# DELIMITED TEXT
# ===================

def _decode_csv(text: str) -> DecodedFile:
    width = _header_width(text)
    # Values beyond the header have no key to land on
    records = _read_delimited(
        text,
        names=list(range(width)),
        on_bad_lines=lambda fields: fields[:width],
    )

    if len(records) < 2:
        raise FormatError(
            message="File must contain at least a header row and one data row.",
            details={"records": len(records)}
        )

    # Raw header cells: duplicates reach the mapping collision check as-is
    keys = [_clean_cell(cell) for cell in records[0]]
    # pandas already dropped blank lines, so numbering stays dense
    rows = [
        DecodedRow(
            row_number=offset + CSV_FIRST_ROW_NUMBER,
            data={key: _clean_cell(value) for key, value in zip(keys, record)},
        )
        for offset, record in enumerate(records[1:])
    ]
    return DecodedFile(file_format=FileFormat.CSV, keys=keys, rows=rows)


def _header_width(text: str) -> int:
    header = _read_delimited(text, nrows=1)
    if not header:
        raise FormatError(message="Import file has no header row")
    return len(header[0])


def _read_delimited(text: str, **options) -> list[list[str]]:
    """Read every record as raw strings, header row included."""
    try:
        frame = pd.read_csv(
            StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
            engine="python",
            **options
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error("csv_read_failed", error=str(e))
        raise FormatError(
            message="Failed to read delimited file",
            details={"original_error": str(e)}
        )
    return frame.fillna("").values.tolist()


def _clean_cell(value: Any) -> str:
    # pandas has already removed the surrounding quote pair
    return str(value).strip()


# ===================
# STRUCTURED OBJECTS
# ===================

def _decode_json(text: str) -> DecodedFile:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(
            message="Invalid JSON format.",
            details={"original_error": str(e)}
        )

    records = payload if isinstance(payload, list) else [payload]
    if not records:
        raise FormatError(message="JSON file is empty.")

    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise FormatError(
                message="Expected a list of objects.",
                details={"index": index, "type": type(record).__name__}
            )

    rows = [
        DecodedRow(row_number=index + JSON_FIRST_ROW_NUMBER, data=dict(record))
        for index, record in enumerate(records)
    ]
    return DecodedFile(file_format=FileFormat.JSON, keys=list(records[0].keys()), rows=rows)
