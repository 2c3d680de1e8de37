"""
Import file parsers module.
"""

from parsers.import_decoder import (
    decode_import_file,
    detect_file_format,
    DecodedFile,
    DecodedRow,
)
from parsers.schema_inference import (
    infer_column_mappings,
    apply_mappings,
    coerce_value,
    SchemaInference,
    TRANSLATION_LOCALES,
)

__all__ = [
    "decode_import_file",
    "detect_file_format",
    "DecodedFile",
    "DecodedRow",
    "infer_column_mappings",
    "apply_mappings",
    "coerce_value",
    "SchemaInference",
    "TRANSLATION_LOCALES",
]
