"""
Column mapping inference for import files.

Derives one ColumnMapping per source key: target attribute, value type,
and whether the key is a localized translation (e.g. "description_fr-FR").
Inference depends only on the key list (plus, for JSON, the first
record's native value types), never on the rest of the data.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional
import structlog

from exceptions import FormatError
from models.product_import import ColumnMapping, FieldType, FileFormat

logger = structlog.get_logger(__name__)


TRANSLATION_LOCALES = ("fr-FR", "es-ES", "de-DE", "it-IT", "pt-PT")

_LOCALE_ALTERNATIVES = "|".join(
    "{}[-_]{}".format(*locale.split("-")) for locale in TRANSLATION_LOCALES
)
TRANSLATION_PATTERN = re.compile(
    rf"^(?P<field>.+)[_-](?P<locale>{_LOCALE_ALTERNATIVES})$",
    re.IGNORECASE,
)

# Checked in order; first keyword hit wins
TYPE_KEYWORDS: tuple[tuple[FieldType, tuple[str, ...]], ...] = (
    (FieldType.NUMBER, ("price", "calorie", "cost")),
    (FieldType.DATE, ("date", "time")),
    (FieldType.BOOLEAN, ("active", "enabled", "is_")),
    (FieldType.IMAGE, ("image", "photo", "url")),
)

TRUE_VALUES = {"true", "yes", "y", "1"}
FALSE_VALUES = {"false", "no", "n", "0"}


@dataclass
class SchemaInference:
    """Mappings for every key, plus the translation locales seen."""
    mappings: list[ColumnMapping] = field(default_factory=list)
    detected_locales: list[str] = field(default_factory=list)


def normalize_locale(locale: str) -> str:
    """"fr_fr" / "FR-fr" -> "fr-FR"."""
    language, region = re.split(r"[-_]", locale, maxsplit=1)
    return f"{language.lower()}-{region.upper()}"


def normalize_field_name(key: str, file_format: FileFormat) -> str:
    """Delimited headers are lower-cased with whitespace runs as "_"; JSON keys stay verbatim."""
    if file_format == FileFormat.CSV:
        return re.sub(r"\s+", "_", key.strip().lower())
    return key


def infer_field_type(key: str) -> FieldType:
    """Guess a delimited column's value type from its header."""
    name = key.lower()
    for field_type, keywords in TYPE_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return field_type
    return FieldType.TEXT


def native_field_type(value: Any) -> FieldType:
    """Value type of a JSON scalar."""
    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, (int, float)):
        return FieldType.NUMBER
    return FieldType.TEXT


def infer_column_mappings(
    keys: list[str],
    file_format: FileFormat,
    sample: Optional[dict[str, Any]] = None,
) -> SchemaInference:
    """
    Build the column mappings for an import.

    Args:
        keys: Source keys in file order
        file_format: CSV or JSON
        sample: First record, used for JSON value types

    Returns:
        SchemaInference with mappings in key order and locales in
        first-seen order

    Raises:
        FormatError: If two keys map onto the same field and locale
    """
    sample = sample or {}
    result = SchemaInference()
    claimed: dict[tuple[str, Optional[str]], str] = {}

    for key in keys:
        mapping = _map_key(key, file_format, sample)

        slot = (mapping.target_field, mapping.locale)
        if slot in claimed:
            raise FormatError(
                message=(
                    f"Columns '{claimed[slot]}' and '{key}' both map to field "
                    f"'{mapping.target_field}'"
                ),
                details={"field": mapping.target_field, "locale": mapping.locale}
            )
        claimed[slot] = key

        if mapping.is_translation and mapping.locale not in result.detected_locales:
            result.detected_locales.append(mapping.locale)
        result.mappings.append(mapping)

    logger.debug(
        "column_mappings_inferred",
        columns=len(result.mappings),
        locales=result.detected_locales
    )
    return result


def _map_key(key: str, file_format: FileFormat, sample: dict[str, Any]) -> ColumnMapping:
    match = TRANSLATION_PATTERN.match(key)
    if file_format == FileFormat.JSON:
        field_type = native_field_type(sample.get(key))
    elif match:
        field_type = FieldType.TEXT
    else:
        field_type = infer_field_type(key)

    if match:
        return ColumnMapping(
            source_key=key,
            target_field=normalize_field_name(match.group("field"), file_format),
            field_type=field_type,
            is_translation=True,
            locale=normalize_locale(match.group("locale")),
        )
    return ColumnMapping(
        source_key=key,
        target_field=normalize_field_name(key, file_format),
        field_type=field_type,
    )


# ===================
# APPLYING MAPPINGS
# ===================

def coerce_value(value: Any, field_type: FieldType) -> Any:
    """
    Convert a delimited string to its mapped type.

    Values that don't parse cleanly are returned unchanged.
    """
    if not isinstance(value, str) or not value.strip():
        return value
    text = value.strip()

    if field_type == FieldType.NUMBER:
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return value

    if field_type == FieldType.BOOLEAN:
        lowered = text.lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False

    return value


def apply_mappings(
    data: dict[str, Any],
    mappings: list[ColumnMapping],
    coerce: bool = False,
) -> dict[str, Any]:
    """
    Turn a raw record into a catalog attribute map.

    Base fields land at the top level; translation fields are nested
    under their `translations_<locale>` key. Keys missing from the
    record are left out.
    """
    attributes: dict[str, Any] = {}
    translations: dict[str, dict[str, Any]] = {}

    for mapping in mappings:
        if mapping.source_key not in data:
            continue
        value = data[mapping.source_key]
        if coerce:
            value = coerce_value(value, mapping.field_type)

        if mapping.is_translation:
            translations.setdefault(mapping.attribute_key, {})[mapping.target_field] = value
        else:
            attributes[mapping.target_field] = value

    return {**attributes, **translations}
