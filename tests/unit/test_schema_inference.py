"""
Unit tests for column mapping inference.

Run: pytest tests/unit/test_schema_inference.py -v
"""

import pytest

from parsers.schema_inference import (
    apply_mappings,
    coerce_value,
    infer_column_mappings,
    normalize_locale,
)
from models.product_import import FieldType, FileFormat
from exceptions import FormatError


def _by_source(inference):
    return {mapping.source_key: mapping for mapping in inference.mappings}


class TestTranslationDetection:
    """Tests for locale-suffixed keys."""

    @pytest.mark.parametrize("key", ["description_fr_FR", "description_fr-FR", "description-fr-fr"])
    def test_separator_variants_map_to_same_locale(self, key):
        mapping = infer_column_mappings([key], FileFormat.CSV).mappings[0]

        assert mapping.is_translation is True
        assert mapping.target_field == "description"
        assert mapping.locale == "fr-FR"
        assert mapping.attribute_key == "translations_fr_fr"

    def test_unsupported_locale_is_a_plain_field(self):
        mapping = infer_column_mappings(["name_en-US"], FileFormat.CSV).mappings[0]

        assert mapping.is_translation is False
        assert mapping.target_field == "name_en-us"

    def test_detected_locales_in_first_seen_order(self):
        inference = infer_column_mappings(
            ["name", "name_de-DE", "description_fr-FR", "description_de_de"],
            FileFormat.CSV,
        )

        assert inference.detected_locales == ["de-DE", "fr-FR"]

    def test_translation_columns_are_text_for_csv(self):
        mapping = infer_column_mappings(["price_es-ES"], FileFormat.CSV).mappings[0]

        assert mapping.field_type == FieldType.TEXT

    @pytest.mark.parametrize("raw,expected", [("fr_fr", "fr-FR"), ("FR-fr", "fr-FR"), ("pt_PT", "pt-PT")])
    def test_normalize_locale(self, raw, expected):
        assert normalize_locale(raw) == expected


class TestCsvMappings:
    """Tests for delimited headers."""

    def test_field_names_normalized(self):
        inference = infer_column_mappings(["Product  Name", "Unit Cost"], FileFormat.CSV)

        assert [m.target_field for m in inference.mappings] == ["product_name", "unit_cost"]

    @pytest.mark.parametrize("key,expected", [
        ("price", FieldType.NUMBER),
        ("calories", FieldType.NUMBER),
        ("publication_date", FieldType.DATE),
        ("prep_time", FieldType.DATE),
        ("is_active", FieldType.BOOLEAN),
        ("enabled", FieldType.BOOLEAN),
        ("image_url", FieldType.IMAGE),
        ("photo", FieldType.IMAGE),
        ("description", FieldType.TEXT),
    ])
    def test_type_keywords(self, key, expected):
        assert infer_column_mappings([key], FileFormat.CSV).mappings[0].field_type == expected

    def test_mappings_keep_source_order(self):
        keys = ["name", "price", "description_fr-FR"]

        inference = infer_column_mappings(keys, FileFormat.CSV)

        assert [m.source_key for m in inference.mappings] == keys

    def test_duplicate_target_raises_format_error(self):
        with pytest.raises(FormatError) as exc_info:
            infer_column_mappings(["Name", "name"], FileFormat.CSV)

        assert exc_info.value.details["field"] == "name"

    def test_duplicate_translation_slot_raises_format_error(self):
        with pytest.raises(FormatError):
            infer_column_mappings(["description_fr-FR", "description_fr_FR"], FileFormat.CSV)

    def test_same_field_different_locales_is_fine(self):
        inference = infer_column_mappings(
            ["description", "description_fr-FR", "description_es-ES"], FileFormat.CSV
        )

        assert len(inference.mappings) == 3

    def test_inference_is_deterministic(self):
        keys = ["Name", "price", "description_it_IT"]

        assert infer_column_mappings(keys, FileFormat.CSV) == infer_column_mappings(keys, FileFormat.CSV)


class TestJsonMappings:
    """Tests for structured keys."""

    def test_types_from_first_record(self):
        sample = {"name": "Soup", "price": 8, "weight": 0.5, "vegan": True, "tags": ["hot"]}

        inference = infer_column_mappings(list(sample), FileFormat.JSON, sample)
        types = {m.source_key: m.field_type for m in inference.mappings}

        assert types == {
            "name": FieldType.TEXT,
            "price": FieldType.NUMBER,
            "weight": FieldType.NUMBER,
            "vegan": FieldType.BOOLEAN,
            "tags": FieldType.TEXT,
        }

    def test_keys_kept_verbatim(self):
        inference = infer_column_mappings(["Product Name"], FileFormat.JSON, {"Product Name": "x"})

        assert inference.mappings[0].target_field == "Product Name"

    def test_translation_keys_detected(self):
        sample = {"description_fr-FR": "Salade"}

        mapping = infer_column_mappings(list(sample), FileFormat.JSON, sample).mappings[0]

        assert mapping.is_translation is True
        assert mapping.locale == "fr-FR"


class TestCoerceValue:
    """Tests for coerce_value()"""

    @pytest.mark.parametrize("value,field_type,expected", [
        ("12", FieldType.NUMBER, 12),
        ("12.5", FieldType.NUMBER, 12.5),
        ("twelve", FieldType.NUMBER, "twelve"),
        ("yes", FieldType.BOOLEAN, True),
        ("0", FieldType.BOOLEAN, False),
        ("maybe", FieldType.BOOLEAN, "maybe"),
        ("", FieldType.NUMBER, ""),
        ("12", FieldType.TEXT, "12"),
    ])
    def test_coercion(self, value, field_type, expected):
        assert coerce_value(value, field_type) == expected


class TestApplyMappings:
    """Tests for apply_mappings()"""

    def test_translations_nested_by_locale(self):
        data = {
            "name": "Caesar Salad",
            "name_fr-FR": "Salade César",
            "description_fr-FR": "Fraîche",
            "description_es-ES": "Fresca",
        }
        mappings = infer_column_mappings(list(data), FileFormat.CSV).mappings

        attributes = apply_mappings(data, mappings)

        assert attributes == {
            "name": "Caesar Salad",
            "translations_fr_fr": {"name": "Salade César", "description": "Fraîche"},
            "translations_es_es": {"description": "Fresca"},
        }

    def test_missing_keys_left_out(self):
        sample = {"name": "Soup", "price": 8}
        mappings = infer_column_mappings(list(sample), FileFormat.JSON, sample).mappings

        assert apply_mappings({"name": "Bread"}, mappings) == {"name": "Bread"}

    def test_coerce_converts_mapped_types(self):
        data = {"price": "8.5", "is_active": "true", "name": "Soup"}
        mappings = infer_column_mappings(list(data), FileFormat.CSV).mappings

        attributes = apply_mappings(data, mappings, coerce=True)

        assert attributes == {"price": 8.5, "is_active": True, "name": "Soup"}

    def test_source_key_renamed_to_target(self):
        data = {"Unit Price": "3"}
        mappings = infer_column_mappings(list(data), FileFormat.CSV).mappings

        assert apply_mappings(data, mappings) == {"unit_price": "3"}
