"""
Test data factories.

Uses factory pattern to generate consistent rows as they are stored in
the products, product_publications and product_imports tables.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4


class ProductFactory:
    """
    Factory for creating test product rows.

    Usage:
        # Create with defaults
        product = ProductFactory.create()

        # Create with overrides
        product = ProductFactory.create(name="Caesar Salad", attributes={"price": 12})

        # Product fed by an integration
        product = ProductFactory.create_synced(synced={"price": "pos.price"})
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        name: Optional[str] = None,
        attributes: Optional[dict[str, Any]] = None,
        attribute_template_id: Optional[str] = None,
        integration_product_id: Optional[str] = None,
        attribute_mappings: Optional[dict[str, Any]] = None,
        attribute_overrides: Optional[dict[str, bool]] = None,
    ) -> dict:
        """
        Create a single product dict.

        Args:
            id: Product id (auto-generated if not provided)
            name: Display name (auto-generated if not provided)
            attributes: Attribute map
            attribute_template_id: Attribute template
            integration_product_id: Linked integration product
            attribute_mappings: Attribute key -> integration path
            attribute_overrides: Attribute key -> locally overridden

        Returns:
            Product dict matching database schema
        """
        counter = cls._next_counter()
        now = datetime.now(timezone.utc).isoformat()

        return {
            "id": id or str(uuid4()),
            "name": name or f"Test Product {counter}",
            "attributes": attributes if attributes is not None else {},
            "attribute_template_id": attribute_template_id,
            "integration_product_id": integration_product_id,
            "attribute_mappings": attribute_mappings,
            "attribute_overrides": attribute_overrides,
            "created_at": now,
            "updated_at": now,
        }

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list:
        return [cls.create(**overrides) for _ in range(count)]

    @classmethod
    def create_synced(
        cls,
        synced: dict[str, str],
        overrides: Optional[dict[str, bool]] = None,
        **kwargs
    ) -> dict:
        """Create a product linked to an integration."""
        return cls.create(
            integration_product_id=kwargs.pop("integration_product_id", "pos-1"),
            attribute_mappings=synced,
            attribute_overrides=overrides,
            **kwargs
        )

    @classmethod
    def reset_counter(cls):
        cls._counter = 0


class PublicationFactory:
    """Factory for product_publications rows."""

    @classmethod
    def create_scheduled(
        cls,
        product_id: str,
        publish_at: datetime,
        name: str = "Scheduled Name",
        attributes: Optional[dict[str, Any]] = None,
        id: Optional[str] = None,
    ) -> dict:
        return {
            "id": id or str(uuid4()),
            "product_id": product_id,
            "status": "scheduled",
            "publish_at": publish_at.isoformat(),
            "published_at": None,
            "changes": {
                "name": name,
                "attributes": attributes if attributes is not None else {},
                "updated_at": publish_at.isoformat(),
            },
        }


class ImportJobFactory:
    """Factory for product_imports rows."""

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        import_name: str = "Spring menu",
        file_format: str = "csv",
        publication_mode: str = "immediate",
        status: str = "pending",
        total_rows: int = 0,
        mappings: Optional[list[dict]] = None,
        **overrides
    ) -> dict:
        row = {
            "id": id or str(uuid4()),
            "import_name": import_name,
            "file_format": file_format,
            "publication_mode": publication_mode,
            "scheduled_publish_at": None,
            "column_mapping": {"mappings": mappings or []},
            "translation_locales": [],
            "total_rows": total_rows,
            "status": status,
            "processed_rows": 0,
            "failed_rows": 0,
            "products_created": 0,
            "products_updated": 0,
            "error_log": [],
            "metadata": {},
            "created_at": datetime.now(timezone.utc).isoformat(),
            "completed_at": None,
        }
        row.update(overrides)
        return row
