"""
Catalog gateway used by the import pipeline.

Reads and writes products, product publications and organization
settings through Supabase. Every call is bounded by the client timeout;
timeouts surface as TimeoutFailure and other rejections as
ResolutionFailure so the orchestrator can record them per row.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Protocol
import structlog

import httpx
from postgrest.exceptions import APIError

from config import get_supabase_client, settings
from models.product import Product, ProductPublication, PublicationStatus
from exceptions import ResolutionFailure, TimeoutFailure

logger = structlog.get_logger(__name__)


# Postgres "invalid input syntax" - e.g. a non-UUID identity against a uuid column
INVALID_IDENTIFIER_CODE = "22P02"


class CatalogGateway(Protocol):
    """What the resolver needs from the catalog."""

    def find_product_by_identity(self, identity: str) -> Optional[Product]: ...

    def create_product(
        self, name: str, attributes: dict[str, Any], template_id: Optional[str]
    ) -> Product: ...

    def update_product_attributes(
        self, product_id: str, attributes: Optional[dict[str, Any]], name: Optional[str] = None
    ) -> None: ...

    def append_publication(
        self,
        product_id: str,
        status: PublicationStatus,
        effective_at: datetime,
        changes: dict[str, Any],
    ) -> ProductPublication: ...

    def get_default_attribute_template_id(self) -> Optional[str]: ...


class CatalogService:
    """
    Supabase-backed catalog.

    Handles product lookup/creation, attribute writes and publication
    records.
    """

    def __init__(self, client=None):
        self.db = client or get_supabase_client()
        self.products_table = "products"
        self.publications_table = "product_publications"
        self.settings_table = "organization_settings"

    def _execute(self, operation: str, query, missing_ok_codes: tuple[str, ...] = ()):
        """Run a query, translating client failures into catalog errors."""
        try:
            return query.execute()
        except httpx.TimeoutException as e:
            logger.error(
                "catalog_timeout",
                operation=operation,
                timeout_seconds=settings.catalog_timeout_seconds,
                error=str(e)
            )
            raise TimeoutFailure(operation, settings.catalog_timeout_seconds) from e
        except APIError as e:
            if e.code in missing_ok_codes:
                logger.debug("catalog_lookup_not_resolvable", operation=operation, code=e.code)
                return None
            logger.error(
                "catalog_operation_failed",
                operation=operation,
                code=e.code,
                error=e.message
            )
            raise ResolutionFailure(operation, f"Catalog {operation} failed: {e.message}") from e
        except Exception as e:
            logger.error(
                "catalog_operation_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__
            )
            raise ResolutionFailure(operation, f"Catalog {operation} failed: {e}") from e

    # ===================
    # PRODUCTS
    # ===================

    def find_product_by_identity(self, identity: str) -> Optional[Product]:
        """
        Look up a product by id.

        Returns:
            Product, or None when no product has this identity (including
            identities that are not even valid ids)
        """
        logger.debug("finding_product", identity=identity)

        result = self._execute(
            "find_product",
            self.db.table(self.products_table)
            .select("*")
            .eq("id", identity)
            .limit(1),
            missing_ok_codes=(INVALID_IDENTIFIER_CODE,)
        )
        if result is None or not result.data:
            return None
        return Product(**result.data[0])

    def create_product(
        self,
        name: str,
        attributes: dict[str, Any],
        template_id: Optional[str],
    ) -> Product:
        """Insert a product and return it with its new id."""
        result = self._execute(
            "create_product",
            self.db.table(self.products_table).insert({
                "name": name,
                "attributes": attributes,
                "attribute_template_id": template_id,
            })
        )
        if not result.data:
            raise ResolutionFailure("create_product", "Catalog create_product returned no product")

        product = Product(**result.data[0])
        logger.info(
            "product_created",
            product_id=product.id,
            attribute_count=len(attributes)
        )
        return product

    def update_product_attributes(
        self,
        product_id: str,
        attributes: Optional[dict[str, Any]],
        name: Optional[str] = None,
    ) -> None:
        """Overwrite a product's live attributes (and name, when given)."""
        payload: dict[str, Any] = {"updated_at": datetime.now(timezone.utc).isoformat()}
        if attributes is not None:
            payload["attributes"] = attributes
        if name is not None:
            payload["name"] = name

        self._execute(
            "update_product",
            self.db.table(self.products_table)
            .update(payload)
            .eq("id", product_id)
        )
        logger.info("product_attributes_updated", product_id=product_id)

    # ===================
    # PUBLICATIONS
    # ===================

    def append_publication(
        self,
        product_id: str,
        status: PublicationStatus,
        effective_at: datetime,
        changes: dict[str, Any],
    ) -> ProductPublication:
        """
        Record a publication.

        `effective_at` is stored as published_at for published entries and
        publish_at for scheduled ones.
        """
        timestamp_column = (
            "published_at" if status == PublicationStatus.PUBLISHED else "publish_at"
        )
        result = self._execute(
            "append_publication",
            self.db.table(self.publications_table).insert({
                "product_id": product_id,
                "status": status.value,
                timestamp_column: effective_at.isoformat(),
                "changes": changes,
            })
        )
        row = result.data[0] if result.data else {
            "product_id": product_id,
            "status": status.value,
            timestamp_column: effective_at,
            "changes": changes,
        }
        return ProductPublication(**row)

    def list_due_publications(self, now: datetime) -> list[ProductPublication]:
        """Scheduled publications whose publish_at has passed."""
        result = self._execute(
            "list_due_publications",
            self.db.table(self.publications_table)
            .select("*")
            .eq("status", PublicationStatus.SCHEDULED.value)
            .lte("publish_at", now.isoformat())
            .order("publish_at")
        )
        return [ProductPublication(**row) for row in result.data or []]

    def mark_publication(
        self,
        publication_id: str,
        status: PublicationStatus,
        published_at: Optional[datetime] = None,
    ) -> None:
        payload: dict[str, Any] = {
            "status": status.value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if published_at is not None:
            payload["published_at"] = published_at.isoformat()

        self._execute(
            "mark_publication",
            self.db.table(self.publications_table)
            .update(payload)
            .eq("id", publication_id)
        )

    # ===================
    # SETTINGS
    # ===================

    def get_default_attribute_template_id(self) -> Optional[str]:
        """Organization-wide attribute template for new products, if any."""
        result = self._execute(
            "get_default_template",
            self.db.table(self.settings_table)
            .select("default_product_attribute_template_id")
            .limit(1)
        )
        if not result.data:
            return None
        template_id = result.data[0].get("default_product_attribute_template_id")
        return str(template_id) if template_id is not None else None
