"""
Attribute resolution and publication scheduling.

Decides whether an import row creates or updates a product, merges its
attributes over the existing ones, and either publishes the change now or
records it as a scheduled publication. Also applies scheduled
publications once their time has come.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional
import structlog

from models.product import (
    DuePublicationError,
    DuePublicationsResult,
    Product,
    PublicationStatus,
)
from services.catalog_service import CatalogGateway, CatalogService
from exceptions import AppError

logger = structlog.get_logger(__name__)


CREATED = "created"
UPDATED = "updated"


def merge_attributes(existing: Optional[dict[str, Any]], incoming: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow merge of incoming attributes over existing ones.

    Top-level keys only: a `translations_<locale>` map in `incoming`
    replaces the existing one for that locale as a whole.
    """
    return {**(existing or {}), **incoming}


@dataclass
class ResolutionOutcome:
    """What the resolver did for one row."""
    action: str
    product_id: str
    publication_status: PublicationStatus
    changes: dict[str, Any]
    effective_at: datetime
    skipped_fields: list[str] = field(default_factory=list)

    @property
    def created(self) -> bool:
        return self.action == CREATED


class PublicationService:
    """
    Resolver and publication scheduler.

    The default attribute template is handed in by the caller rather than
    looked up per product.
    """

    def __init__(
        self,
        catalog: Optional[CatalogGateway] = None,
        default_template_id: Optional[str] = None,
        protect_synced_fields: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog or CatalogService()
        self.default_template_id = default_template_id
        self.protect_synced_fields = protect_synced_fields
        self._now = clock or (lambda: datetime.now(timezone.utc))

    # ===================
    # RESOLUTION
    # ===================

    def resolve(
        self,
        identity: Optional[str],
        name: str,
        attributes: dict[str, Any],
        publish_at: Optional[datetime] = None,
    ) -> ResolutionOutcome:
        """
        Create or update a product from one row.

        Args:
            identity: Requested product id; unknown ids fall back to create
            name: Product name
            attributes: Candidate attribute map
            publish_at: Target publish instant; None publishes now

        Returns:
            ResolutionOutcome

        Raises:
            ResolutionFailure: Catalog rejected a read or write
            TimeoutFailure: Catalog call timed out
        """
        existing = self.catalog.find_product_by_identity(identity) if identity else None

        if existing is not None:
            return self._update(existing, name, attributes, publish_at)
        return self._create(name, attributes, publish_at)

    def _update(
        self,
        product: Product,
        name: str,
        attributes: dict[str, Any],
        publish_at: Optional[datetime],
    ) -> ResolutionOutcome:
        incoming = dict(attributes)
        skipped: list[str] = []

        if self.protect_synced_fields:
            synced = product.synced_fields()
            skipped = sorted(key for key in incoming if key in synced)
            for key in skipped:
                del incoming[key]
            if skipped:
                logger.info(
                    "synced_fields_skipped",
                    product_id=product.id,
                    fields=skipped
                )

        merged = merge_attributes(product.attributes, incoming)
        now = self._now()
        changes = {
            "name": name,
            "attributes": merged,
            "updated_at": now.isoformat(),
        }

        if publish_at is None:
            self.catalog.update_product_attributes(product.id, merged, name=name)
            self.catalog.append_publication(
                product.id, PublicationStatus.PUBLISHED, now, changes
            )
            logger.info("product_update_published", product_id=product.id)
            status, effective_at = PublicationStatus.PUBLISHED, now
        else:
            self.catalog.append_publication(
                product.id, PublicationStatus.SCHEDULED, publish_at, changes
            )
            logger.info(
                "product_update_scheduled",
                product_id=product.id,
                publish_at=publish_at.isoformat()
            )
            status, effective_at = PublicationStatus.SCHEDULED, publish_at

        return ResolutionOutcome(
            action=UPDATED,
            product_id=product.id,
            publication_status=status,
            changes=changes,
            effective_at=effective_at,
            skipped_fields=skipped,
        )

    def _create(
        self,
        name: str,
        attributes: dict[str, Any],
        publish_at: Optional[datetime],
    ) -> ResolutionOutcome:
        now = self._now()
        changes = {
            "name": name,
            "attributes": attributes,
            "updated_at": now.isoformat(),
        }

        if publish_at is None:
            product = self.catalog.create_product(name, attributes, self.default_template_id)
            self.catalog.append_publication(
                product.id, PublicationStatus.PUBLISHED, now, changes
            )
            status, effective_at = PublicationStatus.PUBLISHED, now
        else:
            # Attributes only go live with the scheduled publication
            product = self.catalog.create_product(name, {}, self.default_template_id)
            self.catalog.append_publication(
                product.id, PublicationStatus.SCHEDULED, publish_at, changes
            )
            status, effective_at = PublicationStatus.SCHEDULED, publish_at

        logger.info(
            "product_create_resolved",
            product_id=product.id,
            publication_status=status.value
        )
        return ResolutionOutcome(
            action=CREATED,
            product_id=product.id,
            publication_status=status,
            changes=changes,
            effective_at=effective_at,
        )

    # ===================
    # DUE PUBLICATIONS
    # ===================

    def apply_due_publications(self, now: Optional[datetime] = None) -> DuePublicationsResult:
        """
        Apply every scheduled publication whose publish_at has passed.

        The publication's name and attributes become the product's live
        values and the publication is marked published. Publications whose
        product is gone are cancelled. A failing publication is reported and
        the rest still run.
        """
        now = now or self._now()
        result = DuePublicationsResult()
        due = self.catalog.list_due_publications(now)

        logger.info("applying_due_publications", count=len(due))

        for publication in due:
            publication_id = publication.id or ""
            try:
                product = self.catalog.find_product_by_identity(publication.product_id)
                if product is None:
                    self.catalog.mark_publication(publication_id, PublicationStatus.CANCELLED)
                    result.cancelled_count += 1
                    result.errors.append(DuePublicationError(
                        publication_id=publication_id,
                        product_id=publication.product_id,
                        error="Product no longer exists",
                    ))
                    continue

                self.catalog.update_product_attributes(
                    product.id,
                    publication.changes.get("attributes"),
                    name=publication.changes.get("name"),
                )
                self.catalog.mark_publication(
                    publication_id, PublicationStatus.PUBLISHED, published_at=now
                )
                result.applied_count += 1

            except AppError as e:
                logger.error(
                    "due_publication_failed",
                    publication_id=publication_id,
                    product_id=publication.product_id,
                    error=e.message
                )
                result.errors.append(DuePublicationError(
                    publication_id=publication_id,
                    product_id=publication.product_id,
                    error=e.message,
                ))

        logger.info(
            "due_publications_applied",
            applied=result.applied_count,
            cancelled=result.cancelled_count,
            failed=len(result.errors) - result.cancelled_count
        )
        return result
