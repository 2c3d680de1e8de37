"""
Catalog product and publication schemas.

The catalog owns these records; the import pipeline reads products and
appends publications.
"""

from pydantic import Field, field_validator
from typing import Any, Optional
from enum import Enum
from datetime import datetime

from models.base import BaseSchema


TRANSLATIONS_PREFIX = "translations_"


def translations_key(locale: str) -> str:
    """Attribute key holding one locale's translations ("fr-FR" -> "translations_fr_fr")."""
    return TRANSLATIONS_PREFIX + locale.replace("-", "_").lower()


class PublicationStatus(str, Enum):
    """Product publication status values."""
    PUBLISHED = "published"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class Product(BaseSchema):
    """
    Catalog product as stored in the products table.

    `attributes` is opaque to the pipeline apart from the top-level merge.
    Integration fields describe which attributes are fed by a live source.
    """

    id: str = Field(..., description="Product identifier")
    name: Optional[str] = Field(None, description="Display name")
    attributes: dict[str, Any] = Field(default_factory=dict)
    attribute_template_id: Optional[str] = None
    integration_product_id: Optional[str] = None
    attribute_mappings: Optional[dict[str, Any]] = None
    attribute_overrides: Optional[dict[str, bool]] = None

    @field_validator("id", "attribute_template_id", "integration_product_id", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Any:
        """Ids may be numeric in older tables."""
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("attributes", mode="before")
    @classmethod
    def default_attributes(cls, v: Any) -> Any:
        return v if v is not None else {}

    def synced_fields(self) -> set[str]:
        """
        Attribute keys currently fed by a linked integration.

        A key is synced when the product is linked to an integration product,
        the key has a mapping path, and it has not been locally overridden.
        """
        if not self.integration_product_id or not self.attribute_mappings:
            return set()
        overrides = self.attribute_overrides or {}
        return {
            key
            for key, path in self.attribute_mappings.items()
            if isinstance(path, str) and path and not overrides.get(key)
        }


class ProductPublication(BaseSchema):
    """One change set, either live already or waiting for its publish time."""

    id: Optional[str] = None
    product_id: str
    status: PublicationStatus
    published_at: Optional[datetime] = None
    publish_at: Optional[datetime] = None
    changes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "product_id", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)


class DuePublicationError(BaseSchema):
    """A scheduled publication that could not be applied."""
    publication_id: str
    product_id: str
    error: str


class DuePublicationsResult(BaseSchema):
    """Outcome of applying scheduled publications whose time has come."""
    applied_count: int = 0
    cancelled_count: int = 0
    errors: list[DuePublicationError] = Field(default_factory=list)
