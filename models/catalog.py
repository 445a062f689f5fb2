"""
Catalog schemas.

ReconciliationRecord is the single canonical shape every source is
normalized into. LocalCatalogEntry mirrors a row of imported_products and
RemoteCatalogEntry a live product on the commerce platform.
"""

from pydantic import Field
from typing import Any, Optional
from decimal import Decimal

from models.base import BaseSchema, TimestampMixin
from models.markup import MarkupType


class CanonicalVariant(BaseSchema):
    """Variant-level fields of a canonical record."""

    price: Optional[Decimal] = Field(None, description="Selling price")
    compare_at_price: Optional[Decimal] = Field(None, description="Compare-at price")
    sku: Optional[str] = Field(None, description="Stock keeping unit")
    barcode: Optional[str] = Field(None, description="Barcode / GTIN")
    inventory_quantity: Optional[int] = Field(None, description="On-hand quantity")
    image_url: Optional[str] = Field(None, description="Primary image URL")


class ReconciliationRecord(BaseSchema):
    """A source record after mapping, ready for markup and reconciliation."""

    title: Optional[str] = Field(None, description="Product title")
    description: Optional[str] = Field(None, description="Body HTML")
    vendor: Optional[str] = Field(None, description="Vendor")
    product_type: Optional[str] = Field(None, description="Product type")
    tags: list[str] = Field(default_factory=list, description="Product tags")
    variant: CanonicalVariant = Field(default_factory=CanonicalVariant)
    attributes: dict[str, Any] = Field(
        default_factory=dict,
        description="Source attributes, readable by markup conditions"
    )

    # Markup audit
    markup_applied: bool = Field(default=False)
    markup_type: Optional[MarkupType] = Field(None)
    markup_value: Optional[Decimal] = Field(None)

    @property
    def label(self) -> str:
        """Human-readable identity for progress display and logs."""
        return self.title or self.variant.sku or "(untitled)"


class LocalCatalogEntry(BaseSchema, TimestampMixin):
    """Row of the imported_products table."""

    id: Optional[str] = Field(None, description="Row UUID")
    shop: str = Field(..., description="Shop domain owning the entry")
    title: str = Field(..., description="Product title")
    sku: Optional[str] = Field(None, description="Variant SKU")
    remote_id: Optional[str] = Field(None, description="Remote product GID")
    vendor: Optional[str] = Field(None)
    product_type: Optional[str] = Field(None)
    price: Optional[Decimal] = Field(None)
    compare_at_price: Optional[Decimal] = Field(None)
    markup_applied: bool = Field(default=False)
    markup_type: Optional[str] = Field(None)
    markup_value: Optional[Decimal] = Field(None)


class RemoteVariant(BaseSchema):
    """Variant of a live remote product."""

    id: str
    sku: Optional[str] = None
    barcode: Optional[str] = None
    inventory_item_id: Optional[str] = None


class RemoteCatalogEntry(BaseSchema):
    """Live product on the commerce platform."""

    id: str
    title: str = ""
    tags: list[str] = Field(default_factory=list)
    variants: list[RemoteVariant] = Field(default_factory=list)

    def has_sku(self, sku: str) -> bool:
        return any(v.sku == sku for v in self.variants)
