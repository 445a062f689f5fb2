"""
Field mapping schemas.

A mapping is an ordered list of (source_key, target_key) pairs. Targets are
the canonical product fields every downstream component understands.
"""

from pydantic import Field
from enum import Enum

from models.base import BaseSchema


class CanonicalField(str, Enum):
    """Canonical product fields a source attribute can be mapped onto."""
    TITLE = "title"
    DESCRIPTION = "description"
    VENDOR = "vendor"
    PRODUCT_TYPE = "product_type"
    TAGS = "tags"
    PRICE = "price"
    COMPARE_AT_PRICE = "compare_at_price"
    SKU = "sku"
    BARCODE = "barcode"
    INVENTORY_QUANTITY = "inventory_quantity"
    IMAGE_URL = "image_url"


REQUIRED_TARGETS = (
    CanonicalField.TITLE,
    CanonicalField.PRICE,
    CanonicalField.SKU,
)


class FieldMappingEntry(BaseSchema):
    """One source attribute mapped onto one canonical field."""

    source_key: str = Field(
        ...,
        min_length=1,
        description="Attribute name in the source record",
        examples=["Product Name", "variants.0.price"]
    )
    target_key: CanonicalField = Field(
        ...,
        description="Canonical field receiving the value"
    )
