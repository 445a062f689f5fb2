"""
CSV inventory sync schemas.
"""

from pydantic import Field
from typing import Optional
from enum import Enum

from models.base import BaseSchema


class IdentifierType(str, Enum):
    SKU = "sku"
    BARCODE = "barcode"


class InventoryPolicy(str, Enum):
    """Whether a variant keeps selling when out of stock."""
    CONTINUE = "CONTINUE"
    DENY = "DENY"


class InventorySyncRequest(BaseSchema):
    """
    Set on-hand quantities from a CSV file.

    quantity written = max(0, csv quantity - buffer)
    """

    csv_payload: str = Field(..., description="Raw CSV text")
    identifier_type: IdentifierType = Field(default=IdentifierType.SKU)
    identifier_column: str = Field(..., min_length=1)
    quantity_column: str = Field(..., min_length=1)
    location_ids: list[str] = Field(
        default_factory=list,
        description="Location GIDs; empty means every shop location"
    )
    buffer: int = Field(default=0, ge=0, description="Units held back per row")
    inventory_policy: Optional[InventoryPolicy] = Field(
        None,
        description="Also set variant inventory policy when given"
    )


class InventorySyncResponse(BaseSchema):
    processed_count: int
    error_count: int
    errors: list[str] = Field(default_factory=list, description="First 10 errors")
