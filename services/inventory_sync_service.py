"""
CSV inventory sync.

Sets on-hand quantities for existing products from a supplier stock file,
matching rows to variants by SKU or barcode.
"""

from typing import Optional
import structlog

from exceptions import RemoteMutationError, ValidationError
from integrations.shopify import ShopifyClient, get_shopify_client
from models.inventory_sync import (
    IdentifierType,
    InventorySyncRequest,
    InventorySyncResponse,
)
from parsers.csv_parser import parse_csv_text
from utils.text_utils import parse_quantity

logger = structlog.get_logger(__name__)

MAX_REPORTED_ERRORS = 10


def resolve_column(headers: list[str], wanted: str) -> Optional[str]:
    """
    Find a header by exact name, then case-insensitively, then by substring.

    - resolve_column(["SKU", "Qty"], "sku") → "SKU"
    - resolve_column(["Item SKU"], "sku") → "Item SKU"
    """
    if wanted in headers:
        return wanted

    lowered = wanted.strip().lower()
    for header in headers:
        if header.lower() == lowered:
            return header
    for header in headers:
        if lowered and lowered in header.lower():
            return header
    return None


class InventorySyncService:
    """Stock-file driven inventory updates."""

    def __init__(self, remote_client: Optional[ShopifyClient] = None):
        self._remote = remote_client

    @property
    def remote(self) -> ShopifyClient:
        if self._remote is None:
            self._remote = get_shopify_client()
        return self._remote

    def sync(self, request: InventorySyncRequest) -> InventorySyncResponse:
        """
        Apply a stock file.

        Args:
            request: CSV payload, column names, locations and buffer

        Returns:
            InventorySyncResponse with processed rows and the first 10 errors

        Raises:
            CSVParseError: If the payload is unreadable
            ValidationError: If a named column is missing
            RemoteMutationError: If shop locations cannot be read
        """
        parsed = parse_csv_text(request.csv_payload)

        id_column = resolve_column(parsed.headers, request.identifier_column)
        qty_column = resolve_column(parsed.headers, request.quantity_column)
        if id_column is None or qty_column is None:
            raise ValidationError(
                message="CSV column not found",
                code="CSV_COLUMN_NOT_FOUND",
                details={
                    "identifier_column": request.identifier_column if id_column is None else None,
                    "quantity_column": request.quantity_column if qty_column is None else None,
                    "headers": parsed.headers,
                }
            )

        location_ids = request.location_ids
        if not location_ids:
            locations = self.remote.get_location_ids()
            if not locations.success:
                raise RemoteMutationError("locations", locations.error)
            location_ids = locations.data

        logger.info(
            "inventory_sync_started",
            rows=len(parsed.records),
            identifier_type=request.identifier_type.value,
            locations=len(location_ids)
        )

        quantities = []
        policy_updates: dict[str, list[str]] = {}
        errors: list[str] = []
        processed = 0

        # Row numbers are file lines, header included
        for row_number, row in zip(parsed.line_numbers, parsed.records):
            identifier = (row.get(id_column) or "").strip()
            if not identifier:
                errors.append(f"Row {row_number}: missing {id_column}")
                continue

            quantity = parse_quantity(row.get(qty_column))
            if quantity is None:
                errors.append(f"Row {row_number}: invalid quantity for {identifier}")
                continue

            target = self.find_variant(request.identifier_type, identifier)
            if target is None:
                errors.append(f"Row {row_number}: no variant with {request.identifier_type.value} {identifier}")
                continue

            on_hand = max(0, quantity - request.buffer)
            for location_id in location_ids:
                quantities.append({
                    "inventory_item_id": target["inventory_item_id"],
                    "location_id": location_id,
                    "quantity": on_hand,
                })

            if request.inventory_policy and target.get("product_id"):
                policy_updates.setdefault(target["product_id"], []).append(target["variant_id"])

            processed += 1

        if quantities:
            result = self.remote.set_inventory_on_hand(quantities)
            if not result.success:
                errors.append(f"Inventory update failed: {result.error}")

        for product_id, variant_ids in policy_updates.items():
            variants = [
                {"id": variant_id, "inventoryPolicy": request.inventory_policy.value}
                for variant_id in variant_ids
            ]
            result = self.remote.bulk_update_variants(product_id, variants)
            if not result.success:
                errors.append(f"Inventory policy update failed for {product_id}: {result.error}")

        logger.info("inventory_sync_complete", processed=processed, errors=len(errors))

        return InventorySyncResponse(
            processed_count=processed,
            error_count=len(errors),
            errors=errors[:MAX_REPORTED_ERRORS],
        )

    def find_variant(self, identifier_type: IdentifierType, identifier: str) -> Optional[dict]:
        """
        Returns:
            {variant_id, inventory_item_id, product_id} or None
        """
        if identifier_type == IdentifierType.BARCODE:
            result = self.remote.query_inventory_item_by_barcode(identifier)
            if not result.success:
                logger.warning("inventory_sync_lookup_failed", barcode=identifier, error=result.error)
                return None
            if result.data and result.data.get("inventory_item_id"):
                return result.data
            return None

        result = self.remote.query_product_by_sku(identifier)
        if not result.success:
            logger.warning("inventory_sync_lookup_failed", sku=identifier, error=result.error)
            return None

        for product in result.data:
            for variant in product.variants:
                if variant.sku == identifier and variant.inventory_item_id:
                    return {
                        "variant_id": variant.id,
                        "inventory_item_id": variant.inventory_item_id,
                        "product_id": product.id,
                    }
        return None


_inventory_sync_service: Optional[InventorySyncService] = None


def get_inventory_sync_service() -> InventorySyncService:
    """Get or create inventory sync service singleton."""
    global _inventory_sync_service
    if _inventory_sync_service is None:
        _inventory_sync_service = InventorySyncService()
    return _inventory_sync_service
