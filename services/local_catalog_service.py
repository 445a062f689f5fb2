"""
Local catalog: products this app has imported, per shop.

Each entry holds the remote product id as a weak reference (id only) plus
cached product fields and the markup audit trail.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.catalog import LocalCatalogEntry, ReconciliationRecord
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


def entry_fields(record: ReconciliationRecord, remote_id: Optional[str] = None) -> dict:
    """Cached columns for a record, JSON-safe."""
    fields = {
        "title": record.title,
        "sku": record.variant.sku,
        "vendor": record.vendor,
        "product_type": record.product_type,
        "price": str(record.variant.price) if record.variant.price is not None else None,
        "compare_at_price": (
            str(record.variant.compare_at_price)
            if record.variant.compare_at_price is not None else None
        ),
        "markup_applied": record.markup_applied,
        "markup_type": record.markup_type.value if record.markup_type else None,
        "markup_value": str(record.markup_value) if record.markup_value is not None else None,
    }
    if remote_id:
        fields["remote_id"] = remote_id
    return fields


class LocalCatalogService:
    """
    imported_products persistence.

    Identity lookup: sku exact, else title exact.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "imported_products"

    # ===================
    # READ OPERATIONS
    # ===================

    def find_by_identity(
        self,
        shop: str,
        sku: Optional[str],
        title: Optional[str]
    ) -> Optional[LocalCatalogEntry]:
        """
        Find the entry for a record.

        Args:
            shop: Shop domain
            sku: Variant SKU (checked first)
            title: Product title (fallback)

        Returns:
            First matching entry or None
        """
        try:
            if sku:
                result = (
                    self.db.table(self.table)
                    .select("*")
                    .eq("shop", shop)
                    .eq("sku", sku)
                    .limit(1)
                    .execute()
                )
                if result.data:
                    return LocalCatalogEntry(**result.data[0])

            if title:
                result = (
                    self.db.table(self.table)
                    .select("*")
                    .eq("shop", shop)
                    .eq("title", title)
                    .limit(1)
                    .execute()
                )
                if result.data:
                    return LocalCatalogEntry(**result.data[0])

            return None

        except Exception as e:
            logger.error("local_catalog_lookup_failed", shop=shop, sku=sku, error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, shop: str, record: ReconciliationRecord, remote_id: str) -> LocalCatalogEntry:
        """Insert an entry referencing a remote product."""
        data = {"shop": shop, **entry_fields(record, remote_id)}

        try:
            result = self.db.table(self.table).insert(data).execute()
            logger.info("local_catalog_entry_created", shop=shop, sku=data["sku"], remote_id=remote_id)
            return LocalCatalogEntry(**result.data[0])

        except Exception as e:
            logger.error("local_catalog_create_failed", shop=shop, sku=data["sku"], error=str(e))
            raise DatabaseError("insert", str(e))

    def update(self, entry_id: str, fields: dict) -> LocalCatalogEntry:
        """Patch cached fields (and remote_id) of an entry."""
        try:
            result = (
                self.db.table(self.table)
                .update(fields)
                .eq("id", entry_id)
                .execute()
            )
            if not result.data:
                raise DatabaseError("update", f"imported_products row {entry_id} not found")
            logger.info("local_catalog_entry_updated", entry_id=entry_id, fields=list(fields.keys()))
            return LocalCatalogEntry(**result.data[0])

        except DatabaseError:
            raise
        except Exception as e:
            logger.error("local_catalog_update_failed", entry_id=entry_id, error=str(e))
            raise DatabaseError("update", str(e))


_local_catalog_service: Optional[LocalCatalogService] = None


def get_local_catalog_service() -> LocalCatalogService:
    """Get or create local catalog service singleton."""
    global _local_catalog_service
    if _local_catalog_service is None:
        _local_catalog_service = LocalCatalogService()
    return _local_catalog_service
