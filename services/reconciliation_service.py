"""
Reconciliation: decide create vs update against both catalogs.

The local store and the remote platform are checked independently, so a
product deleted on one side is recreated there on the next import.

    exists_local | exists_remote | action
    -------------+---------------+----------------
    true         | true          | UPDATE_BOTH
    true         | false         | CREATE_REMOTE
    false        | true          | CREATE_LOCAL
    false        | false         | CREATE_BOTH
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import structlog

from exceptions import RemoteMutationError
from integrations.shopify import ShopifyClient, get_shopify_client
from models.catalog import LocalCatalogEntry, ReconciliationRecord, RemoteCatalogEntry
from services.local_catalog_service import LocalCatalogService, get_local_catalog_service
from utils.text_utils import fold_text

logger = structlog.get_logger(__name__)


class ReconciliationAction(str, Enum):
    UPDATE_BOTH = "update_both"
    CREATE_REMOTE = "create_remote"
    CREATE_LOCAL = "create_local"
    CREATE_BOTH = "create_both"


ACTION_TABLE = {
    (True, True): ReconciliationAction.UPDATE_BOTH,
    (True, False): ReconciliationAction.CREATE_REMOTE,
    (False, True): ReconciliationAction.CREATE_LOCAL,
    (False, False): ReconciliationAction.CREATE_BOTH,
}


def decide_action(exists_local: bool, exists_remote: bool) -> ReconciliationAction:
    return ACTION_TABLE[(exists_local, exists_remote)]


@dataclass
class Resolution:
    """Outcome of resolving one record."""
    action: ReconciliationAction
    local_entry: Optional[LocalCatalogEntry] = None
    remote_entry: Optional[RemoteCatalogEntry] = None

    @property
    def exists_local(self) -> bool:
        return self.local_entry is not None

    @property
    def exists_remote(self) -> bool:
        return self.remote_entry is not None

    @property
    def remote_id(self) -> Optional[str]:
        """Stored remote id first, discovered id otherwise."""
        if self.local_entry and self.local_entry.remote_id:
            return self.local_entry.remote_id
        if self.remote_entry:
            return self.remote_entry.id
        return None


class ReconciliationService:
    """
    Resolves records against the local catalog and the remote platform.

    Duplicate matches resolve first-match-wins.
    """

    def __init__(
        self,
        local_catalog: Optional[LocalCatalogService] = None,
        remote_client: Optional[ShopifyClient] = None
    ):
        self.local_catalog = local_catalog or get_local_catalog_service()
        self.remote = remote_client or get_shopify_client()

    def find_remote(self, record: ReconciliationRecord) -> Optional[RemoteCatalogEntry]:
        """
        Find the live product for a record.

        SKU across any variant of any candidate first, then exact title
        (case-insensitive).

        Raises:
            RemoteMutationError: If a lookup query fails
        """
        sku = record.variant.sku
        if sku:
            result = self.remote.query_product_by_sku(sku)
            if not result.success:
                raise RemoteMutationError("query_product_by_sku", result.error)
            for candidate in result.data:
                if candidate.has_sku(sku):
                    return candidate

        if record.title:
            result = self.remote.query_product_by_title(record.title)
            if not result.success:
                raise RemoteMutationError("query_product_by_title", result.error)
            wanted = fold_text(record.title)
            for candidate in result.data:
                if fold_text(candidate.title) == wanted:
                    return candidate

        return None

    def resolve(self, shop: str, record: ReconciliationRecord) -> Resolution:
        """Always yields exactly one action."""
        local_entry = self.local_catalog.find_by_identity(shop, record.variant.sku, record.title)
        remote_entry = self.find_remote(record)

        resolution = Resolution(
            action=decide_action(local_entry is not None, remote_entry is not None),
            local_entry=local_entry,
            remote_entry=remote_entry,
        )

        logger.debug(
            "record_resolved",
            record=record.label,
            action=resolution.action.value,
            remote_id=resolution.remote_id
        )
        return resolution
