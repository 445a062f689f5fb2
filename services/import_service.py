"""
Import orchestration.

start_import validates and records a pending session synchronously;
run_import then walks every selected record in order:

    canonicalize → markup → reconcile → mutate → count

A failing record is counted and logged; it never stops the run.
"""

import threading
from dataclasses import dataclass
from typing import Optional
import structlog

from exceptions import (
    ImportAlreadyRunningError,
    InvalidPriceError,
    RemoteMutationError,
    SourceFetchError,
    ValidationError,
)
from integrations.shopify import ShopifyClient, get_shopify_client, variant_input
from integrations.supplier_api import fetch_all_items
from models.catalog import ReconciliationRecord, RemoteCatalogEntry, RemoteVariant
from models.import_request import DataSource, ImportRequest, PublishMode
from models.import_session import ImportSessionResponse
from parsers.csv_parser import parse_csv_text
from services.connection_service import ConnectionService, get_connection_service
from services.field_mapping_service import (
    apply_mapping,
    build_filter_view,
    to_canonical_record,
    validate_mapping,
)
from services.filter_service import select_any
from services.import_session_service import (
    ImportProgress,
    ImportSessionService,
    get_import_session_service,
)
from services.local_catalog_service import (
    LocalCatalogService,
    entry_fields,
    get_local_catalog_service,
)
from services.markup_service import apply_markup
from services.reconciliation_service import (
    ReconciliationAction,
    ReconciliationService,
)

logger = structlog.get_logger(__name__)


class ShopRunLock:
    """At most one running import per shop."""

    def __init__(self):
        self._guard = threading.Lock()
        self._running: set[str] = set()

    def acquire(self, shop: str) -> bool:
        with self._guard:
            if shop in self._running:
                return False
            self._running.add(shop)
            return True

    def release(self, shop: str) -> None:
        with self._guard:
            self._running.discard(shop)

    def is_running(self, shop: str) -> bool:
        with self._guard:
            return shop in self._running


_shop_run_lock = ShopRunLock()


@dataclass
class PreparedImport:
    """Accepted import waiting for its background run."""
    session: ImportSessionResponse
    request: ImportRequest
    csv_records: Optional[list[dict]] = None


def product_input(record: ReconciliationRecord, status: Optional[str] = None) -> dict:
    """Product-level fields for productCreate / productUpdate."""
    product = {"title": record.title}
    if record.description is not None:
        product["descriptionHtml"] = record.description
    if record.vendor is not None:
        product["vendor"] = record.vendor
    if record.product_type is not None:
        product["productType"] = record.product_type
    if record.tags:
        product["tags"] = record.tags
    if status:
        product["status"] = status
    return product


class ImportService:
    """
    Batch mutation orchestrator.

    Collaborators are injectable; defaults are the module singletons.
    """

    def __init__(
        self,
        session_service: Optional[ImportSessionService] = None,
        local_catalog: Optional[LocalCatalogService] = None,
        remote_client: Optional[ShopifyClient] = None,
        connection_service: Optional[ConnectionService] = None,
        run_lock: Optional[ShopRunLock] = None
    ):
        self._session_service = session_service
        self._local_catalog = local_catalog
        self._remote = remote_client
        self._connection_service = connection_service
        self.run_lock = run_lock or _shop_run_lock

    @property
    def session_service(self) -> ImportSessionService:
        if self._session_service is None:
            self._session_service = get_import_session_service()
        return self._session_service

    @property
    def local_catalog(self) -> LocalCatalogService:
        if self._local_catalog is None:
            self._local_catalog = get_local_catalog_service()
        return self._local_catalog

    @property
    def remote(self) -> ShopifyClient:
        if self._remote is None:
            self._remote = get_shopify_client()
        return self._remote

    @property
    def connection_service(self) -> ConnectionService:
        if self._connection_service is None:
            self._connection_service = get_connection_service()
        return self._connection_service

    # ===================
    # SUBMIT
    # ===================

    def start_import(self, request: ImportRequest) -> PreparedImport:
        """
        Validate a request and create its pending session.

        Args:
            request: Import request

        Returns:
            PreparedImport to hand to run_import

        Raises:
            InvalidFieldMappingError: If title, price or sku is unmapped
            CSVParseError: If the CSV payload is unreadable
            ImportAlreadyRunningError: If the shop already has a run in progress
            DatabaseError: If the session cannot be created
        """
        validate_mapping(request.field_mapping)

        csv_records = None
        if request.data_source == DataSource.CSV:
            csv_records = parse_csv_text(request.csv_payload).records

        # Fail before any session exists when the platform is not configured
        _ = self.remote

        if not self.run_lock.acquire(request.shop):
            logger.warning("import_already_running", shop=request.shop)
            raise ImportAlreadyRunningError(request.shop)

        try:
            if request.data_source == DataSource.API and not request.connection_id:
                connection_id = self.connection_service.save_from_request(request)
                request = request.model_copy(update={"connection_id": connection_id})

            session = self.session_service.create_session(
                shop=request.shop,
                data_source=request.data_source.value,
                publish_mode=request.publish_mode.value,
            )
        except Exception:
            self.run_lock.release(request.shop)
            raise

        logger.info(
            "import_started",
            session_id=session.id,
            shop=request.shop,
            data_source=request.data_source.value,
            csv_records=len(csv_records) if csv_records is not None else None
        )

        return PreparedImport(session=session, request=request, csv_records=csv_records)

    # ===================
    # RUN
    # ===================

    def run_import(self, prepared: PreparedImport) -> ImportProgress:
        """
        Process every selected record of an accepted import.

        Runs as a background task; the per-shop lock is released whatever
        the outcome.
        """
        request = prepared.request
        progress = ImportProgress(self.session_service, prepared.session.id)

        try:
            try:
                source_records = self.load_source(prepared)
            except SourceFetchError as e:
                logger.error("import_source_failed", session_id=prepared.session.id, error=e.message)
                progress.fail_source(e.message)
                return progress

            selected = self.select_records(source_records, request)
            progress.begin(len(selected))

            reconciler = ReconciliationService(self.local_catalog, self.remote)

            for source, mapped in selected:
                label = str(mapped.get("title") or mapped.get("sku") or "(untitled)")
                try:
                    record = self.prepare_record(source, mapped)
                    label = record.label
                    action = self.process_record(request, record, reconciler)
                except Exception as e:
                    logger.warning(
                        "import_record_failed",
                        session_id=prepared.session.id,
                        record=label,
                        error=str(e),
                        error_type=type(e).__name__
                    )
                    progress.record_failure(label)
                else:
                    logger.debug("import_record_done", record=label, action=action.value)
                    progress.record_success(label)

            if request.connection_id:
                self.connection_service.record_sync(request.connection_id, progress.imported)

            return progress

        except Exception as e:
            logger.error(
                "import_run_failed",
                session_id=prepared.session.id,
                error=str(e),
                error_type=type(e).__name__
            )
            progress.abandon(str(e))
            raise

        finally:
            self.run_lock.release(request.shop)

    def load_source(self, prepared: PreparedImport) -> list[dict]:
        if prepared.csv_records is not None:
            return prepared.csv_records

        credentials = prepared.request.api_credentials
        result = fetch_all_items(credentials.api_url, credentials.access_token)
        return result.items

    def select_records(
        self,
        source_records: list[dict],
        request: ImportRequest
    ) -> list[tuple[dict, dict]]:
        """Map every record, then apply the final any-token selection."""
        pairs = [(source, apply_mapping(source, request.field_mapping)) for source in source_records]

        if request.attribute_filter.select_all:
            return pairs

        return select_any(
            pairs,
            request.attribute_filter.tokens(),
            key=lambda pair: build_filter_view(*pair)
        )

    def prepare_record(self, source: dict, mapped: dict) -> ReconciliationRecord:
        """
        Raises:
            InvalidPriceError: If price is missing or not numeric
            ValidationError: If title is missing
        """
        record = to_canonical_record(mapped, source)

        if record.variant.price is None:
            raise InvalidPriceError(mapped.get("price"), record.label)
        if not record.title:
            raise ValidationError(
                message="Record has no title",
                code="MISSING_TITLE",
                details={"sku": record.variant.sku}
            )
        return record

    def process_record(
        self,
        request: ImportRequest,
        record: ReconciliationRecord,
        reconciler: ReconciliationService
    ) -> ReconciliationAction:
        """Markup, resolve and apply one record."""
        record = apply_markup(record, request.markup_config)
        resolution = reconciler.resolve(request.shop, record)
        action = resolution.action

        if action == ReconciliationAction.UPDATE_BOTH:
            self.update_remote(resolution.remote_id, record, resolution.remote_entry)
            self.local_catalog.update(resolution.local_entry.id, entry_fields(record, resolution.remote_id))

        elif action == ReconciliationAction.CREATE_REMOTE:
            remote_id = self.create_remote(record, request.publish_mode)
            self.local_catalog.update(resolution.local_entry.id, entry_fields(record, remote_id))

        elif action == ReconciliationAction.CREATE_LOCAL:
            self.local_catalog.create(request.shop, record, resolution.remote_entry.id)

        else:
            remote_id = self.create_remote(record, request.publish_mode)
            self.local_catalog.create(request.shop, record, remote_id)

        return action

    # ===================
    # REMOTE MUTATIONS
    # ===================

    def create_remote(self, record: ReconciliationRecord, publish_mode: PublishMode) -> str:
        """
        Create a product with its variant, image and inventory.

        Returns:
            New remote product id

        Raises:
            RemoteMutationError: If product or variant creation fails
        """
        status = "ACTIVE" if publish_mode == PublishMode.PUBLISHED else "DRAFT"

        result = self.remote.create_product(product_input(record, status))
        if not result.success:
            raise RemoteMutationError("productCreate", result.error)
        product_id = result.data

        if record.variant.image_url:
            media = self.remote.create_media(product_id, record.variant.image_url, record.title)
            if not media.success:
                logger.warning("import_media_failed", product_id=product_id, error=media.error)

        variants = self.remote.bulk_create_variants(product_id, [variant_input(record.variant)])
        if not variants.success:
            raise RemoteMutationError("productVariantsBulkCreate", variants.error, {"product_id": product_id})

        if variants.data:
            self.set_inventory(variants.data[0], record)

        if publish_mode == PublishMode.PUBLISHED:
            published = self.remote.publish_to_all_channels(product_id)
            if not published.success:
                logger.warning("import_publish_failed", product_id=product_id, error=published.error)

        return product_id

    def update_remote(
        self,
        remote_id: str,
        record: ReconciliationRecord,
        remote_entry: Optional[RemoteCatalogEntry] = None
    ) -> None:
        """
        Update product fields, the first variant and inventory.

        Raises:
            RemoteMutationError: If any update fails
        """
        result = self.remote.update_product(remote_id, product_input(record))
        if not result.success:
            raise RemoteMutationError("productUpdate", result.error, {"product_id": remote_id})

        if remote_entry is not None and remote_entry.id == remote_id and remote_entry.variants:
            existing = remote_entry.variants
        else:
            lookup = self.remote.get_product_variants(remote_id)
            if not lookup.success:
                raise RemoteMutationError("product", lookup.error, {"product_id": remote_id})
            existing = lookup.data

        if not existing:
            raise RemoteMutationError("productVariantsBulkUpdate", "product has no variants", {"product_id": remote_id})

        first = existing[0]
        updated = self.remote.bulk_update_variants(remote_id, [variant_input(record.variant, variant_id=first.id)])
        if not updated.success:
            raise RemoteMutationError("productVariantsBulkUpdate", updated.error, {"product_id": remote_id})

        self.set_inventory(first, record)

    def set_inventory(self, variant: RemoteVariant, record: ReconciliationRecord) -> None:
        """Set the record's quantity at every shop location."""
        quantity = record.variant.inventory_quantity
        if quantity is None or not variant.inventory_item_id:
            return

        locations = self.remote.get_location_ids()
        if not locations.success:
            raise RemoteMutationError("locations", locations.error)

        for location_id in locations.data:
            activated = self.remote.activate_inventory(variant.inventory_item_id, location_id)
            if not activated.success:
                logger.warning(
                    "inventory_activate_failed",
                    inventory_item_id=variant.inventory_item_id,
                    location_id=location_id,
                    error=activated.error
                )

        result = self.remote.set_inventory_on_hand([
            {
                "inventory_item_id": variant.inventory_item_id,
                "location_id": location_id,
                "quantity": max(quantity, 0),
            }
            for location_id in locations.data
        ])
        if not result.success:
            raise RemoteMutationError("inventorySetOnHandQuantities", result.error)


_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create import service singleton."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
