"""
Unit tests for ReconciliationService.

Run: pytest tests/unit/test_reconciliation_service.py -v
"""

import pytest

from exceptions import RemoteMutationError
from models.import_request import ImportRequest
from services.import_service import ImportService, ShopRunLock
from services.import_session_service import ImportSessionService
from services.local_catalog_service import LocalCatalogService
from services.reconciliation_service import (
    ReconciliationAction,
    ReconciliationService,
    decide_action,
)
from tests.factories import LocalEntryFactory, MappingFactory, RecordFactory


@pytest.fixture
def reconciler(mock_db, fake_shopify):
    return ReconciliationService(LocalCatalogService(), fake_shopify)


class TestDecideAction:
    """Tests for decide_action()"""

    @pytest.mark.parametrize("exists_local,exists_remote,expected", [
        (True, True, ReconciliationAction.UPDATE_BOTH),
        (True, False, ReconciliationAction.CREATE_REMOTE),
        (False, True, ReconciliationAction.CREATE_LOCAL),
        (False, False, ReconciliationAction.CREATE_BOTH),
    ])
    def test_action_table(self, exists_local, exists_remote, expected):
        assert decide_action(exists_local, exists_remote) == expected


class TestResolve:
    """Tests for ReconciliationService.resolve()"""

    def test_new_record_creates_both(self, reconciler, shop):
        """Should create on both sides when neither knows the record."""
        resolution = reconciler.resolve(shop, RecordFactory.create(sku="S1"))

        assert resolution.action == ReconciliationAction.CREATE_BOTH
        assert resolution.remote_id is None

    def test_deleted_remote_is_recreated(self, reconciler, mock_supabase, shop):
        """Should create remotely when only the local entry exists."""
        # Arrange
        mock_supabase.set_table_data("imported_products", [
            LocalEntryFactory.create(shop=shop, sku="S1", remote_id="gid://shopify/Product/999")
        ])

        # Act
        resolution = reconciler.resolve(shop, RecordFactory.create(sku="S1"))

        # Assert
        assert resolution.action == ReconciliationAction.CREATE_REMOTE
        assert resolution.exists_local
        assert not resolution.exists_remote

    def test_untracked_remote_creates_local(self, reconciler, fake_shopify, shop):
        """Should adopt a remote product that the local catalog lacks."""
        # Arrange
        product_id = fake_shopify.seed_product("Chair", sku="S1")

        # Act
        resolution = reconciler.resolve(shop, RecordFactory.create(title="Chair", sku="S1"))

        # Assert
        assert resolution.action == ReconciliationAction.CREATE_LOCAL
        assert resolution.remote_id == product_id

    def test_known_on_both_sides_updates(self, reconciler, fake_shopify, mock_supabase, shop):
        """Should update and prefer the stored remote id."""
        # Arrange
        product_id = fake_shopify.seed_product("Chair", sku="S1")
        mock_supabase.set_table_data("imported_products", [
            LocalEntryFactory.create(shop=shop, sku="S1", remote_id=product_id)
        ])

        # Act
        resolution = reconciler.resolve(shop, RecordFactory.create(title="Chair", sku="S1"))

        # Assert
        assert resolution.action == ReconciliationAction.UPDATE_BOTH
        assert resolution.remote_id == product_id

    def test_local_entries_are_per_shop(self, reconciler, mock_supabase, shop):
        mock_supabase.set_table_data("imported_products", [
            LocalEntryFactory.create(shop="other-shop.myshopify.com", sku="S1")
        ])

        resolution = reconciler.resolve(shop, RecordFactory.create(sku="S1"))

        assert not resolution.exists_local

    def test_local_title_fallback(self, reconciler, mock_supabase, shop):
        """Should find the local entry by title when the SKU is unknown."""
        mock_supabase.set_table_data("imported_products", [
            LocalEntryFactory.create(shop=shop, sku="OLD", title="Chair")
        ])

        resolution = reconciler.resolve(shop, RecordFactory.create(title="Chair", sku="NEW"))

        assert resolution.exists_local


class TestFindRemote:
    """Tests for ReconciliationService.find_remote()"""

    def test_sku_on_any_variant(self, reconciler, fake_shopify):
        """Should match a SKU held by a later variant."""
        # Arrange
        product_id = fake_shopify.seed_product("Chair", sku="S1")
        fake_shopify.products[product_id]["variants"].append(
            fake_shopify._new_variant({"inventoryItem": {"sku": "S2"}})
        )

        # Act
        found = reconciler.find_remote(RecordFactory.create(title="Other", sku="S2"))

        # Assert
        assert found.id == product_id

    def test_exact_title_case_insensitive(self, reconciler, fake_shopify):
        product_id = fake_shopify.seed_product("Oak Chair")

        found = reconciler.find_remote(RecordFactory.create(title="oak chair", sku="S9"))

        assert found.id == product_id

    def test_fuzzy_title_hit_is_rejected(self, reconciler, fake_shopify):
        """Should ignore search results whose title is not an exact match."""
        fake_shopify.seed_product("Oak Chair Deluxe")

        assert reconciler.find_remote(RecordFactory.create(title="Oak Chair", sku="S9")) is None

    def test_lookup_failure_raises(self, reconciler, fake_shopify):
        fake_shopify.fail_on.add("query_product_by_sku")

        with pytest.raises(RemoteMutationError):
            reconciler.find_remote(RecordFactory.create(sku="S1"))


class TestIdempotence:
    """Re-importing the same record converges on UPDATE_BOTH."""

    def test_second_run_updates(self, mock_db, fake_shopify, shop):
        # Arrange
        local_catalog = LocalCatalogService()
        service = ImportService(
            session_service=ImportSessionService(),
            local_catalog=local_catalog,
            remote_client=fake_shopify,
            run_lock=ShopRunLock(),
        )
        reconciler = ReconciliationService(local_catalog, fake_shopify)
        request = ImportRequest(
            shop=shop,
            data_source="csv",
            csv_payload="Name,Price,SKU\nChair,20,S1",
            field_mapping=MappingFactory.standard(),
        )
        record = RecordFactory.create(title="Chair", sku="S1")

        # Act
        first = service.process_record(request, record, reconciler)
        second = service.process_record(request, record, reconciler)

        # Assert
        assert first == ReconciliationAction.CREATE_BOTH
        assert second == ReconciliationAction.UPDATE_BOTH
        assert len(fake_shopify.products) == 1
        assert len(mock_db.rows("imported_products")) == 1
