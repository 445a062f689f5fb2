"""
Unit tests for ConnectionService.

Run: pytest tests/unit/test_connection_service.py -v
"""

import pytest

from exceptions import (
    ConnectionNotFoundError,
    DuplicateError,
    InvalidFieldMappingError,
    ValidationError,
)
from models.connection import ConnectionCreate, ConnectionKey, ConnectionSchedule
from models.import_request import DataSource, ImportRequest
from services.connection_service import ConnectionService
from tests.factories import ConnectionFactory, MappingFactory


@pytest.fixture
def connection_service(mock_db):
    return ConnectionService()


def new_connection(shop: str, **overrides) -> ConnectionCreate:
    data = {
        "shop": shop,
        "name": "Acme Feed",
        "supplier_name": "Acme",
        "api_url": "https://api.acme.test/products",
        "access_token": "secret",
        "field_mapping": MappingFactory.standard(),
        **overrides,
    }
    return ConnectionCreate(**data)


class TestConnectionKey:
    """Tests for ConnectionKey"""

    def test_supplier_name_is_case_insensitive(self):
        a = ConnectionKey.from_row({"supplier_name": " ACME ", "api_url": "https://x.test"})
        b = ConnectionKey.from_row({"supplier_name": "acme", "api_url": "https://x.test"})

        assert a == b

    def test_falls_back_to_name_and_csv_file(self):
        key = ConnectionKey.from_row({"name": "Stock File", "csv_file_name": "stock.csv"})

        assert key == ConnectionKey("stock file", "stock.csv")

    def test_endpoint_is_required(self):
        with pytest.raises(Exception):
            ConnectionCreate(shop="s", name="No endpoint")


class TestCreate:
    """Tests for ConnectionService.create()"""

    def test_create_hides_token(self, connection_service, mock_supabase, shop):
        """Should store the token but never return it."""
        response = connection_service.create(new_connection(shop))

        assert response.has_access_token is True
        assert not hasattr(response, "access_token")
        assert mock_supabase.rows("supplier_connections")[0]["access_token"] == "secret"

    def test_duplicate_is_rejected(self, connection_service, shop):
        connection_service.create(new_connection(shop))

        with pytest.raises(DuplicateError) as exc_info:
            connection_service.create(new_connection(shop, supplier_name=" ACME "))

        assert exc_info.value.status_code == 409

    def test_other_endpoint_is_allowed(self, connection_service, shop):
        connection_service.create(new_connection(shop))
        connection_service.create(new_connection(shop, api_url="https://api.acme.test/v2/products"))

        assert len(connection_service.list_connections(shop)) == 2

    def test_inactive_connection_is_not_a_duplicate(self, connection_service, mock_supabase, shop):
        mock_supabase.set_table_data("supplier_connections", [
            ConnectionFactory.create(shop=shop, is_active=False)
        ])

        connection_service.create(new_connection(shop))

        assert len(connection_service.list_connections(shop)) == 1


class TestListAndCleanup:
    """Tests for list_connections() / cleanup_duplicates() / deactivate()"""

    def test_newest_first(self, connection_service, mock_supabase, shop):
        old = ConnectionFactory.create(shop=shop, name="Old", supplier_name="Old", created_at="2025-01-01T00:00:00+00:00")
        new = ConnectionFactory.create(shop=shop, name="New", supplier_name="New", created_at="2025-06-01T00:00:00+00:00")
        mock_supabase.set_table_data("supplier_connections", [old, new])

        names = [c.name for c in connection_service.list_connections(shop)]

        assert names == ["New", "Old"]

    def test_cleanup_keeps_newest_per_key(self, connection_service, mock_supabase, shop):
        """Should deactivate older connections sharing a key."""
        # Arrange
        older = ConnectionFactory.create(shop=shop, created_at="2025-01-01T00:00:00+00:00")
        newer = ConnectionFactory.create(shop=shop, supplier_name="acme", created_at="2025-06-01T00:00:00+00:00")
        other = ConnectionFactory.create(shop=shop, api_url="https://api.globex.test/items")
        mock_supabase.set_table_data("supplier_connections", [older, newer, other])

        # Act
        deactivated = connection_service.cleanup_duplicates(shop)

        # Assert
        assert deactivated == 1
        active = {c.id for c in connection_service.list_connections(shop)}
        assert active == {newer["id"], other["id"]}

    def test_deactivate(self, connection_service, mock_supabase, shop):
        row = ConnectionFactory.create(shop=shop)
        mock_supabase.set_table_data("supplier_connections", [row])

        connection_service.deactivate(row["id"])

        assert connection_service.list_connections(shop) == []

    def test_deactivate_unknown(self, connection_service):
        with pytest.raises(ConnectionNotFoundError):
            connection_service.deactivate("missing")


class TestSaveFromRequest:
    """Tests for save_from_request() / record_sync()"""

    def api_request(self, shop: str, token: str = "tok") -> ImportRequest:
        return ImportRequest(
            shop=shop,
            data_source="api",
            api_credentials={"api_url": "https://api.acme.test/products", "access_token": token},
            field_mapping=MappingFactory.standard(),
            connection_name="Acme",
        )

    def test_reuses_matching_connection(self, connection_service, mock_supabase, shop):
        """Should update the existing connection instead of duplicating it."""
        # Arrange
        row = ConnectionFactory.create(shop=shop)
        mock_supabase.set_table_data("supplier_connections", [row])

        # Act
        connection_id = connection_service.save_from_request(self.api_request(shop, token="rotated"))

        # Assert
        rows = mock_supabase.rows("supplier_connections")
        assert connection_id == row["id"]
        assert len(rows) == 1
        assert rows[0]["access_token"] == "rotated"

    def test_creates_new_connection(self, connection_service, mock_supabase, shop):
        connection_id = connection_service.save_from_request(self.api_request(shop))

        assert mock_supabase.rows("supplier_connections")[0]["id"] == connection_id

    def test_record_sync(self, connection_service, mock_supabase, shop):
        row = ConnectionFactory.create(shop=shop)
        mock_supabase.set_table_data("supplier_connections", [row])

        connection_service.record_sync(row["id"], 12)

        stored = mock_supabase.rows("supplier_connections")[0]
        assert stored["product_count"] == 12
        assert stored["last_sync_at"] is not None


class TestBuildResyncRequest:
    """Tests for build_resync_request()"""

    def test_rebuilds_api_request(self, connection_service, mock_supabase, shop):
        row = ConnectionFactory.create(shop=shop)
        mock_supabase.set_table_data("supplier_connections", [row])

        request = connection_service.build_resync_request(row["id"])

        assert request.data_source == DataSource.API
        assert request.connection_id == row["id"]
        assert request.api_credentials.access_token == "token-123"
        assert len(request.field_mapping) == 5
        assert request.attribute_filter.select_all is True

    def test_csv_connection_cannot_resync(self, connection_service, mock_supabase, shop):
        row = ConnectionFactory.create(shop=shop, api_url=None, csv_file_name="stock.csv")
        mock_supabase.set_table_data("supplier_connections", [row])

        with pytest.raises(ValidationError) as exc_info:
            connection_service.build_resync_request(row["id"])

        assert exc_info.value.code == "RESYNC_NOT_SUPPORTED"

    def test_incomplete_stored_mapping(self, connection_service, mock_supabase, shop):
        row = ConnectionFactory.create(shop=shop, field_mapping=[{"source_key": "Name", "target_key": "title"}])
        mock_supabase.set_table_data("supplier_connections", [row])

        with pytest.raises(InvalidFieldMappingError):
            connection_service.build_resync_request(row["id"])

    def test_unknown_connection(self, connection_service):
        with pytest.raises(ConnectionNotFoundError):
            connection_service.build_resync_request("missing")


class TestSchedule:
    """Tests for connection schedules"""

    def test_update_schedule(self, connection_service, mock_supabase, shop):
        """Should store the schedule and return it."""
        # Arrange
        row = ConnectionFactory.create(shop=shop)
        mock_supabase.set_table_data("supplier_connections", [row])

        # Act
        updated = connection_service.update_schedule(
            row["id"], ConnectionSchedule(enabled=True, frequency="weekly", time="06:30")
        )

        # Assert
        assert updated.schedule.enabled is True
        assert mock_supabase.rows("supplier_connections")[0]["schedule"] == {
            "enabled": True,
            "frequency": "weekly",
            "time": "06:30",
        }

    def test_csv_connection_cannot_be_scheduled(self, connection_service, mock_supabase, shop):
        row = ConnectionFactory.create(shop=shop, api_url=None, csv_file_name="stock.csv")
        mock_supabase.set_table_data("supplier_connections", [row])

        with pytest.raises(ValidationError) as exc_info:
            connection_service.update_schedule(row["id"], ConnectionSchedule(enabled=True))

        assert exc_info.value.code == "SCHEDULE_NOT_SUPPORTED"

    def test_disabling_csv_schedule_is_allowed(self, connection_service, mock_supabase, shop):
        row = ConnectionFactory.create(shop=shop, api_url=None, csv_file_name="stock.csv")
        mock_supabase.set_table_data("supplier_connections", [row])

        updated = connection_service.update_schedule(row["id"], ConnectionSchedule(enabled=False))

        assert updated.schedule.enabled is False

    def test_create_rejects_scheduled_csv_connection(self, shop):
        with pytest.raises(ValueError):
            new_connection(
                shop,
                api_url=None,
                csv_file_name="stock.csv",
                schedule={"enabled": True},
            )

    def test_scheduled_rows(self, connection_service, mock_supabase, shop):
        """Should return only active API connections with an enabled schedule."""
        scheduled = ConnectionFactory.scheduled(shop=shop)
        mock_supabase.set_table_data("supplier_connections", [
            scheduled,
            ConnectionFactory.create(shop=shop),
            ConnectionFactory.scheduled(shop=shop, is_active=False),
        ])

        rows = connection_service.scheduled_rows(shop)

        assert [r["id"] for r in rows] == [scheduled["id"]]
