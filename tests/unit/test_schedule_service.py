"""
Unit tests for scheduled connection resyncs.

Run: pytest tests/unit/test_schedule_service.py -v
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import patch

from integrations.supplier_api import FetchResult
from models.connection import ConnectionResponse, ConnectionSchedule
from services.connection_service import ConnectionService
from services.import_service import ImportService, ShopRunLock
from services.import_session_service import ImportSessionService
from services.local_catalog_service import LocalCatalogService
from services.schedule_service import ScheduleService, is_due, last_run_at, latest_slot
from tests.factories import ConnectionFactory

# Tuesday
NOW = datetime(2026, 3, 10, 10, 30, tzinfo=timezone.utc)


def at(day: int, hour: int, minute: int = 0, month: int = 3) -> datetime:
    return datetime(2026, month, day, hour, minute, tzinfo=timezone.utc)


def schedule(frequency: str = "daily", time: str = "09:00", enabled: bool = True) -> ConnectionSchedule:
    return ConnectionSchedule(enabled=enabled, frequency=frequency, time=time)


@pytest.fixture
def run_lock():
    return ShopRunLock()


@pytest.fixture
def schedule_service(mock_db, fake_shopify, run_lock):
    connections = ConnectionService()
    imports = ImportService(
        session_service=ImportSessionService(),
        local_catalog=LocalCatalogService(),
        remote_client=fake_shopify,
        connection_service=connections,
        run_lock=run_lock,
    )
    return ScheduleService(connection_service=connections, import_service=imports)


def items_result() -> FetchResult:
    return FetchResult(items=[{"Name": "Chair", "Price": "20", "SKU": "S1"}], pages_fetched=1)


class TestScheduleModel:
    """Tests for ConnectionSchedule"""

    def test_defaults_are_disabled_daily(self):
        default = ConnectionSchedule()

        assert default.enabled is False
        assert default.frequency.value == "daily"
        assert (default.hour, default.minute) == (9, 0)

    def test_invalid_time_is_rejected(self):
        with pytest.raises(ValueError):
            ConnectionSchedule(time="25:00")

    def test_frequency_is_case_insensitive(self):
        assert ConnectionSchedule(frequency="Weekly").frequency.value == "weekly"


class TestLatestSlot:
    """Tests for latest_slot()"""

    def test_today_once_time_has_passed(self):
        assert latest_slot(schedule(time="09:00"), NOW) == at(10, 9)

    def test_yesterday_before_time(self):
        assert latest_slot(schedule(time="11:00"), NOW) == at(9, 11)

    def test_hourly_uses_minutes_only(self):
        assert latest_slot(schedule("hourly", "03:15"), NOW) == at(10, 10, 15)
        assert latest_slot(schedule("hourly", "03:45"), NOW) == at(10, 9, 45)


class TestIsDue:
    """Tests for is_due()"""

    @pytest.mark.parametrize("frequency,time,last_run,expected", [
        ("daily", "09:00", at(9, 9, 5), True),
        ("daily", "09:00", at(10, 9, 1), False),
        ("daily", "11:00", at(9, 11, 2), False),
        ("hourly", "00:15", at(10, 10, 0), True),
        ("hourly", "00:45", at(10, 10, 0), False),
        ("weekly", "09:00", at(3, 9, 10), True),
        ("weekly", "09:00", at(5, 9, 10), False),
        ("monthly", "09:00", at(8, 9, 0, month=2), True),
        ("monthly", "09:00", at(20, 9, 0, month=2), False),
    ])
    def test_due_after_slot_and_period(self, frequency, time, last_run, expected):
        """Should fire on the first slot once the period has elapsed."""
        assert is_due(schedule(frequency, time), last_run, NOW) is expected

    def test_never_run_is_due(self):
        assert is_due(schedule(), None, NOW) is True

    def test_disabled_is_never_due(self):
        assert is_due(schedule(enabled=False), None, NOW) is False

    def test_last_run_is_latest_stamp(self):
        connection = ConnectionResponse(**ConnectionFactory.create(
            last_sync_at="2026-03-09T09:00:00+00:00",
            last_scheduled_at="2026-03-10T09:00:00+00:00",
        ))

        assert last_run_at(connection) == at(10, 9)


class TestRunDue:
    """Tests for ScheduleService.run_due()"""

    def test_starts_due_connection(self, schedule_service, mock_supabase, fake_shopify, shop):
        """Should resync a due connection and stamp it."""
        # Arrange
        row = ConnectionFactory.scheduled(shop=shop)
        mock_supabase.set_table_data("supplier_connections", [row])

        # Act
        response, prepared_runs = schedule_service.run_due(now=NOW)
        with patch("services.import_service.fetch_all_items", return_value=items_result()):
            for prepared in prepared_runs:
                schedule_service.import_service.run_import(prepared)

        # Assert
        assert response.checked_count == 1
        assert response.started_count == 1
        assert response.results[0].success is True
        assert response.results[0].session_id == prepared_runs[0].session.id
        stored = mock_supabase.rows("supplier_connections")[0]
        assert stored["last_scheduled_at"] == NOW.isoformat()
        assert stored["product_count"] == 1
        assert len(fake_shopify.products) == 1

    def test_second_tick_does_not_restart(self, schedule_service, mock_supabase, shop):
        mock_supabase.set_table_data("supplier_connections", [ConnectionFactory.scheduled(shop=shop)])
        schedule_service.run_due(now=NOW)

        response, prepared_runs = schedule_service.run_due(now=at(10, 10, 35))

        assert response.started_count == 0
        assert prepared_runs == []

    def test_unscheduled_and_csv_connections_are_ignored(self, schedule_service, mock_supabase, shop):
        mock_supabase.set_table_data("supplier_connections", [
            ConnectionFactory.create(shop=shop),
            ConnectionFactory.create(
                shop=shop,
                api_url=None,
                csv_file_name="stock.csv",
                schedule={"enabled": True, "frequency": "daily", "time": "09:00"},
            ),
        ])

        response, _ = schedule_service.run_due(now=NOW)

        assert response.checked_count == 0

    def test_failing_connection_does_not_block_others(self, schedule_service, mock_supabase, shop):
        """Should report a connection that cannot start and start the rest."""
        # Arrange
        broken = ConnectionFactory.scheduled(
            shop="other-shop.myshopify.com",
            name="Broken",
            field_mapping=[{"source_key": "Name", "target_key": "title"}],
        )
        healthy = ConnectionFactory.scheduled(shop=shop, name="Healthy")
        mock_supabase.set_table_data("supplier_connections", [broken, healthy])

        # Act
        response, prepared_runs = schedule_service.run_due(now=NOW)

        # Assert
        outcomes = {result.connection_name: result for result in response.results}
        assert outcomes["Broken"].success is False
        assert "missing required targets" in outcomes["Broken"].error
        assert outcomes["Healthy"].success is True
        assert len(prepared_runs) == 1

    def test_running_shop_is_reported(self, schedule_service, mock_supabase, run_lock, shop):
        mock_supabase.set_table_data("supplier_connections", [ConnectionFactory.scheduled(shop=shop)])
        run_lock.acquire(shop)

        response, prepared_runs = schedule_service.run_due(now=NOW)

        assert prepared_runs == []
        assert response.results[0].error == "An import is already running for this shop"

    def test_shop_filter(self, schedule_service, mock_supabase, shop):
        mock_supabase.set_table_data("supplier_connections", [
            ConnectionFactory.scheduled(shop=shop),
            ConnectionFactory.scheduled(shop="other-shop.myshopify.com"),
        ])

        response, _ = schedule_service.run_due(now=NOW, shop=shop)

        assert response.checked_count == 1
